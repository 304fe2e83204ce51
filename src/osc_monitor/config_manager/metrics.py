# config_manager/metrics.py
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class MetricsConfig(BaseModel):
    """PromQL queries and grouping policy for the instance views."""

    model_config = ConfigDict(extra="forbid")

    graph_grouping: Literal["pod_prefix", "label"] = Field(
        "pod_prefix",
        alias="graph_grouping",
        description=(
            "pod_prefix derives the tenant from the first dash segment of the pod name; "
            "label uses the grouping label returned by graph_label_query."
        ),
    )
    graph_pod_query: str = Field(
        'count by (pod)(kube_pod_info{created_by_kind="ReplicaSet"})',
        alias="graph_pod_query",
    )
    graph_label_query: str = Field(
        'sum by (namespace)(kube_pod_info{created_by_kind="ReplicaSet"})',
        alias="graph_label_query",
    )
    group_label: str = Field("namespace", alias="group_label")
    # {namespace} is substituted with the requested tenant; pods are named "<tenant>-<service>-..."
    drilldown_query: str = Field(
        'sum by (created_by_name)(kube_pod_info{pod=~"^{namespace}-.*",created_by_kind="ReplicaSet"})',
        alias="drilldown_query",
    )
    drilldown_label: str = Field("created_by_name", alias="drilldown_label")
    current_query: str = Field(
        'sum by (namespace)(kube_pod_info{created_by_kind="ReplicaSet"})',
        alias="current_query",
    )
    service_selector: str = Field(
        '{eyevinnlabel_customer="{namespace}"}',
        alias="service_selector",
    )
    service_label: str = Field("eyevinnlabel_service", alias="service_label")
    services_lookback_sec: int = Field(3600, alias="services_lookback_sec", gt=0)
    top_tenants: int = Field(30, alias="top_tenants", ge=0)
