from .aggregator import (
    MetricAggregator,
    controller_key,
    current_tenants,
    label_key,
    parse_count,
    pod_prefix_key,
    service_series,
    strip_hash_suffix,
    sum_by_key,
    tenant_series,
)
from .series import SeriesPoint, ServiceSeries, TenantInfo, TenantSeries

__all__ = [
    "MetricAggregator",
    "SeriesPoint",
    "ServiceSeries",
    "TenantInfo",
    "TenantSeries",
    "controller_key",
    "current_tenants",
    "label_key",
    "parse_count",
    "pod_prefix_key",
    "service_series",
    "strip_hash_suffix",
    "sum_by_key",
    "tenant_series",
]
