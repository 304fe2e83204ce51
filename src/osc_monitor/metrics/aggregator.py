"""
Metric aggregation: Prometheus range/instant results -> per-tenant and
per-service instance-count series.

Grouping is always done here rather than in PromQL because the Grafana
proxy does not give us ``label_replace``. Samples whose value is not a
non-negative integer are skipped; series that are zero everywhere are
dropped.
"""

from __future__ import annotations

import asyncio
import math
import re
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from ..backend import (
    BackendClient,
    PromResult,
    normalize_range,
    now_seconds,
    range_seconds,
    step_for_range,
)
from ..config_manager import MetricsConfig
from .series import SeriesPoint, ServiceSeries, TenantInfo, TenantSeries

UNKNOWN_KEY = "unknown"

# ReplicaSet names end in a pod-template hash, e.g. "web-7f9c8d5b4"
_HASH_SUFFIX_RE = re.compile(r"^(?P<name>.+)-(?P<hash>[a-z0-9]{4,12})$")
# alphabet Kubernetes uses for pod-template hashes (no vowels, no 0/1/3)
_K8S_HASH_CHARS = frozenset("bcdfghjklmnpqrstvwxz2456789")

KeyFn = Callable[[Dict[str, str]], str]


def parse_count(raw: object) -> Optional[int]:
    """Parse a sample value as a non-negative integer, or None."""
    text = str(raw).strip()
    try:
        value = int(text)
    except ValueError:
        try:
            as_float = float(text)
        except ValueError:
            return None
        if not math.isfinite(as_float) or not as_float.is_integer():
            return None
        value = int(as_float)
    return value if value >= 0 else None


def strip_hash_suffix(name: str) -> str:
    """Drop a trailing ``-<hash>`` segment to recover the logical controller name.

    A segment counts as a hash when it is 4-12 lowercase alphanumerics that
    either contain a digit or are drawn entirely from the Kubernetes hash
    alphabet. Plain words such as ``-server`` contain vowels and are kept.
    """
    match = _HASH_SUFFIX_RE.match(name)
    if not match:
        return name
    segment = match.group("hash")
    if any(c.isdigit() for c in segment) or set(segment) <= _K8S_HASH_CHARS:
        return match.group("name")
    return name


def label_key(label: str) -> KeyFn:
    def _key(metric: Dict[str, str]) -> str:
        return metric.get(label) or UNKNOWN_KEY

    return _key


def pod_prefix_key(label: str = "pod") -> KeyFn:
    def _key(metric: Dict[str, str]) -> str:
        return (metric.get(label) or "").split("-")[0] or UNKNOWN_KEY

    return _key


def controller_key(label: str = "created_by_name") -> KeyFn:
    def _key(metric: Dict[str, str]) -> str:
        name = metric.get(label) or ""
        return strip_hash_suffix(name) if name else UNKNOWN_KEY

    return _key


def sum_by_key(results: Iterable[PromResult], key_fn: KeyFn) -> Dict[str, Dict[int, int]]:
    """Group range-query series by ``key_fn`` and sum their values per timestamp (ms)."""
    grouped: Dict[str, Dict[int, int]] = {}
    for result in results:
        ts_map = grouped.setdefault(key_fn(result.metric), {})
        for ts, raw in result.values:
            value = parse_count(raw)
            if value is None:
                continue
            ms = int(ts) * 1000
            ts_map[ms] = ts_map.get(ms, 0) + value
    return grouped


def _points(ts_map: Dict[int, int]) -> List[SeriesPoint]:
    return [SeriesPoint(time=t, value=v) for t, v in sorted(ts_map.items())]


def _has_activity(points: List[SeriesPoint]) -> bool:
    return any(p.value > 0 for p in points)


def tenant_series(results: Iterable[PromResult], key_fn: KeyFn) -> List[TenantSeries]:
    series = [
        TenantSeries(namespace=key, data=_points(ts_map))
        for key, ts_map in sum_by_key(results, key_fn).items()
    ]
    return [s for s in series if _has_activity(s.data)]


def service_series(results: Iterable[PromResult], key_fn: KeyFn) -> List[ServiceSeries]:
    series = [
        ServiceSeries(service=key, data=_points(ts_map))
        for key, ts_map in sum_by_key(results, key_fn).items()
    ]
    return [s for s in series if _has_activity(s.data)]


def current_tenants(results: Iterable[PromResult], label: str = "namespace") -> List[TenantInfo]:
    """Instant-query results -> tenants with a positive count, largest first."""
    tenants: List[TenantInfo] = []
    for result in results:
        namespace = result.metric.get(label)
        if not namespace or result.value is None:
            continue
        count = parse_count(result.value[1])
        if count:
            tenants.append(TenantInfo(namespace=namespace, count=count))
    tenants.sort(key=lambda t: t.count, reverse=True)
    return tenants


class MetricAggregator:
    """Builds the instance-count views from the metric store.

    Args:
        client (BackendClient): Query client for Prometheus and Loki.
        metrics_config (MetricsConfig): Queries, labels and grouping policy.
    """

    def __init__(self, client: BackendClient, metrics_config: MetricsConfig):
        self.client = client
        self.config = metrics_config
        self._log = logger.bind(component="metric_aggregator")

    @staticmethod
    def window(range_label: Optional[str], now: Optional[int] = None) -> Tuple[str, int, int, int]:
        """Return ``(range, start, end, step)`` in epoch seconds for a range label."""
        label = normalize_range(range_label)
        end = now_seconds() if now is None else now
        secs = range_seconds(label)
        return label, end - secs, end, step_for_range(secs)

    async def tenant_graph(
        self, range_label: Optional[str], now: Optional[int] = None
    ) -> Tuple[List[TenantSeries], str, int]:
        label, start, end, step = self.window(range_label, now)
        if self.config.graph_grouping == "label":
            query, key_fn = self.config.graph_label_query, label_key(self.config.group_label)
        else:
            query, key_fn = self.config.graph_pod_query, pod_prefix_key("pod")
        results = await self.client.prom_query_range(query, start, end, step)
        series = tenant_series(results, key_fn)
        self._log.debug(f"graph {label}: {len(results)} raw series -> {len(series)} tenants")
        return series, label, step

    async def service_drilldown(
        self, namespace: str, range_label: Optional[str], now: Optional[int] = None
    ) -> Tuple[List[ServiceSeries], str, int]:
        label, start, end, step = self.window(range_label, now)
        query = self.config.drilldown_query.replace("{namespace}", namespace)
        results = await self.client.prom_query_range(query, start, end, step)
        return service_series(results, controller_key(self.config.drilldown_label)), label, step

    async def tenant_services(self, namespace: str, now: Optional[int] = None) -> List[str]:
        end = now_seconds() if now is None else now
        label_sets = await self.client.loki_series(
            self.config.service_selector.replace("{namespace}", namespace),
            end - self.config.services_lookback_sec,
            end,
        )
        services: List[str] = []
        for labels in label_sets:
            service = labels.get(self.config.service_label)
            if service and service not in services:
                services.append(service)
        return services

    async def current(self, now: Optional[int] = None) -> List[TenantInfo]:
        """Current instance count per tenant; the top tenants also get their service list."""
        results = await self.client.prom_query(self.config.current_query)
        tenants = current_tenants(results, self.config.group_label)
        top = tenants[: self.config.top_tenants]
        service_lists = await asyncio.gather(
            *(self.tenant_services(t.namespace, now) for t in top)
        )
        for tenant, services in zip(top, service_lists):
            tenant.services = services
        return tenants
