"""Tests for instance-count grouping and the metric aggregator views."""

import asyncio

from osc_monitor.backend import PromResult
from osc_monitor.config_manager import MetricsConfig
from osc_monitor.metrics import (
    MetricAggregator,
    controller_key,
    current_tenants,
    label_key,
    parse_count,
    pod_prefix_key,
    service_series,
    strip_hash_suffix,
    tenant_series,
)

NOW = 1_700_000_000
T1, T2 = NOW - 120, NOW - 60


def series(metric, *values):
    return PromResult(metric=metric, values=list(values))


def instant(metric, value):
    return PromResult(metric=metric, value=(float(NOW), value))


class FakeMetricBackend:
    def __init__(self, range_results=(), instant_results=(), label_sets=None):
        self.range_results = list(range_results)
        self.instant_results = list(instant_results)
        self.label_sets = label_sets or {}
        self.range_calls = []
        self.series_calls = []

    async def prom_query_range(self, query, start, end, step):
        self.range_calls.append((query, start, end, step))
        return self.range_results

    async def prom_query(self, query):
        return self.instant_results

    async def loki_series(self, match, start, end):
        self.series_calls.append((match, start, end))
        return self.label_sets.get(match, [])


def test_drilldown_sums_replicasets_of_one_controller() -> None:
    results = [
        series({"created_by_name": "web-7f9c8d"}, (T1, "3")),
        series({"created_by_name": "web-1a2b3c"}, (T1, "5")),
    ]
    out = service_series(results, controller_key())
    assert [s.to_dict() for s in out] == [
        {"service": "web", "data": [{"time": T1 * 1000, "value": 8}]}
    ]


def test_strip_hash_suffix() -> None:
    assert strip_hash_suffix("web-7f9c8d") == "web"
    assert strip_hash_suffix("my-app-5d8f7b9c4") == "my-app"
    assert strip_hash_suffix("web-bcdfghjkl") == "web"
    assert strip_hash_suffix("worker-xzvq") == "worker"
    assert strip_hash_suffix("web-server") == "web-server"
    assert strip_hash_suffix("web-frontend") == "web-frontend"
    assert strip_hash_suffix("api-v2") == "api-v2"
    assert strip_hash_suffix("standalone") == "standalone"


def test_zero_series_dropped_and_single_nonzero_kept() -> None:
    results = [
        series({"namespace": "idle"}, (T1, "0"), (T2, "0")),
        series({"namespace": "blip"}, (T1, "0"), (T2, "1")),
    ]
    out = tenant_series(results, label_key("namespace"))
    assert [s.namespace for s in out] == ["blip"]
    assert [(p.time, p.value) for p in out[0].data] == [(T1 * 1000, 0), (T2 * 1000, 1)]


def test_pod_prefix_groups_by_first_segment() -> None:
    results = [
        series({"pod": "acme-couchdb-0"}, (T1, "1")),
        series({"pod": "acme-web-7f9c8d-x2z"}, (T1, "1"), (T2, "1")),
        series({"pod": "globex-valkey-0"}, (T2, "1")),
        series({}, (T1, "2")),
    ]
    out = {s.namespace: s for s in tenant_series(results, pod_prefix_key())}
    assert set(out) == {"acme", "globex", "unknown"}
    assert [(p.time, p.value) for p in out["acme"].data] == [(T1 * 1000, 2), (T2 * 1000, 1)]


def test_bad_sample_values_are_skipped() -> None:
    results = [series({"namespace": "acme"}, (T1, "NaN"), (T2, "-1"), (NOW, "2"))]
    out = tenant_series(results, label_key("namespace"))
    assert [(p.time, p.value) for p in out[0].data] == [(NOW * 1000, 2)]


def test_parse_count() -> None:
    assert parse_count("4") == 4
    assert parse_count("4.0") == 4
    assert parse_count("4.5") is None
    assert parse_count("+Inf") is None
    assert parse_count("-2") is None
    assert parse_count("many") is None


def test_current_tenants_sorted_and_positive_only() -> None:
    results = [
        instant({"namespace": "small"}, "1"),
        instant({"namespace": "big"}, "9"),
        instant({"namespace": "gone"}, "0"),
        instant({}, "5"),
    ]
    tenants = current_tenants(results)
    assert [(t.namespace, t.count) for t in tenants] == [("big", 9), ("small", 1)]


def test_current_adds_services_for_top_tenants_only() -> None:
    config = MetricsConfig(top_tenants=1)
    big_selector = config.service_selector.replace("{namespace}", "big")
    backend = FakeMetricBackend(
        instant_results=[instant({"namespace": "big"}, "9"), instant({"namespace": "small"}, "1")],
        label_sets={
            big_selector: [
                {"eyevinnlabel_service": "couchdb"},
                {"eyevinnlabel_service": "valkey"},
                {"eyevinnlabel_service": "couchdb"},
                {"other": "x"},
            ]
        },
    )

    tenants = asyncio.run(MetricAggregator(backend, config).current(now=NOW))

    assert [t.to_dict() for t in tenants] == [
        {"namespace": "big", "count": 9, "services": ["couchdb", "valkey"]},
        {"namespace": "small", "count": 1, "services": []},
    ]
    assert backend.series_calls == [(big_selector, NOW - 3600, NOW)]


def test_tenant_graph_window_and_step() -> None:
    backend = FakeMetricBackend(range_results=[series({"pod": "acme-x-0"}, (T1, "1"))])
    aggregator = MetricAggregator(backend, MetricsConfig())

    out, label, step = asyncio.run(aggregator.tenant_graph("24h", now=NOW))
    assert (label, step) == ("24h", 600)
    assert backend.range_calls[-1][1:] == (NOW - 86400, NOW, 600)
    assert [s.namespace for s in out] == ["acme"]

    _, label, step = asyncio.run(aggregator.tenant_graph("7d", now=NOW))
    assert (label, step) == ("7d", 3600)

    _, label, step = asyncio.run(aggregator.tenant_graph("bogus", now=NOW))
    assert (label, step) == ("1h", 60)
    assert backend.range_calls[-1][1:] == (NOW - 3600, NOW, 60)


def test_tenant_graph_label_grouping_uses_label_query() -> None:
    config = MetricsConfig(graph_grouping="label")
    backend = FakeMetricBackend(range_results=[series({"namespace": "acme"}, (T1, "2"))])

    out, _, _ = asyncio.run(MetricAggregator(backend, config).tenant_graph("1h", now=NOW))

    assert backend.range_calls[0][0] == config.graph_label_query
    assert out[0].namespace == "acme"


def test_service_drilldown_substitutes_namespace() -> None:
    backend = FakeMetricBackend(
        range_results=[series({"created_by_name": "web-7f9c8d"}, (T1, "1"))]
    )
    out, label, step = asyncio.run(
        MetricAggregator(backend, MetricsConfig()).service_drilldown("acme", "6h", now=NOW)
    )
    assert 'pod=~"^acme-.*"' in backend.range_calls[0][0]
    assert (label, step) == ("6h", 300)
    assert out[0].service == "web"


def test_drilldown_merges_replicasets_whose_hash_has_no_digit() -> None:
    results = [
        series({"created_by_name": "web-bcdfghjkl"}, (T1, "2")),
        series({"created_by_name": "web-7f9c8d5b4"}, (T1, "1")),
    ]
    out = service_series(results, controller_key())
    assert [(s.service, [p.value for p in s.data]) for s in out] == [("web", [3])]
