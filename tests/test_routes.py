"""HTTP-level tests for the monitor API, with the backend answered by a mock transport."""

import httpx
import pytest
from conftest import audit_line, loki_body, prom_body
from fastapi.testclient import TestClient

from osc_monitor.config_manager import Config
from osc_monitor.server import MonitorServer

TS_NS = "1700000000000000000"


def grafana_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    query = request.url.params.get("query", "")
    if path.endswith("/loki/api/v1/query_range"):
        if "audit" in query:
            return httpx.Response(
                200,
                json=loki_body(
                    [
                        {
                            "stream": {"job": "gui/ui"},
                            "values": [
                                [TS_NS, audit_line("acme", "create:instance", "couchdb/db")]
                            ],
                        }
                    ]
                ),
            )
        return httpx.Response(200, json=loki_body([]))
    if path.endswith("/loki/api/v1/series"):
        return httpx.Response(
            200, json={"status": "success", "data": [{"eyevinnlabel_service": "couchdb"}]}
        )
    if path.endswith("/api/v1/query_range"):
        return httpx.Response(
            200,
            json=prom_body(
                [
                    {"metric": {"pod": "acme-couchdb-0"}, "values": [[1700000000, "1"]]},
                    {"metric": {"created_by_name": "web-7f9c8d"}, "values": [[1700000000, "3"]]},
                ]
            ),
        )
    if path.endswith("/api/v1/query"):
        return httpx.Response(
            200,
            json=prom_body(
                [{"metric": {"namespace": "acme"}, "value": [1700000000, "2"]}], "vector"
            ),
        )
    return httpx.Response(404)


@pytest.fixture
def client(make_backend):
    server = MonitorServer(Config(), backend_client=make_backend(grafana_handler))
    return TestClient(server.app)


@pytest.fixture
def down_client(make_backend):
    server = MonitorServer(
        Config(), backend_client=make_backend(lambda request: httpx.Response(502))
    )
    return TestClient(server.app)


def test_healthz_and_request_id(client) -> None:
    res = client.get("/healthz", headers={"X-Request-ID": "abc-123"})
    assert res.status_code == 200
    assert res.json() == {"ok": True}
    assert res.headers["X-Request-ID"] == "abc-123"
    assert client.get("/healthz").headers["X-Request-ID"]


def test_malformed_request_id_is_replaced(client) -> None:
    res = client.get("/healthz", headers={"X-Request-ID": "bad id with spaces"})
    rid = res.headers["X-Request-ID"]
    assert rid != "bad id with spaces"
    assert len(rid) == 36


def test_events_live_poll(client) -> None:
    res = client.get("/events", params={"since": "2023-11-14T22:00:00Z"})
    body = res.json()

    assert res.status_code == 200
    assert body["count"] == 1
    assert body["events"][0]["type"] == "instance_created"
    assert body["events"][0]["tenant"] == "acme"
    assert body["latestTimestamp"] == "2023-11-14T22:13:20.000Z"
    assert body["hasMore"] is False
    assert "oldestTimestamp" not in body


def test_events_backfill_page_carries_oldest_cursor(client) -> None:
    body = client.get("/events").json()

    assert body["count"] == 1
    assert body["oldestTimestamp"] == "2023-11-14T22:13:20.000Z"
    assert body["hasMore"] is True


def test_events_invalid_cursor_is_400(client) -> None:
    res = client.get("/events", params={"since": "not-a-date"})
    assert res.status_code == 400
    assert res.json()["events"] == []
    assert res.json()["count"] == 0
    assert "since" in res.json()["error"]

    res = client.get("/events", params={"before": "tomorrow"})
    assert res.status_code == 400


def test_events_with_backend_down_is_empty_not_error(down_client) -> None:
    res = down_client.get("/events", params={"since": "2023-11-14T22:00:00Z"})
    assert res.status_code == 200
    assert res.json()["events"] == []


def test_instances_graph(client) -> None:
    body = client.get("/instances/graph", params={"range": "24h"}).json()
    assert body["range"] == "24h"
    assert body["step"] == 600
    assert {s["namespace"] for s in body["series"]} == {"acme", "unknown"}

    body = client.get("/instances/graph", params={"range": "forever"}).json()
    assert (body["range"], body["step"]) == ("1h", 60)


def test_instances_drilldown(client) -> None:
    body = client.get("/instances/drilldown", params={"namespace": "acme"}).json()
    assert body["namespace"] == "acme"
    assert body["range"] == "6h"
    assert body["step"] == 300
    assert {"service": "web", "data": [{"time": 1700000000000, "value": 3}]} in body["series"]


def test_instances_drilldown_requires_valid_namespace(client) -> None:
    res = client.get("/instances/drilldown")
    assert res.status_code == 400
    assert res.json() == {"error": "namespace required"}

    res = client.get("/instances/drilldown", params={"namespace": 'acme"}) or up{'})
    assert res.status_code == 400


def test_instances_current(client) -> None:
    body = client.get("/instances/current").json()
    assert body == {"tenants": [{"namespace": "acme", "count": 2, "services": ["couchdb"]}]}


def test_instances_with_backend_down_are_empty(down_client) -> None:
    assert down_client.get("/instances/graph").json()["series"] == []
    assert down_client.get("/instances/current").json() == {"tenants": []}
