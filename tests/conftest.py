import os
import sys
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import httpx
import pytest

# Ensure project package import by adding src to sys.path
SRC_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from osc_monitor.backend import BackendClient, LokiStream  # noqa: E402
from osc_monitor.config_manager import (  # noqa: E402
    BackendConfig,
    FeedConfig,
    LogFormat,
    LogSourceConfig,
)

AUDIT_QUERY = '{job="gui/ui"} |= "audit"'
SIGNUP_QUERY = '{namespace="osaas"} |~ "create-team" |~ "magic-link"'
PLAN_QUERY = '{job="osaas/money-manager"} |= "POST" |= "/tenantplan"'
ACTION_QUERY = '{job="osaas/osaas-api"} |= "action" |= "success"'


def audit_line(customer: str, action: str, resource: str) -> str:
    return (
        f"level=info component=app customer={customer} "
        f'msg="[audit] User u1 performed action {action} on resource {resource}"'
    )


def loki_body(streams: List[dict]) -> dict:
    return {"status": "success", "data": {"resultType": "streams", "result": streams}}


def prom_body(results: List[dict], result_type: str = "matrix") -> dict:
    return {"status": "success", "data": {"resultType": result_type, "result": results}}


def feed_config(**overrides) -> FeedConfig:
    sources = {
        "audit": LogSourceConfig(format=LogFormat.AUDIT, query=AUDIT_QUERY, limit=200),
        "signup": LogSourceConfig(format=LogFormat.SIGNUP, query=SIGNUP_QUERY, limit=50),
        "plan": LogSourceConfig(format=LogFormat.PLAN_CHANGE, query=PLAN_QUERY, limit=50),
        "api": LogSourceConfig(
            format=LogFormat.STRUCTURED_ACTION, query=ACTION_QUERY, limit=100
        ),
    }
    sources.update(overrides.pop("sources", {}))
    return FeedConfig(sources=sources, **overrides)


class FakeLokiBackend:
    """In-memory stand-in for BackendClient.loki_query_range.

    Lines are keyed by query string; only lines inside the requested
    nanosecond window are returned, newest first and cut at ``limit``.
    """

    def __init__(
        self,
        lines_by_query: Optional[Dict[str, Iterable[Tuple[str, str]]]] = None,
        failing: Iterable[str] = (),
    ):
        self.lines_by_query = {q: list(v) for q, v in (lines_by_query or {}).items()}
        self.failing = set(failing)
        self.calls: List[Tuple[str, int, int, int]] = []

    async def loki_query_range(self, query, start_ns, end_ns, limit=100, direction="backward"):
        self.calls.append((query, start_ns, end_ns, limit))
        if query in self.failing:
            raise RuntimeError(f"backend exploded for {query}")
        values = [
            (ts, line)
            for ts, line in self.lines_by_query.get(query, [])
            if start_ns <= int(ts) <= end_ns
        ]
        values.sort(key=lambda v: int(v[0]), reverse=True)
        if not values:
            return []
        return [LokiStream(stream={"job": "test"}, values=values[:limit])]


@pytest.fixture
def make_backend() -> Callable[[Callable[[httpx.Request], httpx.Response]], BackendClient]:
    """Build a BackendClient whose HTTP traffic is answered by ``handler``."""

    def _make(handler):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return BackendClient(
            BackendConfig(grafana_url="https://grafana.test", grafana_token="test-token"),
            http_client=http_client,
        )

    return _make
