"""
Backend query client for the Grafana-proxied Loki and Prometheus datasources.

Every public query method is best-effort: transport failures, non-2xx
responses, non-``success`` payloads and bodies that do not match the expected
shape are logged and returned as an empty list. Callers never see an
exception from this module.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import httpx
from loguru import logger
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..config_manager import BackendConfig


class LokiStream(BaseModel):
    """One labelled stream of ``(timestamp, line)`` pairs from ``query_range``."""

    stream: Dict[str, str] = Field(default_factory=dict)
    values: List[Tuple[str, str]] = Field(default_factory=list)


class PromResult(BaseModel):
    """One Prometheus series: range queries fill ``values``, instant queries ``value``."""

    metric: Dict[str, str] = Field(default_factory=dict)
    values: List[Tuple[float, str]] = Field(default_factory=list)
    value: Optional[Tuple[float, str]] = None


_STREAMS = TypeAdapter(List[LokiStream])
_PROM_RESULTS = TypeAdapter(List[PromResult])
_LABEL_SETS = TypeAdapter(List[Dict[str, str]])


class BackendClient:
    """Authenticated async client for the log store and the metric store.

    Args:
        config (BackendConfig): Grafana URL, datasource uids, token and timeout.
        http_client (httpx.AsyncClient, optional): Client to issue requests with.
            When omitted one is created and owned (closed by ``aclose``).
    """

    def __init__(
        self, config: BackendConfig, http_client: Optional[httpx.AsyncClient] = None
    ):
        self.config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_sec)
        self._log = logger.bind(component="backend")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_data(self, kind: str, url: str, params: Dict[str, Any]) -> Any:
        """Issue one GET and return the ``data`` member of a successful payload, else None."""
        try:
            res = await self._client.get(
                url, params=params, headers=self.config.auth_headers
            )
        except httpx.HTTPError as e:
            self._log.warning(f"{kind} request failed: {type(e).__name__}: {e}")
            return None

        if not res.is_success:
            self._log.warning(f"{kind} query failed: {res.status_code} {res.reason_phrase}")
            return None

        try:
            body = res.json()
        except ValueError:
            self._log.warning(f"{kind} query returned a non-JSON body")
            return None

        if not isinstance(body, dict) or body.get("status") != "success":
            self._log.warning(f"{kind} query returned status={body.get('status') if isinstance(body, dict) else None!r}")
            return None
        return body.get("data")

    async def loki_query_range(
        self,
        query: str,
        start_ns: int,
        end_ns: int,
        limit: int = 100,
        direction: str = "backward",
    ) -> List[LokiStream]:
        """Run a LogQL range query; timestamps are epoch nanoseconds."""
        data = await self._get_data(
            "Loki",
            f"{self.config.loki_base}/query_range",
            {
                "query": query,
                "start": str(start_ns),
                "end": str(end_ns),
                "limit": str(limit),
                "direction": direction,
            },
        )
        if not isinstance(data, dict):
            return []
        try:
            return _STREAMS.validate_python(data.get("result") or [])
        except ValidationError as e:
            self._log.warning(f"Loki result has unexpected shape: {e.error_count()} errors")
            return []

    async def loki_series(self, match: str, start: int, end: int) -> List[Dict[str, str]]:
        """Return the label sets of streams matching ``match`` between epoch seconds."""
        data = await self._get_data(
            "Loki series",
            f"{self.config.loki_base}/series",
            {"match[]": match, "start": str(start), "end": str(end)},
        )
        if data is None:
            return []
        try:
            return _LABEL_SETS.validate_python(data)
        except ValidationError as e:
            self._log.warning(f"Loki series has unexpected shape: {e.error_count()} errors")
            return []

    async def prom_query_range(
        self, query: str, start: int, end: int, step: int
    ) -> List[PromResult]:
        """Run a PromQL range query between epoch seconds at ``step`` resolution."""
        data = await self._get_data(
            "Prometheus range",
            f"{self.config.prom_base}/query_range",
            {"query": query, "start": str(start), "end": str(end), "step": str(step)},
        )
        return self._prom_results(data)

    async def prom_query(self, query: str) -> List[PromResult]:
        """Run a PromQL instant query."""
        data = await self._get_data(
            "Prometheus", f"{self.config.prom_base}/query", {"query": query}
        )
        return self._prom_results(data)

    def _prom_results(self, data: Any) -> List[PromResult]:
        if not isinstance(data, dict):
            return []
        try:
            return _PROM_RESULTS.validate_python(data.get("result") or [])
        except ValidationError as e:
            self._log.warning(f"Prometheus result has unexpected shape: {e.error_count()} errors")
            return []
