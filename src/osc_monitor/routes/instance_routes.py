"""Instance-count API routes backing the stacked chart and tenant sidebar."""

from __future__ import annotations

import re
from typing import Any, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..metrics import MetricAggregator

# Kubernetes namespace names (RFC 1123 label); also keeps PromQL selectors intact
_NAMESPACE_RE = re.compile(r"^[a-z0-9]([-a-z0-9]{0,61}[a-z0-9])?$")


def init_instance_routes(aggregator: MetricAggregator) -> APIRouter:
    """Create the instance routes.

    Args:
            aggregator (MetricAggregator): Aggregator bound to the shared backend client.

    Returns:
            APIRouter: Router exposing `/instances/graph`, `/instances/drilldown` and `/instances/current`.
    """
    router = APIRouter(prefix="/instances", tags=["instances"])

    @router.get("/graph")
    async def get_graph(range: Optional[str] = "1h") -> dict[str, Any]:
        """Per-tenant instance counts over `range`; unknown ranges fall back to 1h."""
        series, label, step = await aggregator.tenant_graph(range)
        return {"series": [s.to_dict() for s in series], "range": label, "step": step}

    @router.get("/drilldown")
    async def get_drilldown(
        namespace: Optional[str] = None, range: Optional[str] = "6h"
    ) -> Any:
        """Per-service instance counts for one tenant."""
        if not namespace:
            return JSONResponse(status_code=400, content={"error": "namespace required"})
        if not _NAMESPACE_RE.match(namespace):
            return JSONResponse(
                status_code=400, content={"error": f"invalid namespace: {namespace}"}
            )
        series, label, step = await aggregator.service_drilldown(namespace, range)
        return {
            "series": [s.to_dict() for s in series],
            "namespace": namespace,
            "range": label,
            "step": step,
        }

    @router.get("/current")
    async def get_current() -> dict[str, Any]:
        """Current instance count per tenant, largest first."""
        tenants = await aggregator.current()
        return {"tenants": [t.to_dict() for t in tenants]}

    return router
