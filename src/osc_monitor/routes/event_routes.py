"""
Event feed API routes.

``GET /events?since=...`` serves the live poll, ``GET /events?before=...``
(or no cursor at all) serves one backfill page. Cursors are ISO 8601
timestamps; the response carries the cursors for the next request.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from loguru import logger

from ..backend import iso_from_ms, parse_iso_ms
from ..events import EventAggregator, EventPage


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"events": [], "count": 0, "error": message},
    )


def _page_body(page: EventPage, include_oldest: bool) -> dict[str, Any]:
    body: dict[str, Any] = {
        "events": [e.to_dict() for e in page.events],
        "count": len(page.events),
        "latestTimestamp": iso_from_ms(page.latest_timestamp),
        "hasMore": page.has_more,
    }
    if include_oldest and page.oldest_timestamp is not None:
        body["oldestTimestamp"] = iso_from_ms(page.oldest_timestamp)
    return body


def init_event_routes(aggregator: EventAggregator) -> APIRouter:
    """Create the event feed routes.

    Args:
            aggregator (EventAggregator): Aggregator bound to the shared backend client.

    Returns:
            APIRouter: Router exposing `GET /events`.
    """
    router = APIRouter(tags=["events"])
    log = logger.bind(component="events_api")

    @router.get("/events")
    async def get_events(
        since: Optional[str] = None, before: Optional[str] = None
    ) -> Any:
        """Return platform events newer than `since`, or one page older than `before`.

        `since` wins when both are given.
        """
        cursor_name, cursor_value = ("since", since) if since else ("before", before)
        try:
            cursor_ms = parse_iso_ms(cursor_value) if cursor_value else None
        except ValueError:
            log.info(f"rejecting /events with invalid {cursor_name}={cursor_value!r}")
            return _error(400, f"invalid {cursor_name} timestamp: {cursor_value}")

        try:
            if since:
                page = await aggregator.poll_since(cursor_ms)
                body = _page_body(page, include_oldest=False)
            else:
                page = await aggregator.page_before(cursor_ms)
                body = _page_body(page, include_oldest=True)
        except Exception as e:
            log.exception("events fetch error")
            return _error(500, str(e))

        log.debug(
            f"/events {cursor_name}={cursor_value} -> {body['count']} events, hasMore={body['hasMore']}"
        )
        return body

    return router
