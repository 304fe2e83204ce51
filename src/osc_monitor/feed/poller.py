from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx
from loguru import logger

from ..events import PlatformEvent
from .state import FeedState

NewEventsCallback = Callable[[List[PlatformEvent]], None]


class EventFeedPoller:
    """Async poller that keeps a ``FeedState`` in sync with ``GET /events``.

    Usage:
        poller = EventFeedPoller("http://localhost:12393", on_new_events=print_events)
        await poller.start()
        ...
        await poller.stop()

    Requests are numbered; a live-poll response is only applied when it is
    newer than the last one applied, so a slow poll finishing after a faster
    later one cannot roll the cursor back.
    """

    def __init__(
        self,
        base_url: str,
        interval_sec: int = 30,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        on_new_events: Optional[NewEventsCallback] = None,
        muted: Iterable[str] = (),
        hide_internal: bool = False,
        internal_tenants: Iterable[str] = (),
    ):
        self.base_url = base_url.rstrip("/")
        self.interval_sec = max(1, int(interval_sec))
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=30.0)
        self._on_new_events = on_new_events
        self.state = FeedState(
            muted=set(muted),
            hide_internal=hide_internal,
            internal_tenants=set(internal_tenants),
        )
        self._live_seq = 0
        self._live_applied = 0
        self._loading_older = False
        self._task: Optional[asyncio.Task] = None
        self._stopping = False
        self._log = logger.bind(component="feed_poller")

    async def _fetch(self, params: Dict[str, str]) -> Optional[Dict[str, Any]]:
        try:
            res = await self._client.get(f"{self.base_url}/events", params=params)
        except httpx.HTTPError as e:
            self._log.warning(f"/events request failed: {e}")
            return None
        if not res.is_success:
            try:
                error = res.json().get("error")
            except ValueError:
                error = res.reason_phrase
            self._log.warning(f"/events returned {res.status_code}: {error}")
            return None
        return res.json()

    def _notify(self, events: List[PlatformEvent]) -> None:
        visible = self.state.visible(events)
        if visible and self._on_new_events:
            self._on_new_events(visible)

    async def load_initial(self) -> List[PlatformEvent]:
        """Load the first backfill page and initialize both cursors."""
        body = await self._fetch({})
        if body is None:
            return []
        events = self.state.apply_initial(body)
        self._notify(events)
        return events

    async def poll_new(self) -> List[PlatformEvent]:
        """Fetch events newer than the latest cursor; returns the ones not seen before."""
        if self.state.cursor.latest is None:
            return await self.load_initial()
        self._live_seq += 1
        seq = self._live_seq
        body = await self._fetch({"since": self.state.cursor.latest})
        if body is None:
            return []
        if seq <= self._live_applied:
            self._log.debug(f"discarding superseded poll #{seq}")
            return []
        self._live_applied = seq
        events = self.state.apply_live(body)
        self._notify(events)
        return events

    async def load_older(self) -> List[PlatformEvent]:
        """Fetch the page before the oldest cursor, if history remains."""
        cursor = self.state.cursor
        if self._loading_older or not cursor.has_more or cursor.oldest is None:
            return []
        self._loading_older = True
        try:
            body = await self._fetch({"before": cursor.oldest})
        finally:
            self._loading_older = False
        if body is None:
            return []
        return self.state.apply_backfill(body)

    async def _loop(self) -> None:
        self._log.info(f"EventFeedPoller started: every {self.interval_sec}s")
        try:
            while not self._stopping:
                try:
                    await self.poll_new()
                except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
                    self._log.warning(f"poll failed: {e}")
                await asyncio.sleep(self.interval_sec)
        except asyncio.CancelledError:
            pass
        finally:
            self._log.info("EventFeedPoller stopped")

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._stopping = False
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        self._stopping = True
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        if self._owns_client:
            await self._client.aclose()
