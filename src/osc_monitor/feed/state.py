from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from loguru import logger

from ..events import PlatformEvent

_log = logger.bind(component="feed_state")


@dataclass
class FeedCursor:
    """Cursors echoed back by ``/events``: ISO 8601 strings as the API returns them."""

    latest: Optional[str] = None
    oldest: Optional[str] = None
    has_more: bool = True


@dataclass
class FeedState:
    """Client-side view of the event feed, newest first.

    ``apply_*`` return only the events that were not already present, so the
    same event delivered by overlapping windows or pages is shown once.
    """

    events: List[PlatformEvent] = field(default_factory=list)
    cursor: FeedCursor = field(default_factory=FeedCursor)
    muted: Set[str] = field(default_factory=set)
    hide_internal: bool = False
    internal_tenants: Set[str] = field(default_factory=set)
    _ids: Set[str] = field(default_factory=set, repr=False)

    def _unseen(self, body: Dict[str, Any]) -> List[PlatformEvent]:
        fresh: List[PlatformEvent] = []
        for raw in body.get("events") or []:
            try:
                event = PlatformEvent.from_dict(raw)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                _log.warning(f"skipping malformed event {raw!r}: {type(e).__name__}: {e}")
                continue
            if event.id in self._ids:
                continue
            self._ids.add(event.id)
            fresh.append(event)
        return fresh

    def apply_initial(self, body: Dict[str, Any]) -> List[PlatformEvent]:
        self._ids = set()
        fresh = self._unseen(body)
        self.events = list(fresh)
        self.cursor = FeedCursor(
            latest=body.get("latestTimestamp"),
            oldest=body.get("oldestTimestamp"),
            has_more=bool(body.get("hasMore")),
        )
        return fresh

    def apply_live(self, body: Dict[str, Any]) -> List[PlatformEvent]:
        fresh = self._unseen(body)
        if fresh:
            self.events = sorted(fresh + self.events, key=lambda e: e.timestamp, reverse=True)
        if body.get("latestTimestamp"):
            self.cursor.latest = body["latestTimestamp"]
        return fresh

    def apply_backfill(self, body: Dict[str, Any]) -> List[PlatformEvent]:
        fresh = self._unseen(body)
        self.events.extend(sorted(fresh, key=lambda e: e.timestamp, reverse=True))
        if body.get("oldestTimestamp"):
            self.cursor.oldest = body["oldestTimestamp"]
        self.cursor.has_more = bool(body.get("hasMore"))
        return fresh

    def is_hidden(self, event: PlatformEvent) -> bool:
        if event.tenant in self.muted:
            return True
        return self.hide_internal and event.tenant in self.internal_tenants

    def visible(self, events: Optional[Iterable[PlatformEvent]] = None) -> List[PlatformEvent]:
        source = self.events if events is None else events
        return [e for e in source if not self.is_hidden(e)]

    def mute(self, tenant: str) -> None:
        self.muted.add(tenant)

    def unmute(self, tenant: str) -> None:
        self.muted.discard(tenant)
