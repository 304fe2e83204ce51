"""
Event aggregation: fan out over the configured log sources, parse, merge,
deduplicate and paginate.

The aggregator keeps no cursor state of its own. Callers pass ``since`` /
``before`` / ``now`` in and read the next cursors from the returned
``EventPage``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from ..backend import BackendClient, now_millis
from ..config_manager import FeedConfig, LogFormat
from .event_types import EventPage, EventType, PlatformEvent
from .parsers import parse_line, to_epoch_ms

_NS_PER_MS = 1_000_000


@dataclass(frozen=True)
class EventSource:
    name: str
    format: LogFormat
    query: str
    limit: int


@dataclass
class SourceBatch:
    """Events parsed from one source for one window.

    ``saturated`` is set when the store returned as many lines as the source
    limit allows, i.e. older lines in the window may have been cut off.
    ``oldest_line_ms`` is the oldest returned line, matched by a parser or not.
    """

    source: EventSource
    events: List[PlatformEvent] = field(default_factory=list)
    saturated: bool = False
    oldest_line_ms: Optional[int] = None


def sources_from_config(feed_config: FeedConfig) -> List[EventSource]:
    return [
        EventSource(name=name, format=src.format, query=src.query, limit=src.limit)
        for name, src in feed_config.sources.items()
        if src.enabled
    ]


def first_signup_per_email(events: Iterable[PlatformEvent]) -> List[PlatformEvent]:
    """Keep only the first event per signup email, in input order."""
    seen: set[str] = set()
    kept: List[PlatformEvent] = []
    for event in events:
        if event.tenant in seen:
            continue
        seen.add(event.tenant)
        kept.append(event)
    return kept


def dedupe_by_id(events: Iterable[PlatformEvent]) -> List[PlatformEvent]:
    seen: set[str] = set()
    unique: List[PlatformEvent] = []
    for event in events:
        if event.id in seen:
            continue
        seen.add(event.id)
        unique.append(event)
    return unique


def merge_events(batches: Sequence[Tuple[LogFormat, List[PlatformEvent]]]) -> List[PlatformEvent]:
    """Merge per-format event lists into one newest-first list without duplicate ids.

    Audit ``tenant_signup`` events are authoritative for tenant identity:
    signup-flow events whose tenant already appears there are dropped.
    """
    audit_signups = {
        e.tenant
        for fmt, events in batches
        if fmt is LogFormat.AUDIT
        for e in events
        if e.type is EventType.TENANT_SIGNUP
    }
    signups = first_signup_per_email(
        e for fmt, events in batches if fmt is LogFormat.SIGNUP for e in events
    )

    merged: List[PlatformEvent] = []
    signups_added = False
    for fmt, events in batches:
        if fmt is LogFormat.SIGNUP:
            if not signups_added:
                merged.extend(e for e in signups if e.tenant not in audit_signups)
                signups_added = True
            continue
        merged.extend(events)

    # sorted() is stable with reverse=True, so equal timestamps keep source order
    merged = sorted(merged, key=lambda e: e.timestamp, reverse=True)
    return dedupe_by_id(merged)


def backfill_window(
    before_ms: int, now_ms: int, chunk_ms: int, max_lookback_ms: int
) -> Tuple[int, int, bool]:
    """Return ``(start, end, has_more)`` for the page ending at ``before_ms``.

    The start is clamped to the lookback floor so pages never reach past it.
    """
    floor = now_ms - max_lookback_ms
    end = min(before_ms, now_ms)
    start = max(end - chunk_ms, floor)
    has_more = (end - chunk_ms) > floor
    return start, end, has_more


class EventAggregator:
    """Collects platform events from the log store.

    Args:
        client (BackendClient): Query client for the log store.
        feed_config (FeedConfig): Sources and pagination window.
    """

    def __init__(self, client: BackendClient, feed_config: FeedConfig):
        self.client = client
        self.feed_config = feed_config
        self.sources = sources_from_config(feed_config)
        self._log = logger.bind(component="event_aggregator")

    async def fetch_source(
        self, source: EventSource, start_ms: int, end_ms: int
    ) -> SourceBatch:
        streams = await self.client.loki_query_range(
            source.query,
            start_ms * _NS_PER_MS,
            end_ms * _NS_PER_MS,
            limit=source.limit,
            direction="backward",
        )
        batch = SourceBatch(source=source)
        line_count = 0
        for stream in streams:
            for raw_ts, line in stream.values:
                line_count += 1
                line_ms = to_epoch_ms(raw_ts)
                if line_ms is not None and (
                    batch.oldest_line_ms is None or line_ms < batch.oldest_line_ms
                ):
                    batch.oldest_line_ms = line_ms
                event = parse_line(source.format, raw_ts, line)
                if event is not None:
                    batch.events.append(event)
        batch.saturated = line_count >= source.limit
        self._log.debug(
            f"source {source.name}: {line_count} lines -> {len(batch.events)} events"
        )
        return batch

    async def collect(self, start_ms: int, end_ms: int) -> List[SourceBatch]:
        """Query every source concurrently; a failing source contributes an empty batch."""
        results = await asyncio.gather(
            *(self.fetch_source(s, start_ms, end_ms) for s in self.sources),
            return_exceptions=True,
        )
        batches: List[SourceBatch] = []
        for source, result in zip(self.sources, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                self._log.opt(exception=result).warning(
                    f"source {source.name} failed, contributing no events"
                )
                batches.append(SourceBatch(source=source))
            else:
                batches.append(result)
        return batches

    async def poll_since(self, since_ms: int, now_ms: Optional[int] = None) -> EventPage:
        """Live-poll mode: everything in ``[since, now]``.

        ``latest_timestamp`` is the newest event seen, or ``now`` when nothing
        matched, and becomes the caller's next ``since``.
        """
        now_ms = now_millis() if now_ms is None else now_ms
        start_ms = min(since_ms, now_ms)
        batches = await self.collect(start_ms, now_ms)
        events = merge_events([(b.source.format, b.events) for b in batches])
        latest = events[0].timestamp if events else now_ms
        return EventPage(events=events, latest_timestamp=latest, has_more=False)

    async def page_before(
        self, before_ms: Optional[int] = None, now_ms: Optional[int] = None
    ) -> EventPage:
        """Backfill mode: one chunk ending at ``before`` (default now).

        ``oldest_timestamp`` is the next page's ``before``. It is the oldest
        event in the page, the window start when the page is empty or only holds
        events on the boundary, or, when a source hit its line limit, the oldest
        line (parsed or not) every such source returned.
        """
        now_ms = now_millis() if now_ms is None else now_ms
        before_ms = now_ms if before_ms is None else before_ms
        start_ms, end_ms, has_more = backfill_window(
            before_ms,
            now_ms,
            self.feed_config.chunk_ms,
            self.feed_config.max_lookback_ms,
        )
        if end_ms <= start_ms:
            return EventPage(
                events=[], latest_timestamp=end_ms, oldest_timestamp=end_ms, has_more=False
            )

        batches = await self.collect(start_ms, end_ms)
        events = merge_events([(b.source.format, b.events) for b in batches])

        oldest = events[-1].timestamp if events else start_ms
        if oldest >= end_ms:
            # only events on the boundary: the window is fully covered
            oldest = start_ms
        # noise lines count too: a saturated source covers only down to its oldest line
        cut_offs = [
            b.oldest_line_ms
            for b in batches
            if b.saturated and b.oldest_line_ms is not None
        ]
        if cut_offs:
            # always move back, even when every returned line sits on the boundary
            oldest = min(max(cut_offs), end_ms - 1)
            has_more = has_more or oldest > start_ms
        latest = events[0].timestamp if events else end_ms
        return EventPage(
            events=events,
            latest_timestamp=latest,
            oldest_timestamp=oldest,
            has_more=has_more,
        )
