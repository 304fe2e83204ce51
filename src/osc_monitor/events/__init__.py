from .aggregator import (
    EventAggregator,
    EventSource,
    backfill_window,
    dedupe_by_id,
    first_signup_per_email,
    merge_events,
)
from .event_types import EVENT_EMOJI, EventPage, EventType, PlatformEvent
from .parsers import parse_line, to_epoch_ms

__all__ = [
    "EVENT_EMOJI",
    "EventAggregator",
    "EventPage",
    "EventSource",
    "EventType",
    "PlatformEvent",
    "backfill_window",
    "dedupe_by_id",
    "first_signup_per_email",
    "merge_events",
    "parse_line",
    "to_epoch_ms",
]
