"""Fixed mapping between chart range labels, window length and query step."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone

RANGE_SECONDS: dict[str, int] = {
    "1h": 3600,
    "6h": 21600,
    "12h": 43200,
    "24h": 86400,
    "48h": 172800,
    "7d": 604800,
}

DEFAULT_RANGE = "1h"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def normalize_range(label: str | None, default: str = DEFAULT_RANGE) -> str:
    """Return ``label`` if it is a known range, otherwise ``default``."""
    if label in RANGE_SECONDS:
        return label  # type: ignore[return-value]
    return default


def range_seconds(label: str | None) -> int:
    return RANGE_SECONDS.get(label or "", RANGE_SECONDS[DEFAULT_RANGE])


def step_for_range(range_secs: int) -> int:
    """Query resolution in seconds for a window of ``range_secs``."""
    if range_secs <= 3600:
        return 60
    if range_secs <= 21600:
        return 300
    if range_secs <= 86400:
        return 600
    if range_secs <= 172800:
        return 1200
    return 3600


def now_seconds() -> int:
    return int(time.time())


def now_millis() -> int:
    return int(time.time() * 1000)


def parse_iso_ms(value: str) -> int:
    """Parse an ISO 8601 timestamp into epoch milliseconds.

    A trailing ``Z`` is accepted and naive timestamps are taken as UTC.

    Raises:
        ValueError: If ``value`` is not an ISO 8601 timestamp.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return (parsed - _EPOCH) // timedelta(milliseconds=1)


def iso_from_ms(ms: int) -> str:
    """Epoch milliseconds -> ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    dt = _EPOCH + timedelta(milliseconds=ms)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
