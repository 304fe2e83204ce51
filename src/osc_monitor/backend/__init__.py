from .client import BackendClient, LokiStream, PromResult
from .time_ranges import (
    RANGE_SECONDS,
    iso_from_ms,
    normalize_range,
    now_millis,
    now_seconds,
    parse_iso_ms,
    range_seconds,
    step_for_range,
)

__all__ = [
    "BackendClient",
    "LokiStream",
    "PromResult",
    "RANGE_SECONDS",
    "iso_from_ms",
    "normalize_range",
    "now_millis",
    "now_seconds",
    "parse_iso_ms",
    "range_seconds",
    "step_for_range",
]
