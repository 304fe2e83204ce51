from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

UNKNOWN_TENANT = "unknown"


class EventType(str, Enum):
    INSTANCE_CREATED = "instance_created"
    INSTANCE_REMOVED = "instance_removed"
    INSTANCE_RESTARTED = "instance_restarted"
    TENANT_SIGNUP = "tenant_signup"
    SOLUTION_DEPLOYED = "solution_deployed"
    SOLUTION_DESTROYED = "solution_destroyed"
    PLAN_UPGRADE = "plan_upgrade"
    PLAN_DOWNGRADE = "plan_downgrade"
    OTHER = "other"


EVENT_EMOJI: Dict[EventType, str] = {
    EventType.INSTANCE_CREATED: "🚀",
    EventType.INSTANCE_REMOVED: "🗑️",
    EventType.INSTANCE_RESTARTED: "🔄",
    EventType.TENANT_SIGNUP: "👤",
    EventType.SOLUTION_DEPLOYED: "🔧",
    EventType.SOLUTION_DESTROYED: "💣",
    EventType.PLAN_UPGRADE: "⬆️",
    EventType.PLAN_DOWNGRADE: "⬇️",
    EventType.OTHER: "📌",
}


@dataclass(frozen=True)
class PlatformEvent:
    """Normalized platform event shown in the feed.

    ``attributed`` is False when the source line carries no tenant identity
    and ``tenant`` holds the ``"unknown"`` placeholder.
    """

    id: str
    type: EventType
    emoji: str
    tenant: str
    description: str
    timestamp: int
    attributed: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlatformEvent":
        event_type = EventType(data.get("type", EventType.OTHER.value))
        return cls(
            id=str(data["id"]),
            type=event_type,
            emoji=str(data.get("emoji") or EVENT_EMOJI[event_type]),
            tenant=str(data.get("tenant") or UNKNOWN_TENANT),
            description=str(data.get("description") or ""),
            timestamp=int(data["timestamp"]),
            attributed=bool(data.get("attributed", True)),
        )


@dataclass(frozen=True)
class ActionSpec:
    """What a recognized action verb turns into.

    ``template`` is formatted with ``tenant``, ``resource``, ``service`` and
    ``instance``.
    """

    type: EventType
    kind: str
    template: str

    @property
    def emoji(self) -> str:
        return EVENT_EMOJI[self.type]


@dataclass
class EventPage:
    """Result of one aggregation request plus the cursors for the next one.

    Timestamps are epoch milliseconds. ``oldest_timestamp`` is only set for
    backfill pages.
    """

    events: List[PlatformEvent]
    latest_timestamp: int
    oldest_timestamp: Optional[int] = None
    has_more: bool = False
