# config_manager/feed.py
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LogFormat(str, Enum):
    """Which parser handles the lines produced by a log source."""

    AUDIT = "audit"
    SIGNUP = "signup"
    STRUCTURED_ACTION = "structured_action"
    PLAN_CHANGE = "plan_change"


class LogSourceConfig(BaseModel):
    """One LogQL query feeding the event stream."""

    model_config = ConfigDict(extra="forbid")

    format: LogFormat
    query: str
    limit: int = Field(100, gt=0, le=5000)
    enabled: bool = True


def _default_sources() -> Dict[str, LogSourceConfig]:
    return {
        "gui_audit": LogSourceConfig(
            format=LogFormat.AUDIT,
            query='{job="gui/ui"} |= "audit"',
            limit=200,
        ),
        "magic_link_signup": LogSourceConfig(
            format=LogFormat.SIGNUP,
            query='{namespace="osaas"} |~ "create-team" |~ "magic-link"',
            limit=50,
        ),
        "money_manager_plan": LogSourceConfig(
            format=LogFormat.PLAN_CHANGE,
            query='{job="osaas/money-manager"} |= "POST" |= "/tenantplan"',
            limit=50,
        ),
        "api_actions": LogSourceConfig(
            format=LogFormat.STRUCTURED_ACTION,
            query='{job="osaas/osaas-api"} |= "action" |= "success"',
            limit=100,
        ),
    }


class FeedConfig(BaseModel):
    """Event feed sources, pagination window and poller defaults."""

    model_config = ConfigDict(extra="forbid")

    sources: Dict[str, LogSourceConfig] = Field(default_factory=_default_sources)
    chunk_days: float = Field(3, alias="chunk_days", gt=0)
    max_lookback_days: float = Field(30, alias="max_lookback_days", gt=0)
    poll_interval_sec: int = Field(30, alias="poll_interval_sec")
    internal_tenants: List[str] = Field(
        default_factory=lambda: [
            "eyevinn",
            "eyevinnlab",
            "simonsteam",
            "team2",
            "oscaidev",
            "testnp",
            "simondemo",
            "birme",
            "birispriv",
        ],
        alias="internal_tenants",
        description="Tenants hidden by the feed poller when internal tenants are filtered out.",
    )

    @model_validator(mode="after")
    def check_window(cls, values):
        if values.chunk_days > values.max_lookback_days:
            raise ValueError("chunk_days must not exceed max_lookback_days")
        if values.poll_interval_sec < 1:
            values.poll_interval_sec = 30
        return values

    @property
    def chunk_ms(self) -> int:
        return int(self.chunk_days * 86400 * 1000)

    @property
    def max_lookback_ms(self) -> int:
        return int(self.max_lookback_days * 86400 * 1000)
