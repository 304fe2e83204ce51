# config_manager/system.py
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SystemConfig(BaseModel):
    """System configuration settings."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field("localhost", alias="host")
    port: int = Field(12393, alias="port")
    rate_limit: str = Field(
        default="120/minute",
        alias="rate_limit",
        description="SlowAPI default limit applied per client address to every route.",
    )
    cors_origins: List[str] = Field(
        default_factory=lambda: ["*"],
        alias="cors_origins",
        description="Origins allowed to call the API from a browser.",
    )
    frontend_dir: Optional[str] = Field(
        default=None,
        alias="frontend_dir",
        description="Optional directory with a prebuilt dashboard, served at '/'.",
    )

    @model_validator(mode="after")
    def check_port(cls, values):
        port = values.port
        if port < 0 or port > 65535:
            raise ValueError("Port must be between 0 and 65535")
        return values
