# config_manager/main.py
from pydantic import BaseModel, Field

from .backend import BackendConfig
from .feed import FeedConfig
from .metrics import MetricsConfig
from .system import SystemConfig


class Config(BaseModel):
    """
    Main configuration for the application.
    """

    system_config: SystemConfig = Field(default_factory=SystemConfig, alias="system_config")
    backend_config: BackendConfig = Field(default_factory=BackendConfig, alias="backend_config")
    feed_config: FeedConfig = Field(default_factory=FeedConfig, alias="feed_config")
    metrics_config: MetricsConfig = Field(default_factory=MetricsConfig, alias="metrics_config")
