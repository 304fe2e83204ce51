# config_manager/__init__.py
from .backend import BackendConfig
from .feed import FeedConfig, LogFormat, LogSourceConfig
from .main import Config
from .metrics import MetricsConfig
from .system import SystemConfig
from .utils import read_yaml, validate_config

__all__ = [
    "BackendConfig",
    "Config",
    "FeedConfig",
    "LogFormat",
    "LogSourceConfig",
    "MetricsConfig",
    "SystemConfig",
    "read_yaml",
    "validate_config",
]
