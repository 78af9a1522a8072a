"""config/ — pydantic-settings runtime configuration."""

from taskclock.config.settings import (
    LoggingConfig,
    SchedulerConfig,
    Settings,
    get_settings,
    load_settings,
)

__all__ = ["LoggingConfig", "SchedulerConfig", "Settings", "get_settings", "load_settings"]
