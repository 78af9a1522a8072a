"""
config/settings.py — taskclock Runtime Settings

Merges config.yaml (defaults/structure) with environment variables.
Pydantic-powered — all fields are validated and typed.

  - SchedulerConfig rejects UTC offsets outside the real-world range
    (-12:00 .. +14:00) at parse time
  - LoggingConfig normalizes and validates the level name
  - validate_all() performs cross-field checks and raises ConfigError
    with every problem found, numbered
  - load_settings() respects TASKCLOCK_CONFIG as a fallback when no explicit
    config_path argument is given

Environment overrides use the TASKCLOCK_ prefix and "__" for nesting:
    TASKCLOCK_SCHEDULER__TZ_OFFSET_MINUTES=60
    TASKCLOCK_LOGGING__LEVEL=DEBUG
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from taskclock.exceptions import ConfigError

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# Real-world UTC offsets run from -12:00 (Baker Island) to +14:00 (Kiribati).
_MIN_TZ_OFFSET = -12 * 60
_MAX_TZ_OFFSET = 14 * 60


# ─────────────────────────────────────────────────────────────────────────────
# Sub-models
# ─────────────────────────────────────────────────────────────────────────────

class SchedulerConfig(BaseModel):
    tz_offset_minutes: int = 0
    test_mode: bool = False

    @field_validator("tz_offset_minutes")
    @classmethod
    def _valid_offset(cls, v: int) -> int:
        if not (_MIN_TZ_OFFSET <= v <= _MAX_TZ_OFFSET):
            raise ValueError(
                f"scheduler.tz_offset_minutes must be between {_MIN_TZ_OFFSET} "
                f"and {_MAX_TZ_OFFSET}, got {v}"
            )
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: str = "./data/logs"
    max_file_size_mb: int = 10
    backup_count: int = 5
    console_output: bool = True
    json_format: Optional[bool] = None

    @field_validator("level")
    @classmethod
    def _valid_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level '{v}' is not valid. "
                f"Must be one of: {sorted(_VALID_LOG_LEVELS)}"
            )
        return upper


# ─────────────────────────────────────────────────────────────────────────────
# Root Settings
# ─────────────────────────────────────────────────────────────────────────────

class Settings(BaseSettings):
    """
    taskclock runtime settings.

    Priority (highest to lowest):
      1. Init arguments (config.yaml sections passed by load_settings)
      2. Environment variables
      3. .env file
      4. Field defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="TASKCLOCK_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("scheduler", mode="before")
    @classmethod
    def _coerce_scheduler(cls, v: Any) -> Any:
        return SchedulerConfig(**v) if isinstance(v, dict) else v

    @field_validator("logging", mode="before")
    @classmethod
    def _coerce_logging(cls, v: Any) -> Any:
        return LoggingConfig(**v) if isinstance(v, dict) else v

    # -- Convenience properties ----------------------------------------------

    @property
    def log_level(self) -> str:
        return self.logging.level.upper()

    @property
    def log_dir(self) -> Path:
        return Path(self.logging.log_dir)

    @property
    def log_max_bytes(self) -> int:
        return self.logging.max_file_size_mb * 1024 * 1024

    def validate_all(self) -> None:
        """
        Full startup validation. Raises ConfigError listing every problem found.

        Field validators catch type/value errors at parse time; this catches
        the problems they can't see on their own.
        """
        errors: list[str] = []

        if not self.logging.log_dir.strip():
            errors.append("logging.log_dir must not be empty.")

        if self.logging.max_file_size_mb < 1:
            errors.append(
                f"logging.max_file_size_mb must be >= 1, got {self.logging.max_file_size_mb}."
            )

        if self.logging.backup_count < 0:
            errors.append(
                f"logging.backup_count must be >= 0, got {self.logging.backup_count}."
            )

        if errors:
            numbered = "\n".join(f"  {i+1}. {e}" for i, e in enumerate(errors))
            raise ConfigError(
                f"\n\ntaskclock startup failed — {len(errors)} configuration "
                f"problem(s) found:\n\n{numbered}\n\n"
                f"Fix the issues above in config/config.yaml or your environment "
                f"and restart.\n"
            )


# ─────────────────────────────────────────────────────────────────────────────
# Loader + singleton
# ─────────────────────────────────────────────────────────────────────────────

_singleton: Optional[Settings] = None
_singleton_lock = threading.Lock()

_KNOWN_SECTIONS = {"scheduler", "logging"}


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _resolve_config_path(config_path: str | Path | None) -> Path:
    """
    Resolve the config file path with this priority:
      1. Explicit config_path argument (from --config CLI flag)
      2. TASKCLOCK_CONFIG environment variable
      3. Default: config/config.yaml
    """
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get("TASKCLOCK_CONFIG")
    if env_path:
        return Path(env_path)
    return Path("config/config.yaml")


def _build(config_path: str | Path | None) -> Settings:
    yaml_data = _load_yaml(_resolve_config_path(config_path))
    init_kwargs = {k: v for k, v in yaml_data.items() if k in _KNOWN_SECTIONS}
    return Settings(**init_kwargs)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """
    Load settings by merging config.yaml with environment variables and
    make them the global singleton.

    Config path resolution order:
      1. config_path argument  (--config CLI flag)
      2. TASKCLOCK_CONFIG env var
      3. config/config.yaml   (default)
    """
    global _singleton
    instance = _build(config_path)
    with _singleton_lock:
        _singleton = instance
    return instance


def get_settings() -> Settings:
    """
    Return the global Settings singleton, loading from the default config
    path on first use. Thread-safe.
    """
    global _singleton
    if _singleton is not None:
        return _singleton
    with _singleton_lock:
        if _singleton is None:
            _singleton = _build(None)
    return _singleton
