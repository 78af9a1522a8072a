"""
Test conftest — isolate TASKCLOCK_* environment variables so that config
tests are not affected by the developer's or CI environment.
"""
import os

import pytest


@pytest.fixture(autouse=True)
def _clear_taskclock_env(monkeypatch):
    """Remove TASKCLOCK_* env vars for every test so Settings() sees only
    what the test provides. Also disables .env file loading so a local
    developer .env does not leak into tests."""
    for var in list(os.environ):
        if var.startswith("TASKCLOCK_"):
            monkeypatch.delenv(var, raising=False)

    import taskclock.config.settings as settings_module
    from pydantic_settings import SettingsConfigDict
    patched_config = SettingsConfigDict(
        env_prefix="TASKCLOCK_",
        env_file=None,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )
    monkeypatch.setattr(settings_module.Settings, "model_config", patched_config)
