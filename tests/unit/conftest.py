"""
Unit test configuration.

Settings are read from the environment and a .env file. Both are neutralised
here so tests control configuration only through monkeypatch.setenv().
"""

import pytest

from config import (
    DatabaseSettings,
    LoggingSettings,
    MaintenanceSettings,
    RedisSettings,
    SentrySettings,
    TrackingSettings,
)

_SETTINGS = (
    DatabaseSettings,
    RedisSettings,
    TrackingSettings,
    MaintenanceSettings,
    LoggingSettings,
    SentrySettings,
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})
    for model in _SETTINGS:
        for name in model.model_fields:
            if name != "mongodb_uri":
                monkeypatch.delenv(name.upper(), raising=False)
