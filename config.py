"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

Tracking windows and the tracking timezone live in TrackingSettings; the
dedup engine and the rollup engine both read from the same instance so
"today" means the same thing for uniqueness flags and for counters.
"""

from __future__ import annotations

from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "link-analytics"

    clicks_collection: str = "clicks"
    links_collection: str = "links"
    owners_collection: str = "owners"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional; without Redis every click resolves its short code from MongoDB
    redis_uri: Optional[str] = None
    redis_ttl_seconds: int = 300


class TrackingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    reload_window_seconds: int = 60
    session_window_seconds: int = 1800
    history_limit: int = 10

    # IANA name; day/week/month boundaries are computed in this zone
    tracking_timezone: str = "UTC"

    ip_hash_salt: str = ""
    analytics_top_n: int = 10

    @field_validator("tracking_timezone", mode="after")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value!r}") from e
        return value

    @model_validator(mode="after")
    def _check_windows(self) -> "TrackingSettings":
        if self.reload_window_seconds <= 0 or self.session_window_seconds <= 0:
            raise ValueError("tracking windows must be positive")
        if self.session_window_seconds < self.reload_window_seconds:
            raise ValueError("session window must not be shorter than reload window")
        return self


class MaintenanceSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sync_batch_size: int = 100
    # 0 disables the periodic full resync
    full_sync_interval_hours: int = 0


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production

    # Sampling rates (0.0–1.0)
    sample_rate_click: float = 0.05
    sample_rate_dedup: float = 0.05
    sample_rate_analytics: float = 0.20


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = "development"
    app_name: str = "link-analytics"

    # GeoIP database paths (missing files degrade to unknown geography)
    geoip_country_db: str = "misc/GeoLite2-Country.mmdb"
    geoip_city_db: str = "misc/GeoLite2-City.mmdb"

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    tracking: Optional[TrackingSettings] = None
    maintenance: Optional[MaintenanceSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.tracking is None:
            self.tracking = TrackingSettings()
        if self.maintenance is None:
            self.maintenance = MaintenanceSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
