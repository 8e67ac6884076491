"""
Structured logging for the click analytics service.

Provides:
- setup_logging(): configure stdlib logging + structlog once at startup
- get_logger(): get a structlog BoundLogger
- should_sample(): probabilistic sampling for high-frequency events

Production: JSON output. Development: pretty console output.
Raw client IPs are never passed to a logger; callers log the visitor's
hashed IP (truncated) as ``ip_hash``.
"""

from __future__ import annotations

import logging
import random
import sys
from datetime import datetime, timezone
from typing import Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor

from config import LoggingSettings

# Sampling rates for high-frequency events; overwritten by setup_logging()
SAMPLING_RATES: dict[str, float] = {
    "click_recorded": 0.05,
    "click_deduplicated": 0.05,
    "analytics_query": 0.20,
}

# Sensitive fields to redact from logs
REDACTED_FIELDS = {
    "password",
    "token",
    "api_key",
    "authorization",
    "cookie",
    "secret",
    "ip",
    "ip_address",
    "ip_hash_salt",
}

_RESERVED_KEYS = {"level", "event", "timestamp", "logger"}


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO format timestamp to event dict."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields (and raw IPs) from logs."""
    for key in list(event_dict.keys()):
        if key in _RESERVED_KEYS:
            continue
        lowered = key.lower()
        if lowered in REDACTED_FIELDS or any(
            sensitive in lowered for sensitive in ("password", "token", "secret")
        ):
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_structlog(log_format: str) -> None:
    """Configure structlog processors for the given output format."""
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            pad_event=15,
            sort_keys=False,
        )

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging(log_level: str) -> None:
    """Route stdlib logging to stdout and quiet noisy third-party loggers."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    for noisy in ("pymongo", "urllib3", "filelock", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def setup_logging(
    settings: Optional[LoggingSettings] = None, *, env: str = "development"
) -> None:
    """
    Initialize logging for the application.

    Should be called once, early in application or worker startup.
    """
    if settings is None:
        settings = LoggingSettings()

    SAMPLING_RATES.update(
        {
            "click_recorded": settings.sample_rate_click,
            "click_deduplicated": settings.sample_rate_dedup,
            "analytics_query": settings.sample_rate_analytics,
        }
    )

    configure_stdlib_logging(settings.log_level)
    configure_structlog(settings.log_format)

    get_logger(__name__).info(
        "logging_initialized",
        env=env,
        log_level=settings.log_level,
        log_format=settings.log_format,
    )


def get_logger(name: str) -> BoundLogger:
    """
    Get a configured logger instance.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("click_recorded", short_code="abc123", is_bot=False)
    """
    return structlog.get_logger(name)


def should_sample(event_type: str) -> bool:
    """
    Determine if an event should be logged based on sampling rate.

    Event types without a configured rate are always logged.
    """
    sample_rate = SAMPLING_RATES.get(event_type, 1.0)

    if sample_rate >= 1.0:
        return True
    if sample_rate <= 0.0:
        return False

    return random.random() < sample_rate
