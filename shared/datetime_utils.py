"""
Date/time parsing and period-boundary utilities: framework-agnostic.

Counters and uniqueness flags are defined against calendar periods in the
tracking timezone: today starts at local midnight, the week on Monday
00:00, the month on the 1st at 00:00. Boundaries are returned as
timezone-aware UTC datetimes so they compare directly against stored
``clicked_at`` values.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a date/time value into a timezone-aware UTC datetime.

    Accepts:
    - ``None`` → ``None``
    - ``int`` / ``float`` → treated as Unix epoch seconds
    - ``str`` ending in ``"Z"`` → converted to ``+00:00`` before parsing
    - Any ISO 8601 string (``datetime.fromisoformat``)

    Naive datetimes (no ``tzinfo``) are assumed to be UTC.

    Returns:
        A timezone-aware ``datetime`` in UTC, or ``None`` if *value* is ``None``
        or cannot be parsed.
    """
    if value is None:
        return None
    try:
        if isinstance(value, datetime):
            return ensure_utc(value)
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(int(value), tz=timezone.utc)
        raw = str(value).strip()
        if raw.isdigit():
            return datetime.fromtimestamp(int(raw), tz=timezone.utc)
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        return ensure_utc(datetime.fromisoformat(raw))
    except (ValueError, OSError, OverflowError):
        return None


def start_of_day(now: datetime, tz_name: str = "UTC") -> datetime:
    """Local midnight of *now*'s day in *tz_name*, as UTC."""
    local = ensure_utc(now).astimezone(ZoneInfo(tz_name))
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


def start_of_week(now: datetime, tz_name: str = "UTC") -> datetime:
    """Monday 00:00 of *now*'s week in *tz_name*, as UTC."""
    local = ensure_utc(now).astimezone(ZoneInfo(tz_name))
    monday = (local - timedelta(days=local.weekday())).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return monday.astimezone(timezone.utc)


def start_of_month(now: datetime, tz_name: str = "UTC") -> datetime:
    """The 1st of *now*'s month at 00:00 in *tz_name*, as UTC."""
    local = ensure_utc(now).astimezone(ZoneInfo(tz_name))
    first = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return first.astimezone(timezone.utc)


def next_day_start(now: datetime, tz_name: str = "UTC") -> datetime:
    """Next local midnight after *now* in *tz_name*, as UTC."""
    tz = ZoneInfo(tz_name)
    tomorrow = ensure_utc(now).astimezone(tz).date() + timedelta(days=1)
    midnight = datetime(tomorrow.year, tomorrow.month, tomorrow.day, tzinfo=tz)
    return midnight.astimezone(timezone.utc)


def next_week_start(now: datetime, tz_name: str = "UTC") -> datetime:
    """Next local Monday 00:00 after *now* in *tz_name*, as UTC."""
    tz = ZoneInfo(tz_name)
    local = ensure_utc(now).astimezone(tz).date()
    monday = local + timedelta(days=7 - local.weekday())
    return datetime(monday.year, monday.month, monday.day, tzinfo=tz).astimezone(
        timezone.utc
    )


def next_month_start(now: datetime, tz_name: str = "UTC") -> datetime:
    """The next local 1st-of-month 00:00 after *now* in *tz_name*, as UTC."""
    tz = ZoneInfo(tz_name)
    local = ensure_utc(now).astimezone(tz)
    year, month = (local.year + 1, 1) if local.month == 12 else (local.year, local.month + 1)
    return datetime(year, month, 1, tzinfo=tz).astimezone(timezone.utc)
