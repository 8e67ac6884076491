"""
Request DTOs for the analytics endpoint.

AnalyticsQuery: GET /api/v1/analytics/{short_code} (query parameters)

Dates accept ISO 8601 strings or Unix epoch seconds and are parsed into
timezone-aware UTC datetimes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from shared.datetime_utils import parse_datetime


@dataclass(frozen=True)
class DateRange:
    """Inclusive [start, end] window; either bound may be open."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None


class AnalyticsQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_date(cls, value):
        if value is None or value == "":
            return None
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValueError(f"Invalid date: {value!r}")
        return parsed

    @model_validator(mode="after")
    def _check_order(self) -> "AnalyticsQuery":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self

    def to_range(self) -> Optional[DateRange]:
        if self.start_date is None and self.end_date is None:
            return None
        return DateRange(start=self.start_date, end=self.end_date)
