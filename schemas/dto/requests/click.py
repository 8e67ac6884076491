"""
Request DTO for click ingestion.

RecordClickInput: POST /api/v1/clicks (JSON body), also the direct input of
ClickTracker.record_click().

``country`` and ``city`` are optional hints from an upstream proxy or CDN;
when present they win over the GeoIP lookup.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RecordClickInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    short_code: str = Field(min_length=1, max_length=64)
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None

    @field_validator("ip", "user_agent", "referrer", "country", "city", mode="after")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None
