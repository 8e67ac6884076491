"""
Response DTO for the analytics endpoint.

AnalyticsSummary: GET /api/v1/analytics/{short_code} (200)

Every breakdown is computed over non-bot events only. Breakdowns are lists
of ``{label, count}`` ordered by count descending; ``daily`` is ordered by
date ascending.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class CountBucket(BaseModel):
    label: str
    count: int


class DailyCount(BaseModel):
    date: str  # %Y-%m-%d in the tracking timezone
    count: int


class AnalyticsSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    short_code: str
    total_clicks: int
    unique_clicks: int
    geography: list[CountBucket] = []
    devices: list[CountBucket] = []
    browsers: list[CountBucket] = []
    referrers: list[CountBucket] = []
    daily: list[DailyCount] = []
