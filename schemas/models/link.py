"""
Link document model.

Maps to the `links` collection. Links are created and edited elsewhere;
this service reads their identity and owns the `clicks` aggregate, the
`analytics_cache` top lists and `last_click_at`, all overwritten from the
event log and never incremented.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from schemas.models.base import ANONYMOUS_OWNER_ID, MongoBaseModel, PyObjectId


class LinkAggregate(BaseModel):
    """Cached per-link counters, derived from non-bot click events."""

    total: int = 0
    unique: int = 0
    today: int = 0
    this_week: int = 0
    this_month: int = 0
    last_updated: Optional[datetime] = None


class TopEntry(BaseModel):
    value: str
    count: int


class LinkAnalyticsCache(BaseModel):
    """Top-5 breakdowns kept on the link for list views; rebuilt on resync."""

    top_countries: list[TopEntry] = Field(default_factory=list)
    top_referrers: list[TopEntry] = Field(default_factory=list)
    top_devices: list[TopEntry] = Field(default_factory=list)
    last_sync_at: Optional[datetime] = None


class LinkDoc(MongoBaseModel):
    short_code: str
    owner_id: PyObjectId = Field(default_factory=lambda: ANONYMOUS_OWNER_ID)
    is_deleted: bool = False
    clicks: LinkAggregate = Field(default_factory=LinkAggregate)
    last_click_at: Optional[datetime] = None
    analytics_cache: LinkAnalyticsCache = Field(default_factory=LinkAnalyticsCache)
