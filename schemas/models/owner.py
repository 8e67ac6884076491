"""
Owner document model.

Maps to the `owners` collection. Only the `usage` subdocument is written by
this service.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from schemas.models.base import MongoBaseModel


class OwnerUsage(BaseModel):
    """Usage counters derived from the owner's active links and the event log."""

    links_count: int = 0
    clicks_count: int = 0
    monthly_clicks: int = 0
    last_updated: Optional[datetime] = None
    reset_date: Optional[datetime] = None


class OwnerDoc(MongoBaseModel):
    is_deleted: bool = False
    usage: OwnerUsage = Field(default_factory=OwnerUsage)
