"""
Click event document model.

Maps to the `clicks` MongoDB collection. One document per accepted click;
documents are never updated once written.

The `meta` subdocument groups clicks by link for efficient range queries.
owner_id always holds an ObjectId; anonymous links use ANONYMOUS_OWNER_ID.

The raw client IP is not stored; `visitor.hashed_ip` is the only visitor key.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.base import MongoBaseModel, PyObjectId

DeviceType = Literal["desktop", "mobile", "tablet", "bot"]
ReferrerSource = Literal[
    "direct", "search", "social", "email", "ads", "referral", "unknown"
]
BotType = Literal["search", "social", "monitoring", "other"]
ClassificationStatus = Literal["complete", "partial"]

UNKNOWN = "Unknown"


class ClickMeta(BaseModel):
    link_id: PyObjectId
    short_code: str
    owner_id: PyObjectId


class VisitorInfo(BaseModel):
    hashed_ip: str
    user_agent: str = UNKNOWN
    session_id: str
    fingerprint: str


class DeviceInfo(BaseModel):
    type: DeviceType = "desktop"
    os: str = UNKNOWN
    os_version: Optional[str] = None
    browser: str = UNKNOWN
    browser_version: Optional[str] = None


class LocationInfo(BaseModel):
    """Best-effort geography; every field may be missing."""

    country: Optional[str] = None
    country_code: Optional[str] = None
    city: Optional[str] = None


class UtmParams(BaseModel):
    source: Optional[str] = None
    medium: Optional[str] = None
    campaign: Optional[str] = None
    term: Optional[str] = None
    content: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(
            (self.source, self.medium, self.campaign, self.term, self.content)
        )


class ReferrerInfo(BaseModel):
    url: Optional[str] = None
    domain: Optional[str] = None
    source: ReferrerSource = "direct"
    utm: Optional[UtmParams] = None


class BotInfo(BaseModel):
    is_bot: bool = False
    bot_name: Optional[str] = None
    bot_type: Optional[BotType] = None


class ClickEvent(MongoBaseModel):
    """Document model for the `clicks` collection. Immutable once built."""

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        frozen=True,
    )

    clicked_at: datetime
    meta: ClickMeta

    visitor: VisitorInfo
    device: DeviceInfo
    location: LocationInfo
    referrer: ReferrerInfo
    bot: BotInfo

    classification: ClassificationStatus = "complete"
