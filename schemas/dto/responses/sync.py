"""
Response DTOs for maintenance jobs.

SyncReport: POST /api/v1/sync/statistics, POST /api/v1/sync/owner-usage
ResetReport: counter reset jobs (worker and CLI only)
SyncStatus: GET /api/v1/sync/status
ClickAccepted: POST /api/v1/clicks (202)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class SyncReport(BaseModel):
    """Outcome of one sync run.

    The checkpoint is the last short code (link sync) or owner id (owner
    sync) that was attempted. Pass it back as ``after`` to resume.
    """

    processed: int = 0
    failed: int = 0
    last_short_code: Optional[str] = None
    last_owner_id: Optional[str] = None


class ResetReport(BaseModel):
    period: str
    links_reset: int = 0
    owners_reset: int = 0


class SyncStatus(BaseModel):
    """Drift indicators for monitoring the maintenance jobs."""

    links_needing_sync: int
    owners_synced_recently: int
    checked_at: datetime


class ClickAccepted(BaseModel):
    accepted: bool = True
