"""
Click ingestion endpoint.

POST /api/v1/clicks: called by the redirect handler after it has resolved a
short code. The click is processed in the background; the caller always gets
202 for a well-formed body, whether or not the click ends up recorded.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends

from dependencies import get_click_tracker
from schemas.dto.requests.click import RecordClickInput
from schemas.dto.responses.sync import ClickAccepted
from services.click_tracker import ClickTracker

router = APIRouter(prefix="/api/v1", tags=["clicks"])


@router.post("/clicks", status_code=202, response_model=ClickAccepted)
async def record_click(
    body: RecordClickInput,
    background_tasks: BackgroundTasks,
    tracker: ClickTracker = Depends(get_click_tracker),
) -> ClickAccepted:
    background_tasks.add_task(tracker.record_click, body)
    return ClickAccepted()
