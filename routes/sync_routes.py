"""
On-demand resync endpoints.

POST /api/v1/sync/statistics?short_code=  (one link, or all links)
POST /api/v1/sync/owner-usage?owner_id=   (one owner, or all owners)
GET  /api/v1/sync/status                   (stale link and recent owner counts)

The POSTs recompute from the click log and are safe to call repeatedly.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from dependencies import get_maintenance_service
from errors import ValidationError
from schemas.dto.responses.sync import SyncReport, SyncStatus
from schemas.models.base import parse_object_id
from services.maintenance import MaintenanceService

router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


@router.post("/statistics", response_model=SyncReport)
async def sync_statistics(
    short_code: Optional[str] = None,
    service: MaintenanceService = Depends(get_maintenance_service),
) -> SyncReport:
    return await service.sync_statistics(short_code or None)


@router.post("/owner-usage", response_model=SyncReport)
async def sync_owner_usage(
    owner_id: Optional[str] = None,
    service: MaintenanceService = Depends(get_maintenance_service),
) -> SyncReport:
    oid = None
    if owner_id:
        oid = parse_object_id(owner_id)
        if oid is None:
            raise ValidationError("owner_id is not a valid id", field="owner_id")
    return await service.sync_owner_usage(oid)


@router.get("/status", response_model=SyncStatus)
async def sync_status(
    service: MaintenanceService = Depends(get_maintenance_service),
) -> SyncStatus:
    return await service.sync_status()
