"""
Per-link analytics endpoint.

GET /api/v1/analytics/{short_code}?start_date=&end_date=
- 404 when the short code is unknown or deleted
- 400 when a date cannot be parsed or start_date is after end_date
"""

from __future__ import annotations

from typing import Optional

import pydantic
from fastapi import APIRouter, Depends

from dependencies import get_analytics_service
from errors import ValidationError
from schemas.dto.requests.analytics import AnalyticsQuery
from schemas.dto.responses.analytics import AnalyticsSummary
from services.analytics import AnalyticsService

router = APIRouter(prefix="/api/v1", tags=["analytics"])


@router.get("/analytics/{short_code}", response_model=AnalyticsSummary)
async def get_analytics(
    short_code: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    service: AnalyticsService = Depends(get_analytics_service),
) -> AnalyticsSummary:
    try:
        query = AnalyticsQuery(start_date=start_date, end_date=end_date)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(first["msg"], field=field) from e

    return await service.get_analytics(short_code, query.to_range())
