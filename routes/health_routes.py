"""
Health check endpoint.

GET /health: checks MongoDB and Redis connectivity.
Rules:
- MongoDB failure → "unhealthy" (503); clicks cannot be recorded without it.
- Redis failure or absence → "degraded" (200); only the short-code cache is lost.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["health"])


async def _check_mongo(db: Any) -> str:
    try:
        await db.client.admin.command("ping")
        return "ok"
    except Exception as e:
        log.error("health_mongodb_failed", error=str(e), error_type=type(e).__name__)
        return "error"


async def _check_redis(redis: Any) -> str:
    if redis is None:
        return "not_configured"
    try:
        await redis.ping()
        return "ok"
    except Exception as e:
        log.warning("health_redis_failed", error=str(e), error_type=type(e).__name__)
        return "error"


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    checks = {
        "mongodb": await _check_mongo(request.app.state.db),
        "redis": await _check_redis(request.app.state.redis),
    }

    if checks["mongodb"] != "ok":
        overall = "unhealthy"
    elif checks["redis"] != "ok":
        overall = "degraded"
    else:
        overall = "healthy"

    return JSONResponse(
        status_code=503 if overall == "unhealthy" else 200,
        content={"status": overall, "checks": checks},
    )
