"""
Error types shared by the services, repositories and routes.

Click ingestion never lets these reach a visitor: the tracker catches
LinkNotFoundError and TransientStoreError and logs them. They surface over
HTTP only on the analytics and sync endpoints, where register_error_handlers()
renders them as ``{"error", "code", "field"?, "details"?}``.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)

# Seconds a client should wait before retrying after a store outage
STORE_RETRY_AFTER = 5


class AppError(Exception):
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        for key in ("field", "details"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class LinkNotFoundError(NotFoundError):
    """Short code does not resolve to a live link. Nothing is recorded."""

    error_code = "link_not_found"


class ClassificationError(AppError):
    """User-agent or referrer could not be classified.

    Raised inside the classifier steps only; classify_request() turns it
    into a partially-classified result instead of aborting the click.
    """

    status_code = 422
    error_code = "classification_failed"


class TransientStoreError(AppError):
    """A read or write against the event/aggregate store failed.

    Always safe to retry: aggregates are recomputed from the log, never
    incremented.
    """

    status_code = 503
    error_code = "store_unavailable"


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        headers = None
        if isinstance(exc, TransientStoreError):
            headers = {"Retry-After": str(STORE_RETRY_AFTER)}
        if exc.status_code >= 500:
            log.error(
                "request_failed",
                path=request.url.path,
                code=exc.error_code,
                error=exc.message,
            )
        return JSONResponse(
            status_code=exc.status_code, content=exc.to_dict(), headers=headers
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # sentry_sdk's FastAPI integration has already captured exc here
        log.exception("unhandled_exception", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
