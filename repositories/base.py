"""Shared helpers for the MongoDB repositories."""

from __future__ import annotations

import functools
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pymongo.errors import PyMongoError

from errors import TransientStoreError
from shared.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


def translate_store_errors(
    operation: str,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Re-raise pymongo failures from *operation* as TransientStoreError."""

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return await fn(*args, **kwargs)
            except PyMongoError as e:
                log.error(
                    "store_operation_failed",
                    operation=operation,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise TransientStoreError(
                    f"{operation} failed", details=type(e).__name__
                ) from e

        return wrapper

    return decorator


def time_range_filter(
    since: Optional[datetime], until: Optional[datetime], field: str = "clicked_at"
) -> dict:
    """``{field: {"$gte": since, "$lte": until}}`` with absent bounds omitted."""
    bounds: dict = {}
    if since is not None:
        bounds["$gte"] = since
    if until is not None:
        bounds["$lte"] = until
    return {field: bounds} if bounds else {}
