"""Store protocols. Services depend on these, not on the MongoDB classes.

All methods raise TransientStoreError when the underlying store fails.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from bson import ObjectId

from schemas.models.click import ClickEvent
from schemas.models.link import LinkAggregate, LinkAnalyticsCache, LinkDoc
from schemas.models.owner import OwnerUsage


class ClickRepository(Protocol):
    async def insert(self, event: ClickEvent) -> ClickEvent: ...

    async def find_recent_for_visitor(
        self, short_code: str, hashed_ip: str, limit: int
    ) -> list[ClickEvent]: ...

    async def count_human(
        self,
        short_code: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int: ...

    async def count_distinct_visitors(
        self,
        short_code: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int: ...

    async def count_human_for_codes(
        self, short_codes: Sequence[str], since: Optional[datetime] = None
    ) -> int: ...

    async def top_values(
        self,
        short_code: str,
        field: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[tuple[Optional[str], int]]: ...

    async def daily_counts(
        self,
        short_code: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        timezone: str = "UTC",
    ) -> list[tuple[str, int]]: ...

    async def delete_for_link(self, short_code: str) -> int: ...


class LinkRepository(Protocol):
    async def get_by_short_code(self, short_code: str) -> Optional[LinkDoc]: ...

    async def set_click_stats(
        self,
        short_code: str,
        aggregate: LinkAggregate,
        last_click_at: Optional[datetime] = None,
    ) -> None: ...

    async def list_active_short_codes(
        self, after: Optional[str], limit: int
    ) -> list[str]: ...

    async def list_active_for_owner(self, owner_id: ObjectId) -> list[LinkDoc]: ...

    async def set_analytics_cache(
        self, short_code: str, cache: LinkAnalyticsCache
    ) -> None: ...

    async def reset_counter(self, counter: str, before: datetime) -> int: ...

    async def count_stale(self, before: datetime) -> int: ...


class OwnerRepository(Protocol):
    async def list_active_ids(
        self, after: Optional[ObjectId], limit: int
    ) -> list[ObjectId]: ...

    async def set_usage(self, owner_id: ObjectId, usage: OwnerUsage) -> None: ...

    async def reset_monthly(self, before: datetime, now: datetime) -> int: ...

    async def count_refreshed_since(self, since: datetime) -> int: ...
