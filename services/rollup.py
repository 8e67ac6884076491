"""
Aggregate rollup: recompute cached counters from the click log.

Counters are always read-then-overwritten (``$set``), never incremented, so
running a refresh twice, concurrently, or after a missed click all converge
on the same values. Period boundaries come from the tracking timezone.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

from bson import ObjectId

from repositories.protocol import ClickRepository, LinkRepository, OwnerRepository
from schemas.models.link import LinkAggregate, LinkAnalyticsCache, TopEntry
from schemas.models.owner import OwnerUsage
from shared.datetime_utils import (
    ensure_utc,
    start_of_day,
    start_of_month,
    start_of_week,
)


ANALYTICS_CACHE_SIZE = 5


def _top(rows: list[tuple[Optional[str], int]], size: int) -> list[TopEntry]:
    # events without a value are left out of the cached lists
    return [TopEntry(value=value, count=count) for value, count in rows if value][:size]


class StatsRollup:
    def __init__(
        self,
        click_repo: ClickRepository,
        link_repo: LinkRepository,
        owner_repo: OwnerRepository,
        *,
        tracking_timezone: str = "UTC",
    ) -> None:
        self._clicks = click_repo
        self._links = link_repo
        self._owners = owner_repo
        self._tz = tracking_timezone

    async def compute_link_aggregate(
        self, short_code: str, now: datetime
    ) -> LinkAggregate:
        now = ensure_utc(now)
        total, unique, today, this_week, this_month = await asyncio.gather(
            self._clicks.count_human(short_code),
            self._clicks.count_distinct_visitors(short_code),
            self._clicks.count_human(short_code, since=start_of_day(now, self._tz)),
            self._clicks.count_human(short_code, since=start_of_week(now, self._tz)),
            self._clicks.count_human(short_code, since=start_of_month(now, self._tz)),
        )
        return LinkAggregate(
            total=total,
            unique=unique,
            today=today,
            this_week=this_week,
            this_month=this_month,
            last_updated=now,
        )

    async def refresh_link(
        self,
        short_code: str,
        now: datetime,
        last_click_at: Optional[datetime] = None,
    ) -> LinkAggregate:
        aggregate = await self.compute_link_aggregate(short_code, now)
        await self._links.set_click_stats(short_code, aggregate, last_click_at)
        return aggregate

    async def compute_owner_usage(self, owner_id: ObjectId, now: datetime) -> OwnerUsage:
        now = ensure_utc(now)
        links = await self._links.list_active_for_owner(owner_id)
        monthly = await self._clicks.count_human_for_codes(
            [link.short_code for link in links], since=start_of_month(now, self._tz)
        )
        return OwnerUsage(
            links_count=len(links),
            clicks_count=sum(link.clicks.total for link in links),
            monthly_clicks=monthly,
            last_updated=now,
        )

    async def refresh_owner(self, owner_id: ObjectId, now: datetime) -> OwnerUsage:
        usage = await self.compute_owner_usage(owner_id, now)
        await self._owners.set_usage(owner_id, usage)
        return usage

    async def compute_analytics_cache(
        self, short_code: str, now: datetime
    ) -> LinkAnalyticsCache:
        size = ANALYTICS_CACHE_SIZE
        # one spare row covers a None group ranking inside the top N
        countries, referrers, devices = await asyncio.gather(
            self._clicks.top_values(short_code, "location.country_code", limit=size + 1),
            self._clicks.top_values(short_code, "referrer.domain", limit=size + 1),
            self._clicks.top_values(short_code, "device.type", limit=size + 1),
        )
        return LinkAnalyticsCache(
            top_countries=_top(countries, size),
            top_referrers=_top(referrers, size),
            top_devices=_top(devices, size),
            last_sync_at=ensure_utc(now),
        )

    async def refresh_analytics_cache(
        self, short_code: str, now: datetime
    ) -> LinkAnalyticsCache:
        cache = await self.compute_analytics_cache(short_code, now)
        await self._links.set_analytics_cache(short_code, cache)
        return cache
