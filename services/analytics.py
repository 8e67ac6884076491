"""
Per-link analytics over the click log.

Computed from non-bot events only, never from the cached counters, so the
numbers are exact for any date range. Geography is keyed by ISO country
code so name variants from GeoIP and redirect hints land in one bucket.
Missing geography is reported as "Unknown" and a missing referrer domain
as "Direct".
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Optional

from repositories.protocol import ClickRepository
from schemas.dto.requests.analytics import DateRange
from schemas.dto.responses.analytics import AnalyticsSummary, CountBucket, DailyCount
from schemas.models.click import UNKNOWN
from services.link_resolver import LinkResolver
from shared.logging import get_logger, should_sample

log = get_logger(__name__)

DIRECT = "Direct"


def _buckets(
    rows: Iterable[tuple[Optional[str], int]],
    fallback: str,
    limit: Optional[int] = None,
) -> list[CountBucket]:
    """Fold missing labels into *fallback*, then order by count, label."""
    merged: dict[str, int] = {}
    for label, count in rows:
        key = label or fallback
        merged[key] = merged.get(key, 0) + count
    ordered = sorted(merged.items(), key=lambda item: (-item[1], item[0]))
    if limit:
        ordered = ordered[:limit]
    return [CountBucket(label=label, count=count) for label, count in ordered]


class AnalyticsService:
    def __init__(
        self,
        resolver: LinkResolver,
        click_repo: ClickRepository,
        *,
        top_n: int = 10,
        tracking_timezone: str = "UTC",
    ) -> None:
        self._resolver = resolver
        self._clicks = click_repo
        self._top_n = top_n
        self._tz = tracking_timezone

    async def get_analytics(
        self, short_code: str, date_range: Optional[DateRange] = None
    ) -> AnalyticsSummary:
        """Summary of human clicks on *short_code* inside *date_range*.

        Raises:
            LinkNotFoundError: code is unknown or deleted.
        """
        await self._resolver.get_link(short_code)

        since = date_range.start if date_range else None
        until = date_range.end if date_range else None
        # Fetch one extra row so folding None into an existing label
        # cannot push a real entry out of the top N
        limit = self._top_n + 1

        (
            total,
            unique,
            countries,
            devices,
            browsers,
            referrers,
            daily,
        ) = await asyncio.gather(
            self._clicks.count_human(short_code, since, until),
            self._clicks.count_distinct_visitors(short_code, since, until),
            self._clicks.top_values(
                short_code, "location.country_code", since, until, limit
            ),
            self._clicks.top_values(short_code, "device.type", since, until),
            self._clicks.top_values(short_code, "device.browser", since, until, limit),
            self._clicks.top_values(short_code, "referrer.domain", since, until, limit),
            self._clicks.daily_counts(short_code, since, until, self._tz),
        )

        if should_sample("analytics_query"):
            log.info(
                "analytics_query",
                short_code=short_code,
                total_clicks=total,
                has_range=date_range is not None,
            )

        return AnalyticsSummary(
            short_code=short_code,
            total_clicks=total,
            unique_clicks=unique,
            geography=_buckets(countries, UNKNOWN, self._top_n),
            devices=_buckets(devices, UNKNOWN),
            browsers=_buckets(browsers, UNKNOWN, self._top_n),
            referrers=_buckets(referrers, DIRECT, self._top_n),
            daily=[DailyCount(date=day, count=count) for day, count in daily],
        )
