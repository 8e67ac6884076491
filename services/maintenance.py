"""
Maintenance jobs: period counter resets, full resyncs, sync status and
event deletion.

Resets only touch documents that have not been refreshed since the period
began, so a click rolled into the new period just before the job runs keeps
its count. Every job is idempotent.

Syncs walk links (by short code) or owners (by id) in batches and log a
checkpoint after each batch; a crashed run resumes from ``after``. A failure
on one item is counted and logged; a failure to list the next batch aborts
the run. A link sync also rebuilds the top-5 lists cached on the link.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional

from bson import ObjectId

from errors import TransientStoreError
from repositories.protocol import ClickRepository, LinkRepository, OwnerRepository
from schemas.dto.responses.sync import ResetReport, SyncReport, SyncStatus
from services.link_resolver import LinkResolver
from services.rollup import StatsRollup
from shared.datetime_utils import (
    ensure_utc,
    start_of_day,
    start_of_month,
    start_of_week,
    utcnow,
)
from shared.logging import get_logger

log = get_logger(__name__)

DEFAULT_BATCH_SIZE = 100
# counters older than this are reported as needing a resync
STALE_AFTER = timedelta(hours=1)
RECENT_WINDOW = timedelta(hours=24)


class MaintenanceService:
    def __init__(
        self,
        click_repo: ClickRepository,
        link_repo: LinkRepository,
        owner_repo: OwnerRepository,
        rollup: StatsRollup,
        resolver: LinkResolver,
        *,
        tracking_timezone: str = "UTC",
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._clicks = click_repo
        self._links = link_repo
        self._owners = owner_repo
        self._rollup = rollup
        self._resolver = resolver
        self._tz = tracking_timezone
        self._batch_size = batch_size
        self._clock = clock

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now) if now is not None else ensure_utc(self._clock())

    # ── Counter resets ───────────────────────────────────────────────────────

    async def reset_daily_counters(self, now: Optional[datetime] = None) -> ResetReport:
        boundary = start_of_day(self._now(now), self._tz)
        links = await self._links.reset_counter("today", boundary)
        log.info("counters_reset", period="daily", boundary=boundary.isoformat(), links=links)
        return ResetReport(period="daily", links_reset=links)

    async def reset_weekly_counters(self, now: Optional[datetime] = None) -> ResetReport:
        boundary = start_of_week(self._now(now), self._tz)
        links = await self._links.reset_counter("this_week", boundary)
        log.info("counters_reset", period="weekly", boundary=boundary.isoformat(), links=links)
        return ResetReport(period="weekly", links_reset=links)

    async def reset_monthly_counters(self, now: Optional[datetime] = None) -> ResetReport:
        now = self._now(now)
        boundary = start_of_month(now, self._tz)
        links = await self._links.reset_counter("this_month", boundary)
        owners = await self._owners.reset_monthly(boundary, now)
        log.info(
            "counters_reset",
            period="monthly",
            boundary=boundary.isoformat(),
            links=links,
            owners=owners,
        )
        return ResetReport(period="monthly", links_reset=links, owners_reset=owners)

    # ── Resync ───────────────────────────────────────────────────────────────

    async def sync_statistics(
        self,
        short_code: Optional[str] = None,
        *,
        after: Optional[str] = None,
        batch_size: Optional[int] = None,
    ) -> SyncReport:
        """Recompute link counters from the click log.

        With *short_code*, only that link is synced and an unknown code
        raises LinkNotFoundError. Without it, every non-deleted link after
        *after* is synced in short-code order.
        """
        now = self._now(None)
        if short_code is not None:
            await self._resolver.get_link(short_code)
            await self._refresh(short_code, now)
            log.info("link_stats_synced", short_code=short_code)
            return SyncReport(processed=1, last_short_code=short_code)

        size = batch_size or self._batch_size
        report = SyncReport(last_short_code=after)
        while True:
            codes = await self._links.list_active_short_codes(
                report.last_short_code, size
            )
            if not codes:
                break
            for code in codes:
                try:
                    await self._refresh(code, now)
                    report.processed += 1
                except TransientStoreError as e:
                    report.failed += 1
                    log.error("link_stats_sync_failed", short_code=code, error=e.message)
            report.last_short_code = codes[-1]
            log.info(
                "sync_checkpoint",
                job="statistics",
                last_short_code=report.last_short_code,
                processed=report.processed,
                failed=report.failed,
            )
            if len(codes) < size:
                break

        log.info("sync_completed", job="statistics", processed=report.processed, failed=report.failed)
        return report

    async def sync_owner_usage(
        self,
        owner_id: Optional[ObjectId] = None,
        *,
        after: Optional[ObjectId] = None,
        batch_size: Optional[int] = None,
    ) -> SyncReport:
        """Recompute owner usage; one owner, or every active owner after *after*."""
        now = self._now(None)
        if owner_id is not None:
            await self._rollup.refresh_owner(owner_id, now)
            log.info("owner_usage_synced", owner_id=str(owner_id))
            return SyncReport(processed=1, last_owner_id=str(owner_id))

        size = batch_size or self._batch_size
        report = SyncReport(last_owner_id=str(after) if after else None)
        cursor = after
        while True:
            owner_ids = await self._owners.list_active_ids(cursor, size)
            if not owner_ids:
                break
            for oid in owner_ids:
                try:
                    await self._rollup.refresh_owner(oid, now)
                    report.processed += 1
                except TransientStoreError as e:
                    report.failed += 1
                    log.error("owner_usage_sync_failed", owner_id=str(oid), error=e.message)
            cursor = owner_ids[-1]
            report.last_owner_id = str(cursor)
            log.info(
                "sync_checkpoint",
                job="owner_usage",
                last_owner_id=report.last_owner_id,
                processed=report.processed,
                failed=report.failed,
            )
            if len(owner_ids) < size:
                break

        log.info("sync_completed", job="owner_usage", processed=report.processed, failed=report.failed)
        return report

    async def _refresh(self, short_code: str, now: datetime) -> None:
        await self._rollup.refresh_link(short_code, now)
        await self._rollup.refresh_analytics_cache(short_code, now)

    async def sync_status(self, now: Optional[datetime] = None) -> SyncStatus:
        """Count live links with stale counters and owners refreshed in the
        last day."""
        now = self._now(now)
        stale, recent = await asyncio.gather(
            self._links.count_stale(now - STALE_AFTER),
            self._owners.count_refreshed_since(now - RECENT_WINDOW),
        )
        log.info("sync_status", links_needing_sync=stale, owners_synced_recently=recent)
        return SyncStatus(
            links_needing_sync=stale, owners_synced_recently=recent, checked_at=now
        )

    # ── Deletion ─────────────────────────────────────────────────────────────

    async def delete_link_events(self, short_code: str) -> int:
        """Permanently delete every click event recorded for *short_code*."""
        deleted = await self._clicks.delete_for_link(short_code)
        await self._resolver.invalidate(short_code)
        log.info("link_events_deleted", short_code=short_code, deleted=deleted)
        return deleted
