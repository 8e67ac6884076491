"""
Maintenance scheduler.

Fires the counter resets at period boundaries in the tracking timezone
(daily at local midnight, weekly on Monday, monthly on the 1st) and, when
FULL_SYNC_INTERVAL_HOURS is set, a full resync of links and owners.

Scheduling is computed by next_run(), a pure function, so the timing can be
tested without sleeping. The resets themselves are idempotent; firing late
or twice does no harm.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional

from services.maintenance import MaintenanceService
from shared.datetime_utils import (
    ensure_utc,
    next_day_start,
    next_month_start,
    next_week_start,
    utcnow,
)
from shared.logging import get_logger

log = get_logger(__name__)

# Order matters when several jobs share a boundary
JOBS = ("daily", "weekly", "monthly", "full_sync")


def next_run(
    job: str, after: datetime, tz_name: str, full_sync_interval_hours: int = 0
) -> Optional[datetime]:
    """First time strictly after *after* at which *job* should fire.

    Returns None for a disabled job.
    """
    if job == "daily":
        return next_day_start(after, tz_name)
    if job == "weekly":
        return next_week_start(after, tz_name)
    if job == "monthly":
        return next_month_start(after, tz_name)
    if job == "full_sync":
        if full_sync_interval_hours <= 0:
            return None
        return ensure_utc(after) + timedelta(hours=full_sync_interval_hours)
    raise ValueError(f"Unknown job: {job!r}")


class MaintenanceWorker:
    def __init__(
        self,
        maintenance: MaintenanceService,
        *,
        tracking_timezone: str = "UTC",
        full_sync_interval_hours: int = 0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._maintenance = maintenance
        self._tz = tracking_timezone
        self._full_sync_hours = full_sync_interval_hours
        self._clock = clock
        self._stop = asyncio.Event()

    def initial_schedule(self, now: datetime) -> dict[str, datetime]:
        schedule: dict[str, datetime] = {}
        for job in JOBS:
            at = next_run(job, now, self._tz, self._full_sync_hours)
            if at is not None:
                schedule[job] = at
        return schedule

    async def run_job(self, job: str, now: datetime) -> None:
        log.info("maintenance_job_started", job=job)
        try:
            if job == "daily":
                await self._maintenance.reset_daily_counters(now)
            elif job == "weekly":
                await self._maintenance.reset_weekly_counters(now)
            elif job == "monthly":
                await self._maintenance.reset_monthly_counters(now)
            elif job == "full_sync":
                await self._maintenance.sync_statistics()
                await self._maintenance.sync_owner_usage()
        except Exception as e:
            # Next boundary retries; one failed job must not stop the scheduler
            log.exception("maintenance_job_failed", job=job, error_type=type(e).__name__)
            return
        log.info("maintenance_job_finished", job=job)

    async def run_due(self, schedule: dict[str, datetime], now: datetime) -> None:
        """Run every job due at *now* and advance it in *schedule*."""
        for job in JOBS:
            at = schedule.get(job)
            if at is None or at > now:
                continue
            await self.run_job(job, now)
            advanced = next_run(job, now, self._tz, self._full_sync_hours)
            if advanced is not None:
                schedule[job] = advanced

    async def run(self) -> None:
        schedule = self.initial_schedule(ensure_utc(self._clock()))
        log.info(
            "maintenance_worker_started",
            timezone=self._tz,
            schedule={job: at.isoformat() for job, at in schedule.items()},
        )
        while not self._stop.is_set():
            now = ensure_utc(self._clock())
            wake_at = min(schedule.values())
            delay = (wake_at - now).total_seconds()
            if delay > 0:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
                continue
            await self.run_due(schedule, now)
        log.info("maintenance_worker_stopped")

    def stop(self) -> None:
        self._stop.set()
