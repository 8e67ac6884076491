#!/usr/bin/env python3
"""
Maintenance worker and one-off maintenance commands.

    python start_worker.py run                    # scheduler (resets + optional full sync)
    python start_worker.py sync-stats [--short-code abc123] [--after abc100]
    python start_worker.py sync-usage [--owner-id <id>]
    python start_worker.py reset daily|weekly|monthly
    python start_worker.py status                 # stale link / recent owner counts
"""

from __future__ import annotations

import asyncio
import signal
from contextlib import asynccontextmanager
from enum import Enum
from typing import Annotated, AsyncIterator, Optional

import typer
from bson import ObjectId
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from app import init_sentry
from config import AppSettings
from schemas.models.base import parse_object_id
from services.container import ServiceContainer, build_services
from shared.logging import get_logger, setup_logging
from workers.maintenance_worker import MaintenanceWorker

log = get_logger(__name__)

cli = typer.Typer(help="Click analytics maintenance jobs.", no_args_is_help=True)


class Period(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


@asynccontextmanager
async def open_services(settings: AppSettings) -> AsyncIterator[ServiceContainer]:
    # No Redis or GeoIP here: maintenance never resolves through the cache
    client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri, tz_aware=True)
    try:
        yield build_services(client[settings.db.db_name], settings)
    finally:
        await client.close()


def _settings() -> AppSettings:
    settings = AppSettings()
    setup_logging(settings.logging, env=settings.env)
    init_sentry(settings)
    return settings


@cli.command()
def run() -> None:
    """Run the reset/resync scheduler until interrupted."""
    settings = _settings()

    async def _main() -> None:
        async with open_services(settings) as services:
            worker = MaintenanceWorker(
                services.maintenance,
                tracking_timezone=settings.tracking.tracking_timezone,
                full_sync_interval_hours=settings.maintenance.full_sync_interval_hours,
            )
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, worker.stop)
            await worker.run()

    asyncio.run(_main())


@cli.command("sync-stats")
def sync_stats(
    short_code: Annotated[
        Optional[str], typer.Option("--short-code", "-s", help="Sync only this link")
    ] = None,
    after: Annotated[
        Optional[str], typer.Option("--after", help="Resume after this short code")
    ] = None,
    batch_size: Annotated[
        Optional[int], typer.Option("--batch-size", "-b", help="Links per batch")
    ] = None,
) -> None:
    """Recompute link counters from the click log."""
    settings = _settings()

    async def _main() -> None:
        async with open_services(settings) as services:
            report = await services.maintenance.sync_statistics(
                short_code, after=after, batch_size=batch_size
            )
            typer.echo(report.model_dump_json())

    asyncio.run(_main())


def _object_id(value: Optional[str], option: str) -> Optional[ObjectId]:
    if value is None:
        return None
    oid = parse_object_id(value)
    if oid is None:
        raise typer.BadParameter(f"not a valid id: {value}", param_hint=option)
    return oid


@cli.command("sync-usage")
def sync_usage(
    owner_id: Annotated[
        Optional[str], typer.Option("--owner-id", "-o", help="Sync only this owner")
    ] = None,
    after: Annotated[
        Optional[str], typer.Option("--after", help="Resume after this owner id")
    ] = None,
    batch_size: Annotated[
        Optional[int], typer.Option("--batch-size", "-b", help="Owners per batch")
    ] = None,
) -> None:
    """Recompute owner usage counters."""
    oid = _object_id(owner_id, "--owner-id")
    after_oid = _object_id(after, "--after")
    settings = _settings()

    async def _main() -> None:
        async with open_services(settings) as services:
            report = await services.maintenance.sync_owner_usage(
                oid, after=after_oid, batch_size=batch_size
            )
            typer.echo(report.model_dump_json())

    asyncio.run(_main())


@cli.command()
def status() -> None:
    """Report links with stale counters and recently synced owners."""
    settings = _settings()

    async def _main() -> None:
        async with open_services(settings) as services:
            report = await services.maintenance.sync_status()
            typer.echo(report.model_dump_json())

    asyncio.run(_main())


@cli.command()
def reset(
    period: Annotated[Period, typer.Argument(help="Which period counter to reset")],
) -> None:
    """Zero one period counter on links not refreshed since the period began."""
    settings = _settings()

    async def _main() -> None:
        async with open_services(settings) as services:
            jobs = {
                Period.daily: services.maintenance.reset_daily_counters,
                Period.weekly: services.maintenance.reset_weekly_counters,
                Period.monthly: services.maintenance.reset_monthly_counters,
            }
            report = await jobs[period]()
            typer.echo(report.model_dump_json())

    asyncio.run(_main())


if __name__ == "__main__":
    cli()
