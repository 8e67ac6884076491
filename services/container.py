"""
Service wiring shared by the HTTP app and the maintenance worker.

build_services() takes already-open clients and returns every service the
entry points need; the caller owns the client lifecycles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import redis.asyncio as aioredis
from pymongo.asynchronous.database import AsyncDatabase

from config import AppSettings
from infrastructure.cache.link_cache import LinkCache
from infrastructure.geoip import GeoIPService
from repositories.click_repository import MongoClickRepository
from repositories.link_repository import MongoLinkRepository
from repositories.owner_repository import MongoOwnerRepository
from services.analytics import AnalyticsService
from services.click_tracker import ClickTracker
from services.link_resolver import LinkResolver
from services.maintenance import MaintenanceService
from services.rollup import StatsRollup


@dataclass
class ServiceContainer:
    click_repo: MongoClickRepository
    link_repo: MongoLinkRepository
    owner_repo: MongoOwnerRepository
    click_tracker: ClickTracker
    analytics: AnalyticsService
    maintenance: MaintenanceService

    async def ensure_indexes(self) -> None:
        await self.click_repo.ensure_indexes()
        await self.link_repo.ensure_indexes()


def build_services(
    db: AsyncDatabase,
    settings: AppSettings,
    redis_client: Optional[aioredis.Redis] = None,
    geoip: Optional[GeoIPService] = None,
) -> ServiceContainer:
    tracking = settings.tracking
    click_repo = MongoClickRepository(db[settings.db.clicks_collection])
    link_repo = MongoLinkRepository(db[settings.db.links_collection])
    owner_repo = MongoOwnerRepository(db[settings.db.owners_collection])

    resolver = LinkResolver(
        link_repo, LinkCache(redis_client, settings.redis.redis_ttl_seconds)
    )
    rollup = StatsRollup(
        click_repo, link_repo, owner_repo, tracking_timezone=tracking.tracking_timezone
    )

    return ServiceContainer(
        click_repo=click_repo,
        link_repo=link_repo,
        owner_repo=owner_repo,
        click_tracker=ClickTracker(resolver, click_repo, rollup, tracking, geoip),
        analytics=AnalyticsService(
            resolver,
            click_repo,
            top_n=tracking.analytics_top_n,
            tracking_timezone=tracking.tracking_timezone,
        ),
        maintenance=MaintenanceService(
            click_repo,
            link_repo,
            owner_repo,
            rollup,
            resolver,
            tracking_timezone=tracking.tracking_timezone,
            batch_size=settings.maintenance.sync_batch_size,
        ),
    )
