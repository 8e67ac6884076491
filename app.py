"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as aioredis
import sentry_sdk
from fastapi import FastAPI
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.geoip import GeoIPService
from routes.analytics_routes import router as analytics_router
from routes.click_routes import router as click_router
from routes.health_routes import router as health_router
from routes.sync_routes import router as sync_router
from services.container import build_services
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def init_sentry(settings: AppSettings) -> None:
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
            environment=settings.env,
        )


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging, env=settings.env)
    # Initialise Sentry before anything else so it captures startup errors
    init_sentry(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        # tz_aware so stored clicked_at values compare against UTC boundaries
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]
        app.state.settings = settings

        # Redis is optional; without it every click resolves from MongoDB
        redis_client = None
        if settings.redis.redis_uri:
            redis_client = aioredis.from_url(
                settings.redis.redis_uri,
                encoding="utf-8",
                decode_responses=True,
            )
        app.state.redis = redis_client

        geoip = GeoIPService(settings.geoip_country_db, settings.geoip_city_db)
        app.state.geoip = geoip

        services = build_services(app.state.db, settings, redis_client, geoip)
        app.state.click_tracker = services.click_tracker
        app.state.analytics_service = services.analytics
        app.state.maintenance_service = services.maintenance

        await services.ensure_indexes()
        log.info("app_started", app_name=settings.app_name, db_name=settings.db.db_name)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        geoip.close()
        await mongo_client.close()
        if redis_client is not None:
            await redis_client.aclose()
        log.info("app_stopped")

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(click_router)
    app.include_router(analytics_router)
    app.include_router(sync_router)

    return app
