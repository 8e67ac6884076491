"""
Click ingestion: resolve, identify, classify, deduplicate, record, roll up.

record_click() is called once per redirect, off the visitor's critical path.
Nothing it does may fail the redirect, so every error is logged and turned
into a ``None`` result. An event that was written is returned even if the
follow-up rollup failed; the next sync repairs the counters.

Bots are always recorded and never deduplicated or counted.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from bson import ObjectId

from config import TrackingSettings
from errors import LinkNotFoundError, TransientStoreError
from infrastructure.cache.link_cache import CachedLink
from infrastructure.geoip import GeoIPService, country_code_for
from repositories.protocol import ClickRepository
from schemas.dto.requests.click import RecordClickInput
from schemas.models.base import is_anonymous_owner
from schemas.models.click import (
    UNKNOWN,
    ClickEvent,
    ClickMeta,
    LocationInfo,
    VisitorInfo,
)
from services.dedup import DedupDecision, decide
from services.link_resolver import LinkResolver
from services.rollup import StatsRollup
from shared.classification import RequestClassification, classify_request
from shared.crypto import VisitorIdentity, build_visitor_identity
from shared.datetime_utils import ensure_utc, start_of_day, utcnow
from shared.logging import get_logger, should_sample

log = get_logger(__name__)


class ClickTracker:
    def __init__(
        self,
        resolver: LinkResolver,
        click_repo: ClickRepository,
        rollup: StatsRollup,
        tracking: TrackingSettings,
        geoip: Optional[GeoIPService] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._resolver = resolver
        self._clicks = click_repo
        self._rollup = rollup
        self._tracking = tracking
        self._geoip = geoip
        self._clock = clock

    async def record_click(self, data: RecordClickInput) -> Optional[ClickEvent]:
        """Record one click against ``data.short_code``.

        Returns:
            The stored ClickEvent, or None when the link is unknown, the
            click is a reload, or the store rejected the write.
        """
        now = ensure_utc(self._clock())

        try:
            link = await self._resolver.resolve(data.short_code)
        except LinkNotFoundError as e:
            log.warning(
                "click_link_not_found", short_code=data.short_code, error=e.message
            )
            return None
        except TransientStoreError as e:
            log.error(
                "click_link_lookup_failed",
                short_code=data.short_code,
                error=e.message,
                error_type=type(e).__name__,
            )
            return None

        identity = build_visitor_identity(
            data.ip,
            data.user_agent,
            now,
            salt=self._tracking.ip_hash_salt,
            session_window_seconds=self._tracking.session_window_seconds,
        )
        ctx = log.bind(short_code=data.short_code, ip_hash=identity.hashed_ip[:16])

        classification = classify_request(data.user_agent, data.referrer)
        location = await self._locate(data)
        is_bot = classification.bot.is_bot

        decision: Optional[DedupDecision] = None
        if not is_bot:
            try:
                decision = await self._decide(data.short_code, identity, now)
            except TransientStoreError as e:
                ctx.error("click_history_lookup_failed", error=e.message)
                return None
            if not decision.should_record:
                if should_sample("click_deduplicated"):
                    ctx.info(
                        "click_deduplicated",
                        reason=decision.reason,
                        prior_clicks=decision.prior_clicks,
                    )
                return None

        event = _build_event(link, data, identity, classification, location, now)
        try:
            event = await self._clicks.insert(event)
        except TransientStoreError as e:
            ctx.error(
                "click_event_write_failed", error=e.message, error_type=type(e).__name__
            )
            return None

        if not is_bot:
            await self._roll_up(link, now, ctx)

        if should_sample("click_recorded"):
            ctx.info(
                "click_recorded",
                is_bot=is_bot,
                bot_name=classification.bot.bot_name,
                reason=decision.reason if decision else None,
                classification=classification.status,
            )
        return event

    async def _decide(
        self, short_code: str, identity: VisitorIdentity, now: datetime
    ) -> DedupDecision:
        history = await self._clicks.find_recent_for_visitor(
            short_code, identity.hashed_ip, self._tracking.history_limit
        )
        return decide(
            history,
            now,
            reload_window=timedelta(seconds=self._tracking.reload_window_seconds),
            session_window=timedelta(seconds=self._tracking.session_window_seconds),
            day_start=start_of_day(now, self._tracking.tracking_timezone),
        )

    async def _locate(self, data: RecordClickInput) -> LocationInfo:
        # Upstream hints win over the local database
        if data.country or data.city:
            return LocationInfo(
                country=data.country,
                country_code=country_code_for(data.country),
                city=data.city,
            )
        if self._geoip is None:
            return LocationInfo()
        return await self._geoip.lookup(data.ip)

    async def _roll_up(self, link: CachedLink, now: datetime, ctx) -> None:
        try:
            await self._rollup.refresh_link(link.short_code, now, last_click_at=now)
            if not is_anonymous_owner(link.owner_id):
                await self._rollup.refresh_owner(ObjectId(link.owner_id), now)
        except TransientStoreError as e:
            ctx.error(
                "aggregate_recompute_failed",
                error=e.message,
                error_type=type(e).__name__,
            )


def _build_event(
    link: CachedLink,
    data: RecordClickInput,
    identity: VisitorIdentity,
    classification: RequestClassification,
    location: LocationInfo,
    now: datetime,
) -> ClickEvent:
    return ClickEvent(
        clicked_at=now,
        meta=ClickMeta(
            link_id=ObjectId(link.link_id),
            short_code=link.short_code,
            owner_id=ObjectId(link.owner_id),
        ),
        visitor=VisitorInfo(
            hashed_ip=identity.hashed_ip,
            user_agent=data.user_agent or UNKNOWN,
            session_id=identity.session_id,
            fingerprint=identity.fingerprint,
        ),
        device=classification.device,
        location=location,
        referrer=classification.referrer,
        bot=classification.bot,
        classification=classification.status,
    )
