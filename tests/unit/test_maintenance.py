"""Unit tests for MaintenanceService: resets, resyncs and deletion."""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from errors import LinkNotFoundError
from infrastructure.cache.link_cache import LinkCache
from schemas.models.link import LinkAggregate, LinkDoc, TopEntry
from schemas.models.owner import OwnerDoc, OwnerUsage
from services.link_resolver import LinkResolver
from services.maintenance import MaintenanceService
from services.rollup import StatsRollup
from tests.fakes import (
    FakeClickRepository,
    FakeLinkRepository,
    FakeOwnerRepository,
    FakeRedis,
    make_event,
)

NOW = datetime(2024, 1, 17, 12, 0, 0, tzinfo=timezone.utc)  # Wednesday
TODAY = datetime(2024, 1, 17, tzinfo=timezone.utc)


@pytest.fixture
def clicks():
    return FakeClickRepository()


@pytest.fixture
def links():
    return FakeLinkRepository()


@pytest.fixture
def owners():
    return FakeOwnerRepository()


@pytest.fixture
def service(clicks, links, owners):
    rollup = StatsRollup(clicks, links, owners)
    resolver = LinkResolver(links, LinkCache(None))
    return MaintenanceService(
        clicks, links, owners, rollup, resolver, batch_size=2, clock=lambda: NOW
    )


def _link(code, *, updated=None, today=5, week=6, month=7, total=10, **kwargs):
    return LinkDoc(
        short_code=code,
        clicks=LinkAggregate(
            total=total, today=today, this_week=week, this_month=month, last_updated=updated
        ),
        **kwargs,
    )


class TestResets:
    async def test_daily_reset_zeroes_stale_links_only(self, service, links):
        links.add(_link("stale", updated=TODAY - timedelta(hours=3)))
        links.add(_link("fresh", updated=TODAY + timedelta(minutes=5)))
        links.add(_link("never"))

        report = await service.reset_daily_counters(NOW)

        assert report.period == "daily"
        assert report.links_reset == 2
        assert links.links["stale"].clicks.today == 0
        assert links.links["never"].clicks.today == 0
        # a click already rolled into today keeps its count
        assert links.links["fresh"].clicks.today == 5
        # other counters untouched
        assert links.links["stale"].clicks.this_week == 6
        assert links.links["stale"].clicks.total == 10

    async def test_daily_reset_idempotent(self, service, links):
        links.add(_link("stale", updated=TODAY - timedelta(hours=3)))
        await service.reset_daily_counters(NOW)
        await service.reset_daily_counters(NOW)
        assert links.links["stale"].clicks.today == 0
        assert links.links["stale"].clicks.this_month == 7

    async def test_weekly_reset_uses_monday(self, service, links):
        monday = datetime(2024, 1, 15, tzinfo=timezone.utc)
        links.add(_link("last_week", updated=monday - timedelta(hours=1)))
        links.add(_link("this_week", updated=monday + timedelta(hours=1)))
        report = await service.reset_weekly_counters(NOW)
        assert report.links_reset == 1
        assert links.links["last_week"].clicks.this_week == 0
        assert links.links["this_week"].clicks.this_week == 6

    async def test_monthly_reset_links_and_owners(self, service, links, owners):
        first = datetime(2024, 1, 1, tzinfo=timezone.utc)
        links.add(_link("dec", updated=first - timedelta(days=2)))
        stale_owner = ObjectId()
        fresh_owner = ObjectId()
        owners.owners[stale_owner] = OwnerDoc(
            _id=stale_owner,
            usage=OwnerUsage(monthly_clicks=40, last_updated=first - timedelta(days=1)),
        )
        owners.owners[fresh_owner] = OwnerDoc(
            _id=fresh_owner,
            usage=OwnerUsage(monthly_clicks=3, last_updated=first + timedelta(days=3)),
        )

        report = await service.reset_monthly_counters(NOW)

        assert (report.links_reset, report.owners_reset) == (1, 1)
        assert links.links["dec"].clicks.this_month == 0
        assert owners.owners[stale_owner].usage.monthly_clicks == 0
        assert owners.owners[stale_owner].usage.reset_date == NOW
        assert owners.owners[fresh_owner].usage.monthly_clicks == 3

    async def test_monthly_reset_skips_already_reset_owner(self, service, owners):
        oid = ObjectId()
        owners.owners[oid] = OwnerDoc(_id=oid, usage=OwnerUsage(reset_date=NOW))
        report = await service.reset_monthly_counters(NOW)
        assert report.owners_reset == 0


class TestSyncStatistics:
    async def test_single_link(self, service, clicks, links):
        links.add(LinkDoc(short_code="abc123", clicks=LinkAggregate(total=50)))
        clicks.events = [
            make_event(hashed_ip="a", clicked_at=NOW - timedelta(minutes=5)),
            make_event(hashed_ip="a", clicked_at=NOW - timedelta(days=2)),
            make_event(hashed_ip="b", clicked_at=NOW - timedelta(days=3)),
            make_event(hashed_ip="bot", clicked_at=NOW, is_bot=True),
        ]
        report = await service.sync_statistics("abc123")
        assert (report.processed, report.failed, report.last_short_code) == (1, 0, "abc123")
        agg = links.links["abc123"].clicks
        assert agg.total == 3
        assert agg.unique == 2

    async def test_sync_is_idempotent(self, service, clicks, links):
        links.add(LinkDoc(short_code="abc123"))
        clicks.events = [make_event(hashed_ip="a", clicked_at=NOW)]
        await service.sync_statistics("abc123")
        first = links.links["abc123"].clicks
        await service.sync_statistics("abc123")
        assert links.links["abc123"].clicks == first

    async def test_unknown_link_raises(self, service):
        with pytest.raises(LinkNotFoundError):
            await service.sync_statistics("nope00")

    async def test_all_links_in_batches(self, service, clicks, links):
        for code in ("a1", "b2", "c3", "d4", "e5"):
            links.add(LinkDoc(short_code=code))
            clicks.events.append(make_event(code, clicked_at=NOW))
        links.add(LinkDoc(short_code="zz", is_deleted=True))

        report = await service.sync_statistics()

        assert report.processed == 5
        assert report.failed == 0
        assert report.last_short_code == "e5"
        assert all(links.links[c].clicks.total == 1 for c in ("a1", "b2", "c3", "d4", "e5"))
        assert links.links["zz"].clicks.last_updated is None

    async def test_resume_after_checkpoint(self, service, links):
        for code in ("a1", "b2", "c3"):
            links.add(LinkDoc(short_code=code))
        report = await service.sync_statistics(after="a1")
        assert report.processed == 2
        assert links.links["a1"].clicks.last_updated is None

    async def test_per_link_failure_counted(self, service, links):
        for code in ("a1", "b2", "c3"):
            links.add(LinkDoc(short_code=code))
        links.failing_codes.add("b2")
        report = await service.sync_statistics()
        assert (report.processed, report.failed) == (2, 1)
        assert report.last_short_code == "c3"

    async def test_sync_rebuilds_analytics_cache(self, service, clicks, links):
        links.add(LinkDoc(short_code="abc123"))
        clicks.events = [
            make_event(hashed_ip="a", country_code="DE", referrer_domain="t.co"),
            make_event(hashed_ip="b", country_code="DE", device_type="mobile"),
            make_event(hashed_ip="c", country_code=None),
            make_event(hashed_ip="d", country_code="US", is_bot=True),
        ]

        await service.sync_statistics("abc123")

        cache = links.links["abc123"].analytics_cache
        assert cache.top_countries == [TopEntry(value="DE", count=2)]
        assert cache.top_referrers == [TopEntry(value="t.co", count=1)]
        assert cache.top_devices == [
            TopEntry(value="desktop", count=2),
            TopEntry(value="mobile", count=1),
        ]
        assert cache.last_sync_at == NOW

    async def test_batch_sync_rebuilds_analytics_cache(self, service, clicks, links):
        links.add(LinkDoc(short_code="a1"))
        clicks.events = [make_event("a1", country_code="FR")]
        await service.sync_statistics()
        assert links.links["a1"].analytics_cache.top_countries == [
            TopEntry(value="FR", count=1)
        ]


class TestSyncOwnerUsage:
    async def test_single_owner(self, service, links, owners):
        oid = ObjectId()
        owners.owners[oid] = OwnerDoc(_id=oid)
        links.add(LinkDoc(short_code="one", owner_id=oid, clicks=LinkAggregate(total=4)))
        report = await service.sync_owner_usage(oid)
        assert report.processed == 1
        assert report.last_owner_id == str(oid)
        assert owners.owners[oid].usage.clicks_count == 4

    async def test_all_owners(self, service, owners):
        ids = sorted(ObjectId() for _ in range(3))
        for oid in ids:
            owners.owners[oid] = OwnerDoc(_id=oid)
        deleted = ObjectId()
        owners.owners[deleted] = OwnerDoc(_id=deleted, is_deleted=True)

        report = await service.sync_owner_usage()

        assert report.processed == 3
        assert report.last_owner_id == str(ids[-1])
        assert owners.owners[deleted].usage.last_updated is None


async def test_delete_link_events(service, clicks):
    clicks.events = [
        make_event("abc123"),
        make_event("abc123", is_bot=True),
        make_event("other1"),
    ]
    assert await service.delete_link_events("abc123") == 2
    assert [e.meta.short_code for e in clicks.events] == ["other1"]


async def test_delete_link_events_drops_cached_identity(clicks, links, owners):
    cache = LinkCache(FakeRedis())
    resolver = LinkResolver(links, cache)
    service = MaintenanceService(
        clicks, links, owners, StatsRollup(clicks, links, owners), resolver, clock=lambda: NOW
    )
    link = links.add(LinkDoc(short_code="abc123"))
    await resolver.resolve("abc123")  # warms the cache with the live identity
    links.links["abc123"] = link.model_copy(update={"is_deleted": True})

    await service.delete_link_events("abc123")

    assert await cache.get("abc123") is None
    with pytest.raises(LinkNotFoundError):
        await resolver.resolve("abc123")


class TestSyncStatus:
    async def test_counts_stale_links_and_recent_owners(self, service, links, owners):
        links.add(_link("stale", updated=NOW - timedelta(hours=2)))
        links.add(_link("fresh", updated=NOW - timedelta(minutes=10)))
        links.add(_link("gone", updated=NOW - timedelta(days=3), is_deleted=True))
        links.add(_link("never"))
        recent, old = ObjectId(), ObjectId()
        owners.owners[recent] = OwnerDoc(
            _id=recent, usage=OwnerUsage(last_updated=NOW - timedelta(hours=3))
        )
        owners.owners[old] = OwnerDoc(
            _id=old, usage=OwnerUsage(last_updated=NOW - timedelta(days=2))
        )

        status = await service.sync_status()

        assert status.links_needing_sync == 1
        assert status.owners_synced_recently == 1
        assert status.checked_at == NOW

    async def test_sync_clears_stale_count(self, service, links):
        links.add(_link("stale", updated=NOW - timedelta(hours=2)))
        await service.sync_statistics()
        assert (await service.sync_status()).links_needing_sync == 0
