"""Unit tests for the MongoDB repositories, against mocked async collections."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect

from errors import TransientStoreError
from repositories.base import time_range_filter
from repositories.click_repository import MongoClickRepository
from repositories.link_repository import MongoLinkRepository
from repositories.owner_repository import MongoOwnerRepository
from schemas.models.base import ANONYMOUS_OWNER_ID
from schemas.models.link import LinkAggregate, LinkAnalyticsCache, TopEntry
from schemas.models.owner import OwnerUsage
from tests.fakes import make_event

NOW = datetime(2024, 1, 17, 12, 0, tzinfo=timezone.utc)


def _cursor(docs):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


def _collection(find_docs=None, aggregate_rows=None):
    col = MagicMock()
    col.find.return_value = _cursor(find_docs or [])
    col.aggregate = AsyncMock(return_value=_cursor(aggregate_rows or []))
    col.find_one = AsyncMock(return_value=None)
    col.insert_one = AsyncMock()
    col.update_one = AsyncMock()
    col.update_many = AsyncMock(return_value=MagicMock(modified_count=0))
    col.delete_many = AsyncMock(return_value=MagicMock(deleted_count=0))
    col.count_documents = AsyncMock(return_value=0)
    col.create_index = AsyncMock()
    return col


# ── repositories.base ─────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "since, until, expected",
    [
        (None, None, {}),
        (NOW, None, {"clicked_at": {"$gte": NOW}}),
        (None, NOW, {"clicked_at": {"$lte": NOW}}),
        (NOW, NOW, {"clicked_at": {"$gte": NOW, "$lte": NOW}}),
    ],
    ids=["open", "since", "until", "both"],
)
def test_time_range_filter(since, until, expected):
    assert time_range_filter(since, until) == expected


# ── MongoClickRepository ──────────────────────────────────────────────────────


class TestMongoClickRepository:
    async def test_insert_returns_event_with_id(self):
        col = _collection()
        oid = ObjectId()
        col.insert_one.return_value = MagicMock(inserted_id=oid)
        stored = await MongoClickRepository(col).insert(make_event())
        assert stored.id == oid
        doc = col.insert_one.call_args.args[0]
        assert "_id" not in doc
        assert doc["meta"]["short_code"] == "abc123"

    async def test_history_query_filters_humans_newest_first(self):
        col = _collection(find_docs=[make_event().to_mongo()])
        events = await MongoClickRepository(col).find_recent_for_visitor("abc123", "h1", 10)
        assert len(events) == 1
        query = col.find.call_args.args[0]
        assert query == {
            "meta.short_code": "abc123",
            "bot.is_bot": False,
            "visitor.hashed_ip": "h1",
        }
        cursor = col.find.return_value
        cursor.sort.assert_called_once_with("clicked_at", -1)
        cursor.limit.assert_called_once_with(10)

    async def test_count_human(self):
        col = _collection()
        col.count_documents.return_value = 7
        assert await MongoClickRepository(col).count_human("abc123", since=NOW) == 7
        col.count_documents.assert_awaited_once_with(
            {"meta.short_code": "abc123", "bot.is_bot": False, "clicked_at": {"$gte": NOW}}
        )

    async def test_count_distinct_visitors(self):
        col = _collection(aggregate_rows=[{"visitors": 4}])
        assert await MongoClickRepository(col).count_distinct_visitors("abc123") == 4
        pipeline = col.aggregate.call_args.args[0]
        assert pipeline[1] == {"$group": {"_id": "$visitor.hashed_ip"}}

    async def test_count_distinct_visitors_empty(self):
        col = _collection(aggregate_rows=[])
        assert await MongoClickRepository(col).count_distinct_visitors("abc123") == 0

    async def test_count_for_codes_empty_skips_query(self):
        col = _collection()
        assert await MongoClickRepository(col).count_human_for_codes([]) == 0
        col.count_documents.assert_not_awaited()

    async def test_count_for_codes(self):
        col = _collection()
        col.count_documents.return_value = 3
        assert await MongoClickRepository(col).count_human_for_codes(["a", "b"], NOW) == 3
        query = col.count_documents.call_args.args[0]
        assert query["meta.short_code"] == {"$in": ["a", "b"]}
        assert query["clicked_at"] == {"$gte": NOW}

    async def test_top_values(self):
        col = _collection(aggregate_rows=[{"_id": "Germany", "count": 3}, {"_id": None, "count": 1}])
        rows = await MongoClickRepository(col).top_values(
            "abc123", "location.country", limit=10
        )
        assert rows == [("Germany", 3), (None, 1)]
        pipeline = col.aggregate.call_args.args[0]
        assert pipeline[1]["$group"]["_id"] == "$location.country"
        assert pipeline[-1] == {"$limit": 10}

    async def test_daily_counts_uses_timezone(self):
        col = _collection(aggregate_rows=[{"_id": "2024-01-17", "count": 2}])
        rows = await MongoClickRepository(col).daily_counts("abc123", timezone="Europe/Berlin")
        assert rows == [("2024-01-17", 2)]
        date_expr = col.aggregate.call_args.args[0][1]["$group"]["_id"]["$dateToString"]
        assert date_expr["timezone"] == "Europe/Berlin"
        assert date_expr["format"] == "%Y-%m-%d"

    async def test_delete_for_link(self):
        col = _collection()
        col.delete_many.return_value = MagicMock(deleted_count=5)
        assert await MongoClickRepository(col).delete_for_link("abc123") == 5
        col.delete_many.assert_awaited_once_with({"meta.short_code": "abc123"})

    async def test_pymongo_error_becomes_transient(self):
        col = _collection()
        col.insert_one.side_effect = AutoReconnect("primary stepped down")
        with pytest.raises(TransientStoreError):
            await MongoClickRepository(col).insert(make_event())

    async def test_ensure_indexes(self):
        col = _collection()
        await MongoClickRepository(col).ensure_indexes()
        assert col.create_index.await_count == 3


# ── MongoLinkRepository ───────────────────────────────────────────────────────


class TestMongoLinkRepository:
    async def test_get_by_short_code_missing(self):
        col = _collection()
        assert await MongoLinkRepository(col).get_by_short_code("nope00") is None

    async def test_get_by_short_code(self):
        col = _collection()
        oid = ObjectId()
        col.find_one.return_value = {"_id": oid, "short_code": "abc123", "clicks": {"total": 3}}
        link = await MongoLinkRepository(col).get_by_short_code("abc123")
        assert link.id == oid
        assert link.clicks.total == 3
        assert link.owner_id == ANONYMOUS_OWNER_ID

    async def test_set_click_stats_overwrites(self):
        col = _collection()
        agg = LinkAggregate(total=2, unique=1, last_updated=NOW)
        await MongoLinkRepository(col).set_click_stats("abc123", agg, last_click_at=NOW)
        filt, update = col.update_one.call_args.args
        assert filt == {"short_code": "abc123"}
        assert "$inc" not in update
        assert update["$set"]["clicks"]["total"] == 2
        assert update["$set"]["last_click_at"] == NOW

    async def test_list_active_short_codes_after(self):
        col = _collection(find_docs=[{"short_code": "b2"}, {"short_code": "c3"}])
        codes = await MongoLinkRepository(col).list_active_short_codes("a1", 2)
        assert codes == ["b2", "c3"]
        query = col.find.call_args.args[0]
        assert query == {"is_deleted": {"$ne": True}, "short_code": {"$gt": "a1"}}

    async def test_reset_counter_filters_on_last_updated(self):
        col = _collection()
        col.update_many.return_value = MagicMock(modified_count=4)
        assert await MongoLinkRepository(col).reset_counter("today", NOW) == 4
        filt, update = col.update_many.call_args.args
        assert filt == {"clicks.last_updated": {"$not": {"$gte": NOW}}}
        assert update == {"$set": {"clicks.today": 0}}

    async def test_reset_counter_rejects_unknown(self):
        with pytest.raises(ValueError):
            await MongoLinkRepository(_collection()).reset_counter("total", NOW)

    async def test_set_analytics_cache(self):
        col = _collection()
        cache = LinkAnalyticsCache(
            top_countries=[TopEntry(value="DE", count=3)], last_sync_at=NOW
        )
        await MongoLinkRepository(col).set_analytics_cache("abc123", cache)
        filt, update = col.update_one.call_args.args
        assert filt == {"short_code": "abc123"}
        stored = update["$set"]["analytics_cache"]
        assert stored["top_countries"] == [{"value": "DE", "count": 3}]
        assert stored["top_referrers"] == []
        assert stored["last_sync_at"] == NOW

    async def test_count_stale(self):
        col = _collection()
        col.count_documents.return_value = 5
        assert await MongoLinkRepository(col).count_stale(NOW) == 5
        col.count_documents.assert_awaited_once_with(
            {"is_deleted": {"$ne": True}, "clicks.last_updated": {"$lt": NOW}}
        )


# ── MongoOwnerRepository ──────────────────────────────────────────────────────


class TestMongoOwnerRepository:
    async def test_set_usage_keeps_reset_date(self):
        col = _collection()
        oid = ObjectId()
        await MongoOwnerRepository(col).set_usage(oid, OwnerUsage(links_count=2, last_updated=NOW))
        filt, update = col.update_one.call_args.args
        assert filt == {"_id": oid}
        assert update["$set"]["usage.links_count"] == 2
        assert "usage.reset_date" not in update["$set"]

    async def test_reset_monthly(self):
        col = _collection()
        col.update_many.return_value = MagicMock(modified_count=1)
        assert await MongoOwnerRepository(col).reset_monthly(NOW, NOW) == 1
        filt, update = col.update_many.call_args.args
        assert filt["usage.reset_date"] == {"$not": {"$gte": NOW}}
        assert update["$set"] == {"usage.monthly_clicks": 0, "usage.reset_date": NOW}

    async def test_list_active_ids(self):
        ids = [ObjectId(), ObjectId()]
        col = _collection(find_docs=[{"_id": i} for i in ids])
        assert await MongoOwnerRepository(col).list_active_ids(None, 10) == ids

    async def test_count_refreshed_since(self):
        col = _collection()
        col.count_documents.return_value = 2
        assert await MongoOwnerRepository(col).count_refreshed_since(NOW) == 2
        col.count_documents.assert_awaited_once_with({"usage.last_updated": {"$gte": NOW}})
