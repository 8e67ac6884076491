"""MongoDB store for link identity and the cached per-link counters."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.asynchronous.collection import AsyncCollection

from repositories.base import translate_store_errors
from schemas.models.link import LinkAggregate, LinkAnalyticsCache, LinkDoc

RESETTABLE_COUNTERS = frozenset({"today", "this_week", "this_month"})


class MongoLinkRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("short_code", ASCENDING)], unique=True)
        await self._col.create_index([("owner_id", ASCENDING), ("is_deleted", ASCENDING)])

    @translate_store_errors("link_lookup")
    async def get_by_short_code(self, short_code: str) -> Optional[LinkDoc]:
        doc = await self._col.find_one({"short_code": short_code})
        return LinkDoc.from_mongo(doc)

    @translate_store_errors("link_stats_write")
    async def set_click_stats(
        self,
        short_code: str,
        aggregate: LinkAggregate,
        last_click_at: Optional[datetime] = None,
    ) -> None:
        update: dict = {"clicks": aggregate.model_dump()}
        if last_click_at is not None:
            update["last_click_at"] = last_click_at
        await self._col.update_one({"short_code": short_code}, {"$set": update})

    @translate_store_errors("link_list_active")
    async def list_active_short_codes(
        self, after: Optional[str], limit: int
    ) -> list[str]:
        query: dict = {"is_deleted": {"$ne": True}}
        if after is not None:
            query["short_code"] = {"$gt": after}
        cursor = (
            self._col.find(query, {"short_code": 1, "_id": 0})
            .sort("short_code", ASCENDING)
            .limit(limit)
        )
        docs = await cursor.to_list(length=None)
        return [doc["short_code"] for doc in docs]

    @translate_store_errors("link_list_for_owner")
    async def list_active_for_owner(self, owner_id: ObjectId) -> list[LinkDoc]:
        cursor = self._col.find({"owner_id": owner_id, "is_deleted": {"$ne": True}})
        docs = await cursor.to_list(length=None)
        return [LinkDoc.from_mongo(doc) for doc in docs]

    @translate_store_errors("link_analytics_cache_write")
    async def set_analytics_cache(
        self, short_code: str, cache: LinkAnalyticsCache
    ) -> None:
        await self._col.update_one(
            {"short_code": short_code}, {"$set": {"analytics_cache": cache.model_dump()}}
        )

    @translate_store_errors("link_counter_reset")
    async def reset_counter(self, counter: str, before: datetime) -> int:
        """Zero ``clicks.<counter>`` on links not refreshed since *before*.

        Links refreshed after the period began already hold the right value
        for the new period and are left alone.
        """
        if counter not in RESETTABLE_COUNTERS:
            raise ValueError(f"Not a resettable counter: {counter!r}")
        result = await self._col.update_many(
            {"clicks.last_updated": {"$not": {"$gte": before}}},
            {"$set": {f"clicks.{counter}": 0}},
        )
        return result.modified_count

    @translate_store_errors("link_count_stale")
    async def count_stale(self, before: datetime) -> int:
        """Live links whose counters were last refreshed before *before*."""
        return await self._col.count_documents(
            {"is_deleted": {"$ne": True}, "clicks.last_updated": {"$lt": before}}
        )
