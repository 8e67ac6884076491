"""
MongoDB store for click events.

Every aggregate query filters ``bot.is_bot == False``: bots are recorded for
observability but never counted. Events are only ever inserted or deleted
with their link; there is no update path.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from pymongo import ASCENDING, DESCENDING
from pymongo.asynchronous.collection import AsyncCollection

from repositories.base import time_range_filter, translate_store_errors
from schemas.models.click import UNKNOWN, ClickEvent

HASHED_IP_FIELD = "visitor.hashed_ip"
SHORT_CODE_FIELD = "meta.short_code"


def human_filter(
    short_code: str,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
) -> dict:
    return {
        SHORT_CODE_FIELD: short_code,
        "bot.is_bot": False,
        **time_range_filter(since, until),
    }


class MongoClickRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def ensure_indexes(self) -> None:
        await self._col.create_index(
            [(SHORT_CODE_FIELD, ASCENDING), ("clicked_at", DESCENDING)]
        )
        await self._col.create_index(
            [
                (SHORT_CODE_FIELD, ASCENDING),
                (HASHED_IP_FIELD, ASCENDING),
                ("clicked_at", DESCENDING),
            ]
        )
        await self._col.create_index([(SHORT_CODE_FIELD, ASCENDING), ("bot.is_bot", ASCENDING)])

    @translate_store_errors("click_insert")
    async def insert(self, event: ClickEvent) -> ClickEvent:
        result = await self._col.insert_one(event.to_mongo())
        return event.model_copy(update={"id": result.inserted_id})

    @translate_store_errors("click_history_lookup")
    async def find_recent_for_visitor(
        self, short_code: str, hashed_ip: str, limit: int
    ) -> list[ClickEvent]:
        query = {**human_filter(short_code), HASHED_IP_FIELD: hashed_ip}
        cursor = self._col.find(query).sort("clicked_at", DESCENDING).limit(limit)
        docs = await cursor.to_list(length=None)
        return [ClickEvent.from_mongo(doc) for doc in docs]

    @translate_store_errors("click_count")
    async def count_human(
        self,
        short_code: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int:
        return await self._col.count_documents(human_filter(short_code, since, until))

    @translate_store_errors("click_distinct_visitors")
    async def count_distinct_visitors(
        self,
        short_code: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int:
        # $group instead of distinct(): distinct() is capped by the 16MB reply limit
        pipeline = [
            {"$match": human_filter(short_code, since, until)},
            {"$group": {"_id": f"${HASHED_IP_FIELD}"}},
            {"$count": "visitors"},
        ]
        cursor = await self._col.aggregate(pipeline)
        rows = await cursor.to_list(length=None)
        return rows[0]["visitors"] if rows else 0

    @translate_store_errors("click_count_for_codes")
    async def count_human_for_codes(
        self, short_codes: Sequence[str], since: Optional[datetime] = None
    ) -> int:
        if not short_codes:
            return 0
        query = {
            SHORT_CODE_FIELD: {"$in": list(short_codes)},
            "bot.is_bot": False,
            **time_range_filter(since, None),
        }
        return await self._col.count_documents(query)

    @translate_store_errors("click_top_values")
    async def top_values(
        self,
        short_code: str,
        field: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[tuple[Optional[str], int]]:
        pipeline: list[dict] = [
            {"$match": human_filter(short_code, since, until)},
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
        ]
        if limit:
            pipeline.append({"$limit": limit})
        cursor = await self._col.aggregate(pipeline)
        rows = await cursor.to_list(length=None)
        return [(row["_id"], row["count"]) for row in rows]

    @translate_store_errors("click_daily_counts")
    async def daily_counts(
        self,
        short_code: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        timezone: str = "UTC",
    ) -> list[tuple[str, int]]:
        pipeline = [
            {"$match": human_filter(short_code, since, until)},
            {
                "$group": {
                    "_id": {
                        "$dateToString": {
                            "format": "%Y-%m-%d",
                            "date": "$clicked_at",
                            "timezone": timezone,
                        }
                    },
                    "count": {"$sum": 1},
                }
            },
            {"$sort": {"_id": 1}},
        ]
        cursor = await self._col.aggregate(pipeline)
        rows = await cursor.to_list(length=None)
        return [(row["_id"] or UNKNOWN, row["count"]) for row in rows]

    @translate_store_errors("click_delete_for_link")
    async def delete_for_link(self, short_code: str) -> int:
        result = await self._col.delete_many({SHORT_CODE_FIELD: short_code})
        return result.deleted_count
