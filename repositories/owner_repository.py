"""MongoDB store for owner usage counters."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.asynchronous.collection import AsyncCollection

from repositories.base import translate_store_errors
from schemas.models.owner import OwnerUsage


class MongoOwnerRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    @translate_store_errors("owner_list_active")
    async def list_active_ids(
        self, after: Optional[ObjectId], limit: int
    ) -> list[ObjectId]:
        query: dict = {"is_deleted": {"$ne": True}}
        if after is not None:
            query["_id"] = {"$gt": after}
        cursor = self._col.find(query, {"_id": 1}).sort("_id", ASCENDING).limit(limit)
        docs = await cursor.to_list(length=None)
        return [doc["_id"] for doc in docs]

    @translate_store_errors("owner_usage_write")
    async def set_usage(self, owner_id: ObjectId, usage: OwnerUsage) -> None:
        fields = usage.model_dump(exclude={"reset_date"})
        await self._col.update_one(
            {"_id": owner_id},
            {"$set": {f"usage.{key}": value for key, value in fields.items()}},
        )

    @translate_store_errors("owner_monthly_reset")
    async def reset_monthly(self, before: datetime, now: datetime) -> int:
        """Zero ``usage.monthly_clicks`` for owners neither reset nor refreshed since *before*."""
        result = await self._col.update_many(
            {
                "usage.reset_date": {"$not": {"$gte": before}},
                "usage.last_updated": {"$not": {"$gte": before}},
            },
            {"$set": {"usage.monthly_clicks": 0, "usage.reset_date": now}},
        )
        return result.modified_count

    @translate_store_errors("owner_count_refreshed")
    async def count_refreshed_since(self, since: datetime) -> int:
        return await self._col.count_documents({"usage.last_updated": {"$gte": since}})
