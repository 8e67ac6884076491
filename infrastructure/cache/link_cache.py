"""Short-code resolution cache.

Stores CachedLink as JSON (not pickle) so cache entries are debuggable and
safe to deserialise across Python versions. Only link identity is cached;
counters are never cached here.

Every operation degrades to a miss/no-op when Redis is absent or failing.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Optional

import redis.asyncio as aioredis

from shared.logging import get_logger

log = get_logger(__name__)


@dataclass
class CachedLink:
    link_id: str  # ObjectId as string
    short_code: str
    owner_id: str  # ObjectId as string; ANONYMOUS_OWNER_ID for unowned links
    is_deleted: bool


class LinkCache:
    def __init__(
        self, redis_client: Optional[aioredis.Redis], ttl_seconds: int = 300
    ) -> None:
        self._redis = redis_client
        self.ttl_seconds = ttl_seconds

    def _key(self, short_code: str) -> str:
        return f"link_cache:{short_code}"

    async def get(self, short_code: str) -> Optional[CachedLink]:
        if self._redis is None:
            return None
        try:
            raw = await self._redis.get(self._key(short_code))
            if raw is None:
                return None
            return CachedLink(**json.loads(raw))
        except Exception as e:
            log.warning("link_cache_get_error", short_code=short_code, error=str(e))
            return None

    async def set(self, data: CachedLink) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.setex(
                self._key(data.short_code),
                self.ttl_seconds,
                json.dumps(asdict(data)),
            )
        except Exception as e:
            log.error("link_cache_set_error", short_code=data.short_code, error=str(e))

    async def invalidate(self, short_code: str) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.delete(self._key(short_code))
            log.info("link_cache_invalidated", short_code=short_code)
        except Exception as e:
            log.error("link_cache_invalidate_error", short_code=short_code, error=str(e))
