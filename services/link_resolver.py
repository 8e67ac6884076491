"""
Short-code resolution for click ingestion.

Redis first, then MongoDB. Deleted links are cached too so repeated clicks
on a dead code do not hit the database.
"""

from __future__ import annotations

from errors import LinkNotFoundError
from infrastructure.cache.link_cache import CachedLink, LinkCache
from repositories.protocol import LinkRepository
from schemas.models.link import LinkDoc


class LinkResolver:
    def __init__(self, link_repo: LinkRepository, cache: LinkCache) -> None:
        self._links = link_repo
        self._cache = cache

    async def resolve(self, short_code: str) -> CachedLink:
        """Return identity of the live link behind *short_code*.

        Raises:
            LinkNotFoundError: code is unknown or the link was deleted.
        """
        cached = await self._cache.get(short_code)
        if cached is None:
            doc = await self._links.get_by_short_code(short_code)
            if doc is None:
                raise LinkNotFoundError(f"Unknown short code: {short_code}")
            cached = _to_cached(doc)
            await self._cache.set(cached)

        if cached.is_deleted:
            raise LinkNotFoundError(f"Link has been deleted: {short_code}")
        return cached

    async def invalidate(self, short_code: str) -> None:
        """Drop the cached identity so the next click re-reads MongoDB."""
        await self._cache.invalidate(short_code)

    async def get_link(self, short_code: str) -> LinkDoc:
        """Full LinkDoc for *short_code*, bypassing the cache."""
        doc = await self._links.get_by_short_code(short_code)
        if doc is None or doc.is_deleted:
            raise LinkNotFoundError(f"Unknown short code: {short_code}")
        return doc


def _to_cached(doc: LinkDoc) -> CachedLink:
    return CachedLink(
        link_id=str(doc.id),
        short_code=doc.short_code,
        owner_id=str(doc.owner_id),
        is_deleted=doc.is_deleted,
    )
