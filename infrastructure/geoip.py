"""Async best-effort geography for click events.

geoip2 reads from local .mmdb files and is sync, so lookups run in
asyncio.to_thread(). Readers are opened lazily on first use (double-checked
locking with asyncio.Lock). A missing database, a private address or a
failed lookup all produce an empty LocationInfo; geography never fails a
click.
"""

from __future__ import annotations

import asyncio
import functools
from typing import Optional

import geoip2.database
import geoip2.errors
import maxminddb
import pycountry

from schemas.models.click import LocationInfo
from shared.ip_utils import is_public_ip
from shared.logging import get_logger

log = get_logger(__name__)

_LOOKUP_ERRORS = (
    geoip2.errors.AddressNotFoundError,
    ValueError,
    maxminddb.InvalidDatabaseError,
)

# pycountry uses official names; MaxMind and callers often do not
_COUNTRY_CODE_OVERRIDES = {"Turkey": "TR", "Russia": "RU"}


@functools.lru_cache(maxsize=None)
def country_code_for(country_name: Optional[str]) -> Optional[str]:
    """ISO 3166-1 alpha-2 code for a country name or code, or None."""
    if not country_name or not country_name.strip():
        return None
    name = country_name.strip()
    if name in _COUNTRY_CODE_OVERRIDES:
        return _COUNTRY_CODE_OVERRIDES[name]
    try:
        return pycountry.countries.lookup(name).alpha_2
    except LookupError:
        return None


class GeoIPService:
    def __init__(self, country_db_path: str, city_db_path: str) -> None:
        self._paths = {"country": country_db_path, "city": city_db_path}
        self._readers: dict[str, Optional[geoip2.database.Reader]] = {}
        self._lock = asyncio.Lock()

    async def _get_reader(self, kind: str) -> Optional[geoip2.database.Reader]:
        if kind not in self._readers:
            async with self._lock:
                if kind not in self._readers:
                    try:
                        reader = await asyncio.to_thread(
                            geoip2.database.Reader, self._paths[kind]
                        )
                    except (OSError, maxminddb.InvalidDatabaseError) as e:
                        log.warning(
                            "geoip_db_unavailable",
                            kind=kind,
                            error=str(e),
                            error_type=type(e).__name__,
                        )
                        reader = None
                    self._readers[kind] = reader
        return self._readers[kind]

    async def _query(self, kind: str, ip_address: str):
        reader = await self._get_reader(kind)
        if reader is None:
            return None
        try:
            return await asyncio.to_thread(getattr(reader, kind), ip_address)
        except _LOOKUP_ERRORS:
            return None
        except TypeError as e:
            # geoip2 raises TypeError when the file is the wrong database type
            log.error(
                "geoip_db_wrong_type",
                kind=kind,
                path=self._paths[kind],
                error=str(e),
            )
            self._readers[kind] = None
            reader.close()
            return None

    async def get_country(self, ip_address: str) -> Optional[str]:
        result = await self._query("country", ip_address)
        return result.country.name if result is not None else None

    async def get_city(self, ip_address: str) -> Optional[str]:
        result = await self._query("city", ip_address)
        return result.city.name if result is not None else None

    async def lookup(self, ip_address: Optional[str]) -> LocationInfo:
        """Country/city for a public IP; empty LocationInfo otherwise."""
        if not is_public_ip(ip_address):
            return LocationInfo()
        country, city = await asyncio.gather(
            self.get_country(ip_address), self.get_city(ip_address)
        )
        return LocationInfo(
            country=country, country_code=country_code_for(country), city=city
        )

    def close(self) -> None:
        for reader in self._readers.values():
            if reader is not None:
                reader.close()
        self._readers.clear()
