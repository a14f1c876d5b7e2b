"""Resolve the local emergency number for a coordinate.

Resolution is advisory: it never raises.  Any failure (geocoder down, no
country match, country missing from the table) yields ``FALLBACK_CONTACT``,
which is deliberately not cached so the next emergency retries the lookup.
Successful resolutions are cached per coordinate rounded to 3 decimals
(roughly 100 m) for ``contact_cache_ttl`` seconds.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

import structlog

from config.emergency_numbers import FALLBACK_COUNTRY_NAME, FALLBACK_NUMBER, get_emergency_number
from src.exceptions import GeocodeError
from src.models.security import EmergencyContact
from src.services.cache import coordinate_key

if TYPE_CHECKING:
    from src.services.cache import TTLCache
    from src.services.external.nominatim_client import Geocoder

logger = structlog.get_logger(__name__)

CONTACT_KEY_PRECISION: Final[int] = 3

FALLBACK_CONTACT: Final[EmergencyContact] = EmergencyContact(
    country_name=FALLBACK_COUNTRY_NAME,
    number=FALLBACK_NUMBER,
)


class EmergencyContactResolver:
    """Map a coordinate to ``{country_name, number}`` via reverse geocoding.

    Parameters
    ----------
    geocoder:
        Reverse geocoder returning an ISO country code.
    cache:
        TTL cache of successful resolutions.
    """

    __slots__ = ("_cache", "_geocoder")

    def __init__(self, geocoder: Geocoder, cache: TTLCache[str, EmergencyContact]) -> None:
        self._geocoder = geocoder
        self._cache = cache

    async def resolve(self, latitude: float, longitude: float) -> EmergencyContact:
        key = coordinate_key(latitude, longitude, CONTACT_KEY_PRECISION)
        contact = await self._cache.get_or_set(key, lambda: self._lookup(key, latitude, longitude))
        return contact if contact is not None else FALLBACK_CONTACT

    async def _lookup(self, key: str, latitude: float, longitude: float) -> EmergencyContact | None:
        try:
            country_code = await self._geocoder.reverse_geocode(latitude, longitude)
        except GeocodeError as exc:
            logger.warning("contact.resolve_failed", key=key, error=str(exc), status_code=exc.status_code)
            return None
        except Exception:
            logger.warning("contact.resolve_failed", key=key, exc_info=True)
            return None

        entry = get_emergency_number(country_code)
        if entry is None:
            logger.info("contact.no_table_entry", key=key, country_code=country_code)
            return None

        logger.info("contact.resolved", key=key, country_code=entry.code, number=entry.number)
        return EmergencyContact(country_name=entry.name, number=entry.number)
