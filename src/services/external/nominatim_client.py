"""Reverse geocoding via OpenStreetMap Nominatim.

Only the ISO country code of a coordinate is consumed.  Nominatim's usage
policy requires an identifying ``User-Agent``.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.exceptions import GeocodeError

logger = structlog.get_logger(__name__)

BASE_URL = "https://nominatim.openstreetmap.org"


@runtime_checkable
class Geocoder(Protocol):
    async def reverse_geocode(self, latitude: float, longitude: float) -> str | None: ...


class NominatimGeocoder:
    """Resolve the country code for a coordinate.

    Parameters
    ----------
    base_url:
        Nominatim root URL.
    language:
        Value for ``accept-language``.
    user_agent:
        Identifying ``User-Agent`` header.
    timeout:
        Per-request timeout in seconds.
    retry_attempts:
        Total attempts for transient transport failures.
    transport:
        Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        *,
        base_url: str = BASE_URL,
        language: str = "en",
        user_agent: str = "SentinelSOS/0.1",
        timeout: float = 10.0,
        retry_attempts: int = 2,
        retry_wait_seconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            follow_redirects=True,
            transport=transport,
        )
        self._language = language
        self._retry_attempts = retry_attempts
        self._retry_wait_seconds = retry_wait_seconds

    async def close(self) -> None:
        await self._client.aclose()

    async def reverse_geocode(self, latitude: float, longitude: float) -> str | None:
        """Return the upper-case ISO country code, or ``None`` if there is no match.

        Raises
        ------
        GeocodeError
            On transport failure, non-2xx status, or an invalid payload.
        """
        params = {
            "format": "json",
            "lat": latitude,
            "lon": longitude,
            "accept-language": self._language,
        }
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(self._retry_attempts),
                wait=wait_exponential(multiplier=self._retry_wait_seconds, max=4),
                reraise=True,
            ):
                with attempt:
                    response = await self._client.get("/reverse", params=params)
        except httpx.HTTPError as exc:
            raise GeocodeError(f"Nominatim request failed: {exc!s}") from exc

        if not response.is_success:
            raise GeocodeError(
                f"Nominatim request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload: Any = response.json()
        except ValueError as exc:
            raise GeocodeError("Nominatim returned invalid JSON", status_code=response.status_code) from exc

        address = payload.get("address") if isinstance(payload, dict) else None
        code = address.get("country_code") if isinstance(address, dict) else None
        if not code:
            logger.info("geocode.no_match", latitude=round(latitude, 3), longitude=round(longitude, 3))
            return None
        return str(code).upper()
