"""Client for active weather alerts from the US National Weather Service.

The NWS API needs two steps per location:

1. ``GET /points/{lat},{lon}`` resolves the forecast zone for a coordinate.
   Zones change rarely, so the zone URL is cached per rounded coordinate
   (4 decimals) for ``hazard_zone_cache_ttl`` seconds.
2. ``GET {zone_url}/alerts`` lists the alerts active in that zone.

A 404 from the points lookup means the coordinate is outside NWS coverage
(the feed only serves the United States and its territories); that case is
raised as :class:`HazardCoverageError` so callers can show the explanation
verbatim.  Transient transport errors are retried with tenacity.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.exceptions import HazardCoverageError, HazardFeedError
from src.models.enums import HazardSeverity
from src.models.security import HazardRecord
from src.services.cache import coordinate_key

if TYPE_CHECKING:
    from src.services.cache import TTLCache

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_URL = "https://api.weather.gov"
ZONE_KEY_PRECISION = 4

COVERAGE_MESSAGE = "Weather alerts are only available in the United States and its territories."


@runtime_checkable
class HazardFeed(Protocol):
    """Anything that can list the active hazards for a coordinate."""

    async def fetch_hazards(self, latitude: float, longitude: float) -> list[HazardRecord]: ...


def parse_alert_features(payload: Any) -> list[HazardRecord]:
    """Turn an NWS GeoJSON alert collection into hazard records.

    A payload without ``features`` yields an empty list.
    """
    if not isinstance(payload, dict):
        raise HazardFeedError("Alert payload is not a JSON object")
    records: list[HazardRecord] = []
    for feature in payload.get("features") or []:
        properties = feature.get("properties") if isinstance(feature, dict) else None
        if not isinstance(properties, dict):
            continue
        records.append(
            HazardRecord(
                severity=HazardSeverity.parse(properties.get("severity")),
                event_label=str(properties.get("event") or ""),
            )
        )
    return records


# ---------------------------------------------------------------------------
# NWSHazardClient
# ---------------------------------------------------------------------------


class NWSHazardClient:
    """Fetch active NWS alerts for a coordinate.

    Parameters
    ----------
    zone_cache:
        TTL cache for resolved zone URLs, keyed by rounded coordinate.
    base_url:
        NWS API root.
    user_agent:
        NWS requires an identifying ``User-Agent``.
    timeout:
        Per-request timeout in seconds; the only timeout applied.
    retry_attempts:
        Total attempts for transient transport failures.
    retry_wait_seconds:
        Base of the exponential back-off between attempts.
    transport:
        Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        zone_cache: TTLCache[str, str],
        *,
        base_url: str = BASE_URL,
        user_agent: str = "SentinelSOS/0.1",
        timeout: float = 10.0,
        retry_attempts: int = 2,
        retry_wait_seconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={
                "User-Agent": user_agent,
                "Accept": "application/geo+json",
            },
            follow_redirects=True,
            transport=transport,
        )
        self._zone_cache = zone_cache
        self._retry_attempts = retry_attempts
        self._retry_wait_seconds = retry_wait_seconds

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_hazards(self, latitude: float, longitude: float) -> list[HazardRecord]:
        zone_url = await self.resolve_zone(latitude, longitude)
        response = await self._get(f"{zone_url.rstrip('/')}/alerts")
        if response.status_code != 200:
            raise HazardFeedError(
                f"NWS alerts request failed with status {response.status_code}",
                status_code=response.status_code,
            )
        records = parse_alert_features(self._json(response))
        logger.debug("nws.alerts_fetched", zone=zone_url, count=len(records))
        return records

    async def resolve_zone(self, latitude: float, longitude: float) -> str:
        """Return the forecast-zone URL for a coordinate, using the zone cache."""
        key = coordinate_key(latitude, longitude, ZONE_KEY_PRECISION)
        cached = await self._zone_cache.get(key)
        if cached is not None:
            return cached

        response = await self._get(f"/points/{key}")
        if response.status_code == 404:
            raise HazardCoverageError(COVERAGE_MESSAGE)
        if response.status_code != 200:
            raise HazardFeedError(
                f"NWS points request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        payload = self._json(response)
        properties = payload.get("properties") if isinstance(payload, dict) else None
        zone_url = properties.get("forecastZone") if isinstance(properties, dict) else None
        if not zone_url:
            raise HazardFeedError("Could not determine the forecast zone for alerts")

        await self._zone_cache.set(key, zone_url)
        logger.info("nws.zone_resolved", key=key, zone=zone_url)
        return zone_url

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _get(self, url: str) -> httpx.Response:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(self._retry_attempts),
                wait=wait_exponential(multiplier=self._retry_wait_seconds, max=4),
                reraise=True,
            ):
                with attempt:
                    return await self._client.get(url)
        except httpx.HTTPError as exc:
            raise HazardFeedError(f"NWS request failed: {exc!s}") from exc
        raise HazardFeedError("NWS request was not attempted")  # pragma: no cover

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise HazardFeedError("NWS returned invalid JSON", status_code=response.status_code) from exc
