"""HTTP adapters for the external hazard feed and geocoding service."""

from src.services.external.nominatim_client import Geocoder, NominatimGeocoder
from src.services.external.nws_client import COVERAGE_MESSAGE, HazardFeed, NWSHazardClient

__all__ = [
    "COVERAGE_MESSAGE",
    "Geocoder",
    "HazardFeed",
    "NWSHazardClient",
    "NominatimGeocoder",
]
