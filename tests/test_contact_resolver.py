"""Tests for emergency contact resolution and its cache discipline."""

from __future__ import annotations

from config.emergency_numbers import EMERGENCY_NUMBERS, get_emergency_number
from src.exceptions import GeocodeError
from src.models.security import EmergencyContact
from src.services.cache import TTLCache
from src.services.contact_resolver import FALLBACK_CONTACT, EmergencyContactResolver
from tests.conftest import FakeClock, FakeGeocoder


class TestResolve:
    async def test_resolves_country_number(self) -> None:
        resolver = EmergencyContactResolver(FakeGeocoder("GB"), TTLCache(3_600))
        contact = await resolver.resolve(51.5007, -0.1246)
        assert contact == EmergencyContact(country_name="United Kingdom", number="999")

    async def test_lower_case_country_code(self) -> None:
        resolver = EmergencyContactResolver(FakeGeocoder("jp"), TTLCache(3_600))
        contact = await resolver.resolve(35.6762, 139.6503)
        assert contact.number == "110"

    async def test_success_is_cached_per_rounded_coordinate(self) -> None:
        geocoder = FakeGeocoder("US")
        resolver = EmergencyContactResolver(geocoder, TTLCache(3_600))
        await resolver.resolve(40.71284, -74.00601)
        await resolver.resolve(40.71261, -74.00560)
        assert len(geocoder.calls) == 1, "points within the same ~100 m cell should share one lookup"

    async def test_distinct_cells_are_looked_up_separately(self) -> None:
        geocoder = FakeGeocoder("US")
        resolver = EmergencyContactResolver(geocoder, TTLCache(3_600))
        await resolver.resolve(40.712, -74.006)
        await resolver.resolve(40.722, -74.006)
        assert len(geocoder.calls) == 2

    async def test_cached_contact_expires_after_an_hour(self) -> None:
        clock = FakeClock()
        geocoder = FakeGeocoder("US")
        resolver = EmergencyContactResolver(geocoder, TTLCache(3_600, clock=clock))

        await resolver.resolve(40.7128, -74.0060)
        clock.advance(59 * 60)
        await resolver.resolve(40.7128, -74.0060)
        assert len(geocoder.calls) == 1, "a 59-minute-old resolution is still served from cache"

        clock.advance(2 * 60)
        await resolver.resolve(40.7128, -74.0060)
        assert len(geocoder.calls) == 2, "a 61-minute-old resolution is looked up again"


class TestFallback:
    async def test_geocoder_error_yields_fallback(self) -> None:
        resolver = EmergencyContactResolver(FakeGeocoder(error=GeocodeError("boom", status_code=503)), TTLCache(60))
        assert await resolver.resolve(1.0, 2.0) == FALLBACK_CONTACT

    async def test_unexpected_error_yields_fallback(self) -> None:
        resolver = EmergencyContactResolver(FakeGeocoder(error=RuntimeError("socket closed")), TTLCache(60))
        assert await resolver.resolve(1.0, 2.0) == FALLBACK_CONTACT

    async def test_no_country_match_yields_fallback(self) -> None:
        resolver = EmergencyContactResolver(FakeGeocoder(None), TTLCache(60))
        assert await resolver.resolve(0.0, -160.0) == FALLBACK_CONTACT

    async def test_country_missing_from_table_yields_fallback(self) -> None:
        resolver = EmergencyContactResolver(FakeGeocoder("AQ"), TTLCache(60))
        assert await resolver.resolve(-80.0, 0.0) == FALLBACK_CONTACT

    async def test_fallback_is_not_cached(self) -> None:
        geocoder = FakeGeocoder(error=GeocodeError("timeout"))
        cache: TTLCache = TTLCache(3_600)
        resolver = EmergencyContactResolver(geocoder, cache)

        await resolver.resolve(48.8566, 2.3522)
        assert cache.size == 0, "a fallback must never be cached"

        geocoder.error = None
        geocoder.country_code = "FR"
        contact = await resolver.resolve(48.8566, 2.3522)
        assert contact.number == "112", "the next resolution should retry the lookup"
        assert len(geocoder.calls) == 2

    def test_fallback_contact(self) -> None:
        assert FALLBACK_CONTACT.country_name == "your location"
        assert FALLBACK_CONTACT.number == "911"
        assert FALLBACK_CONTACT.tel_uri == "tel:911"


class TestEmergencyNumbers:
    def test_table_is_keyed_by_upper_case_code(self) -> None:
        for code, entry in EMERGENCY_NUMBERS.items():
            assert code == entry.code == code.upper()
            assert entry.number.isdigit()

    def test_lookup_is_case_insensitive(self) -> None:
        assert get_emergency_number("de") == get_emergency_number("DE")

    def test_lookup_misses(self) -> None:
        assert get_emergency_number(None) is None
        assert get_emergency_number("") is None
        assert get_emergency_number("ZZ") is None
