"""Shared fakes for the monitoring pipeline tests."""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Sequence

import pytest

from src.models.enums import SecurityLevel
from src.models.security import EmergencyContact, HazardRecord, Sample
from src.services.cache import TTLCache
from src.services.contact_resolver import EmergencyContactResolver
from src.services.emergency_lifecycle import EmergencyLifecycle
from src.services.manual_override import ManualOverride
from src.services.movement import MovementAnomalyDetector
from src.services.presenter import LoggingPresenter

KMH = 1 / 3.6


def sample_kmh(kmh: float | None, latitude: float = 40.7128, longitude: float = -74.0060) -> Sample:
    """Build a sample from a speed in km/h (the wire unit is m/s)."""
    return Sample(latitude=latitude, longitude=longitude, speed_mps=None if kmh is None else kmh * KMH)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHazardFeed:
    """Hazard feed returning canned records or raising a canned error."""

    def __init__(self, records: Sequence[HazardRecord] = (), error: Exception | None = None) -> None:
        self.records = list(records)
        self.error = error
        self.calls: list[tuple[float, float]] = []

    async def fetch_hazards(self, latitude: float, longitude: float) -> list[HazardRecord]:
        self.calls.append((latitude, longitude))
        if self.error is not None:
            raise self.error
        return list(self.records)


class FakeGeocoder:
    """Geocoder returning a fixed country code, optionally gated per call."""

    def __init__(self, country_code: str | None = "US", error: Exception | None = None) -> None:
        self.country_code = country_code
        self.error = error
        self.calls: list[tuple[float, float]] = []
        self.gates: dict[int, asyncio.Event] = {}
        self.codes: dict[int, str | None] = {}

    async def reverse_geocode(self, latitude: float, longitude: float) -> str | None:
        index = len(self.calls)
        self.calls.append((latitude, longitude))
        gate = self.gates.get(index)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return self.codes.get(index, self.country_code)


class RecordingPresenter(LoggingPresenter):
    """LoggingPresenter that also counts every notification."""

    def __init__(self) -> None:
        super().__init__()
        self.counts: Counter[str] = Counter()
        self.contacts: list[EmergencyContact] = []
        self.statuses: list[tuple[SecurityLevel, str]] = []

    def show_emergency(self, reason: str) -> None:
        self.counts["show_emergency"] += 1
        super().show_emergency(reason)

    def hide_emergency(self) -> None:
        self.counts["hide_emergency"] += 1
        super().hide_emergency()

    def set_contact_info(self, contact: EmergencyContact) -> None:
        self.counts["set_contact_info"] += 1
        self.contacts.append(contact)
        super().set_contact_info(contact)

    def set_status(self, level: SecurityLevel, reason: str) -> None:
        self.counts["set_status"] += 1
        self.statuses.append((level, reason))
        super().set_status(level, reason)

    def start_looping_alarm(self) -> None:
        self.counts["start_looping_alarm"] += 1
        super().start_looping_alarm()

    def stop_alarm(self) -> None:
        self.counts["stop_alarm"] += 1
        super().stop_alarm()

    def set_sos_indicator(self, active: bool) -> None:
        self.counts["set_sos_indicator"] += 1
        super().set_sos_indicator(active)


async def settle_contact_tasks() -> None:
    """Wait for every background contact resolution to finish."""
    tasks = [t for t in asyncio.all_tasks() if t.get_name().startswith("contact-resolution")]
    await asyncio.gather(*tasks, return_exceptions=True)


# -----------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------


@pytest.fixture
def override() -> ManualOverride:
    return ManualOverride()


@pytest.fixture
def presenter() -> RecordingPresenter:
    return RecordingPresenter()


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder("US")


@pytest.fixture
def contact_cache() -> TTLCache:
    return TTLCache(3_600, name="contact")


@pytest.fixture
def resolver(geocoder: FakeGeocoder, contact_cache: TTLCache) -> EmergencyContactResolver:
    return EmergencyContactResolver(geocoder, contact_cache)


@pytest.fixture
def lifecycle(
    presenter: RecordingPresenter,
    resolver: EmergencyContactResolver,
    override: ManualOverride,
) -> EmergencyLifecycle:
    return EmergencyLifecycle(presenter, resolver, override)


@pytest.fixture
def detector(override: ManualOverride) -> MovementAnomalyDetector:
    return MovementAnomalyDetector(override)
