"""Tests for the HTTP API (monitor, health, and info endpoints)."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog
from fastapi.testclient import TestClient

from config.settings import settings
from src.main import _configure_logging, app
from src.pipeline.monitor import SecurityMonitor
from src.services.cache import TTLCache
from src.services.contact_resolver import EmergencyContactResolver
from src.services.emergency_lifecycle import EmergencyLifecycle
from src.services.manual_override import ManualOverride
from src.services.movement import MovementAnomalyDetector
from src.services.session_code import SESSION_CODE_PATTERN
from tests.conftest import FakeGeocoder, FakeHazardFeed, RecordingPresenter

KMH = 1 / 3.6


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Test client whose monitor is swapped for a fake-backed one (no network)."""
    override = ManualOverride()
    presenter = RecordingPresenter()
    contact_cache: TTLCache = TTLCache(3_600, name="contact")
    lifecycle = EmergencyLifecycle(presenter, EmergencyContactResolver(FakeGeocoder("US"), contact_cache), override)
    monitor = SecurityMonitor(MovementAnomalyDetector(override), FakeHazardFeed(), lifecycle, presenter, override)

    with TestClient(app) as test_client:
        app.state.monitor = monitor
        app.state.presenter = presenter
        app.state.caches = {"contact": contact_cache}
        yield test_client


@pytest.fixture
def bare_client() -> Iterator[TestClient]:
    """Test client with the monitor removed after startup."""
    with TestClient(app) as test_client:
        monitor = app.state.monitor
        del app.state.monitor
        yield test_client
        app.state.monitor = monitor


def _position(kmh: float | None) -> dict:
    return {
        "latitude": 40.7128,
        "longitude": -74.0060,
        "speed_mps": None if kmh is None else kmh * KMH,
    }


class TestMonitorEndpoints:
    def test_position_returns_level(self, client: TestClient) -> None:
        response = client.post("/api/v1/monitor/positions", json=_position(30))
        assert response.status_code == 200
        data = response.json()
        assert data["level"] == "safe"
        assert data["emergency"] == {"is_triggered": False, "reason": ""}

    def test_sudden_stop_triggers_emergency(self, client: TestClient) -> None:
        client.post("/api/v1/monitor/positions", json=_position(100))
        response = client.post("/api/v1/monitor/positions", json=_position(3))
        data = response.json()
        assert data["level"] == "danger"
        assert data["reason"] == "sudden stop from high speed"
        assert data["emergency"]["is_triggered"] is True

    def test_missing_speed_is_calculating(self, client: TestClient) -> None:
        response = client.post("/api/v1/monitor/positions", json=_position(None))
        assert response.json()["level"] == "calculating"

    def test_position_validation(self, client: TestClient) -> None:
        response = client.post("/api/v1/monitor/positions", json={"latitude": 123, "longitude": 0})
        assert response.status_code == 422

    def test_geolocation_error(self, client: TestClient) -> None:
        response = client.post("/api/v1/monitor/geolocation-error", json={"kind": "permission_denied"})
        assert response.status_code == 200
        assert response.json()["level"] == "calculating"

        status = client.get("/api/v1/monitor/status").json()
        assert status["geolocation_error"].startswith("Location permission was denied")

    def test_negative_speed_is_rejected(self, client: TestClient) -> None:
        response = client.post("/api/v1/monitor/positions", json={"latitude": 0, "longitude": 0, "speed_mps": -3})
        assert response.status_code == 422

    def test_unknown_geolocation_error_kind(self, client: TestClient) -> None:
        response = client.post("/api/v1/monitor/geolocation-error", json={"kind": "gremlins"})
        assert response.status_code == 422

    def test_sos_toggle_and_dismiss(self, client: TestClient) -> None:
        client.post("/api/v1/monitor/positions", json=_position(20))

        response = client.post("/api/v1/monitor/sos")
        data = response.json()
        assert data["sos_active"] is True
        assert data["level"] == "danger"
        assert data["reason"] == "manual SOS engaged"
        assert data["emergency"]["is_triggered"] is True

        response = client.post("/api/v1/monitor/emergency/dismiss")
        assert response.json() == {"is_triggered": False, "reason": ""}

        status = client.get("/api/v1/monitor/status").json()
        assert status["sos_active"] is False
        assert status["alarm_playing"] is False
        assert status["emergency_visible"] is False

    def test_status_snapshot(self, client: TestClient) -> None:
        client.post("/api/v1/monitor/positions", json=_position(45))
        status = client.get("/api/v1/monitor/status").json()
        assert status["level"] == "safe"
        assert status["marker"] == [40.7128, -74.006]
        assert status["hazards"] == []

    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("post", "/api/v1/monitor/positions"),
            ("post", "/api/v1/monitor/sos"),
            ("post", "/api/v1/monitor/emergency/dismiss"),
            ("get", "/api/v1/monitor/status"),
        ],
    )
    def test_missing_monitor_is_503(self, bare_client: TestClient, method: str, path: str) -> None:
        kwargs = {"json": _position(10)} if path.endswith("positions") else {}
        response = getattr(bare_client, method)(path, **kwargs)
        assert response.status_code == 503


class TestHealthEndpoints:
    def test_liveness(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == app.version

    def test_readiness_reports_stopped_monitor(self, client: TestClient) -> None:
        data = client.get("/api/v1/health/ready").json()
        assert data["checks"]["monitor"] == "stopped", "the swapped-in monitor was never started"
        assert data["checks"]["cache.contact"].startswith("ok")
        assert data["status"] == "degraded"

    def test_readiness_without_monitor(self, bare_client: TestClient) -> None:
        data = bare_client.get("/api/v1/health/ready").json()
        assert data["checks"]["monitor"] == "not_initialised"
        assert data["status"] == "degraded"


def test_api_info(bare_client: TestClient) -> None:
    response = bare_client.get("/api")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "SentinelSOS API"
    assert data["health"] == "/api/v1/health"


class TestApplicationStartup:
    def test_real_lifespan_boots(self) -> None:
        with TestClient(app) as test_client:
            monitor = app.state.monitor
            assert monitor.is_running is True, "the event-channel consumer starts with the app"
            assert app.state.cache_sweeper.is_running is True

            ready = test_client.get("/api/v1/health/ready").json()
            assert ready["checks"]["monitor"] == "ok"
            assert ready["checks"]["cache_sweeper"] == "ok"

            info = test_client.get("/api").json()
            assert info["session_code"] == app.state.session_code
            assert SESSION_CODE_PATTERN.match(info["session_code"])

        assert monitor.is_running is False, "shutdown stops the consumer"

    @pytest.mark.parametrize("level", ["debug", "INFO", "Warning", "ERROR"])
    @pytest.mark.parametrize("log_format", ["json", "console"])
    def test_configure_logging_accepts_level_names(
        self, monkeypatch: pytest.MonkeyPatch, level: str, log_format: str
    ) -> None:
        monkeypatch.setattr(settings, "log_level", level)
        monkeypatch.setattr(settings, "log_format", log_format)
        try:
            _configure_logging()
            structlog.get_logger("tests.startup").info("startup.logging_configured", level=level)
        finally:
            structlog.reset_defaults()
