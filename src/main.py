"""SentinelSOS FastAPI application entry point.

Creates the FastAPI app, configures middleware, includes routers, and
manages the lifecycle of the monitoring pipeline (caches, hazard feed,
geocoder, detector, emergency lifecycle, SecurityMonitor).
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from config.settings import settings
from src.api.router import api_router

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging() -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            settings.log_level.upper(),
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of the monitoring pipeline.

    On startup (after issuing the session's security code):
      1. Create the contact and hazard-zone caches and their sweeper
      2. Create the hazard feed and geocoder HTTP clients
      3. Wire override, detector, presenter, resolver, and lifecycle
      4. Start the SecurityMonitor event channel
      5. Store everything on ``app.state``

    On shutdown:
      - Stop the monitor and the cache sweeper.
      - Close both HTTP clients.
    """
    _configure_logging()
    logger.info(
        "app.startup",
        env=settings.env,
        high_speed_threshold_kmh=settings.high_speed_threshold_kmh,
        sudden_stop_threshold_kmh=settings.sudden_stop_threshold_kmh,
    )

    app.state.start_time = time.time()

    from src.services.session_code import generate_session_code

    app.state.session_code = generate_session_code()
    logger.info("app.session_code_issued", session_code=app.state.session_code)

    # -- 1. Caches ----------------------------------------------------------
    from src.services.cache import CacheSweeper, TTLCache

    contact_cache: TTLCache = TTLCache(
        settings.contact_cache_ttl,
        max_size=settings.cache_max_size,
        name="contact",
    )
    zone_cache: TTLCache = TTLCache(
        settings.hazard_zone_cache_ttl,
        max_size=settings.cache_max_size,
        name="hazard_zone",
    )
    sweeper = CacheSweeper([contact_cache, zone_cache], interval_seconds=settings.cache_sweep_interval_seconds)
    sweeper.start()
    app.state.caches = {"contact": contact_cache, "hazard_zone": zone_cache}
    app.state.cache_sweeper = sweeper
    logger.info("app.caches_initialised")

    # -- 2. External clients ------------------------------------------------
    from src.services.external import NominatimGeocoder, NWSHazardClient

    hazard_feed = NWSHazardClient(
        zone_cache,
        base_url=settings.nws_base_url,
        user_agent=settings.http_user_agent,
        timeout=settings.http_timeout_seconds,
        retry_attempts=settings.http_retry_attempts,
    )
    geocoder = NominatimGeocoder(
        base_url=settings.nominatim_base_url,
        language=settings.geocode_language,
        user_agent=settings.http_user_agent,
        timeout=settings.http_timeout_seconds,
        retry_attempts=settings.http_retry_attempts,
    )
    logger.info("app.clients_initialised", nws=settings.nws_base_url, nominatim=settings.nominatim_base_url)

    # -- 3. Core components -------------------------------------------------
    from src.services.contact_resolver import EmergencyContactResolver
    from src.services.emergency_lifecycle import EmergencyLifecycle
    from src.services.manual_override import ManualOverride
    from src.services.movement import DetectorThresholds, MovementAnomalyDetector
    from src.services.presenter import LoggingPresenter

    override = ManualOverride()
    detector = MovementAnomalyDetector(override, DetectorThresholds.from_settings(settings))
    presenter = LoggingPresenter()
    resolver = EmergencyContactResolver(geocoder, contact_cache)
    lifecycle = EmergencyLifecycle(presenter, resolver, override)
    app.state.presenter = presenter

    # -- 4. Monitor ---------------------------------------------------------
    from src.pipeline.monitor import SecurityMonitor

    monitor = SecurityMonitor(detector, hazard_feed, lifecycle, presenter, override)
    monitor.start()
    app.state.monitor = monitor
    logger.info("app.startup_complete")

    yield

    # -- Shutdown -----------------------------------------------------------
    logger.info("app.shutdown_start")

    await monitor.stop()
    await sweeper.stop()
    await hazard_feed.close()
    await geocoder.close()

    logger.info("app.shutdown_complete")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SentinelSOS API",
    description=(
        "SentinelSOS -- personal safety monitor.  Combines movement anomaly "
        "detection with live hazard alerts and raises an emergency alarm with "
        "the local emergency number when danger is detected."
    ),
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# -- CORS middleware --------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:8000", "http://127.0.0.1:8000"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS", "HEAD"],
    allow_headers=["Content-Type", "Accept"],
)

# -- Include routers -------------------------------------------------------
app.include_router(api_router)


@app.get("/api", response_class=ORJSONResponse)
async def api_info() -> dict:
    """API information endpoint."""
    return {
        "name": "SentinelSOS API",
        "description": "Personal safety monitor",
        "version": app.version,
        "docs": "/docs",
        "health": "/api/v1/health",
        "status": "/api/v1/monitor/status",
        "session_code": getattr(app.state, "session_code", None),
    }


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
