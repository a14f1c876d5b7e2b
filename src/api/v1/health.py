"""Health check endpoints for SentinelSOS API v1.

Provides liveness and readiness probes.  The readiness check verifies that
the monitor's event channel is running and that the caches answer.
"""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    version: str
    uptime_seconds: float


class ReadinessResponse(BaseModel):
    """Readiness check response with individual component statuses."""

    status: str
    checks: dict[str, str]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe.

    Returns 200 if the application process is running and able to
    handle requests.  Does *not* check downstream dependencies.
    """
    start_time: float = getattr(request.app.state, "start_time", time.time())
    uptime = time.time() - start_time

    return HealthResponse(
        status="healthy",
        version=request.app.version,
        uptime_seconds=round(uptime, 2),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Readiness probe.

    Reports the monitor and each cache so the load balancer only routes
    traffic to fully-initialised instances.
    """
    checks: dict[str, str] = {}
    all_ok = True

    # -- Check monitor -----------------------------------------------------
    monitor = getattr(request.app.state, "monitor", None)
    if monitor is None:
        checks["monitor"] = "not_initialised"
        all_ok = False
    elif monitor.is_running:
        checks["monitor"] = "ok"
    else:
        checks["monitor"] = "stopped"
        all_ok = False

    # -- Check caches ------------------------------------------------------
    caches = getattr(request.app.state, "caches", None) or {}
    if not caches:
        checks["cache"] = "not_configured"
        all_ok = False
    for name, cache in caches.items():
        try:
            checks[f"cache.{name}"] = f"ok ({cache.size} entries)"
        except Exception as exc:
            checks[f"cache.{name}"] = f"error: {exc!s}"
            all_ok = False

    # -- Check cache sweeper -----------------------------------------------
    sweeper = getattr(request.app.state, "cache_sweeper", None)
    if sweeper is not None:
        checks["cache_sweeper"] = "ok" if sweeper.is_running else "stopped"

    status = "ready" if all_ok else "degraded"

    logger.info("health.readiness_check", status=status, checks=checks)

    return ReadinessResponse(status=status, checks=checks)
