"""Main API router combining all v1 route modules.

Aggregates all routers under the ``/api/v1`` prefix so the
FastAPI application only needs to include a single router.

Includes:
    * Health: liveness and readiness probes
    * Monitor: position updates, geolocation errors, SOS, dismissal, status
"""

from __future__ import annotations

from fastapi import APIRouter

from src.api.v1 import health, monitor

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health.router)
api_router.include_router(monitor.router)
