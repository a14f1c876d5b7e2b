"""Security monitor API endpoints for SentinelSOS.

Feeds position fixes and geolocation failures into the SecurityMonitor,
toggles the manual SOS override, dismisses an active emergency, and serves
the latest presented view.

Every endpoint awaits the monitor's direct path so the response carries the
status it produced; the event channel is left to in-process callers.
"""

from __future__ import annotations

from datetime import datetime

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from src.models.enums import GeolocationErrorKind, SecurityLevel
from src.models.security import EmergencyState, Sample
from src.pipeline.monitor import SecurityMonitor
from src.services.presenter import PresenterSnapshot

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/monitor", tags=["monitor"])


class PositionRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    speed_mps: float | None = Field(default=None, ge=0, description="Ground speed in metres per second, if known")
    timestamp: datetime | None = None


class GeolocationErrorRequest(BaseModel):
    kind: GeolocationErrorKind


class EvaluationResponse(BaseModel):
    level: SecurityLevel
    reason: str
    emergency: EmergencyState


class SOSResponse(EvaluationResponse):
    sos_active: bool


def _get_monitor(request: Request) -> SecurityMonitor:
    monitor = getattr(request.app.state, "monitor", None)
    if monitor is None:
        raise HTTPException(status_code=503, detail="Security monitor not available")
    return monitor


@router.post("/positions", response_model=EvaluationResponse)
async def submit_position(body: PositionRequest, request: Request) -> EvaluationResponse:
    """Run one evaluation pass for a position fix."""
    monitor = _get_monitor(request)
    sample = Sample(**body.model_dump(exclude_none=True))
    status = await monitor.process_position(sample)
    return EvaluationResponse(level=status.level, reason=status.reason, emergency=monitor.lifecycle.state)


@router.post("/geolocation-error", response_model=EvaluationResponse)
async def report_geolocation_error(body: GeolocationErrorRequest, request: Request) -> EvaluationResponse:
    """Report that the geolocation source failed."""
    monitor = _get_monitor(request)
    status = await monitor.handle_geolocation_error(body.kind)
    return EvaluationResponse(level=status.level, reason=status.reason, emergency=monitor.lifecycle.state)


@router.post("/sos", response_model=SOSResponse)
async def toggle_sos(request: Request) -> SOSResponse:
    """Toggle the manual SOS override and re-evaluate immediately."""
    monitor = _get_monitor(request)
    status = await monitor.toggle_sos()
    logger.info("api.monitor.sos_toggled", active=monitor.override.is_active, level=status.level.value)
    return SOSResponse(
        sos_active=monitor.override.is_active,
        level=status.level,
        reason=status.reason,
        emergency=monitor.lifecycle.state,
    )


@router.post("/emergency/dismiss", response_model=EmergencyState)
async def dismiss_emergency(request: Request) -> EmergencyState:
    """Dismiss the active emergency and clear the manual SOS override."""
    monitor = _get_monitor(request)
    monitor.dismiss()
    return monitor.lifecycle.state


@router.get("/status", response_model=PresenterSnapshot)
async def get_status(request: Request) -> PresenterSnapshot:
    """Latest view as presented to the user."""
    _get_monitor(request)
    presenter = getattr(request.app.state, "presenter", None)
    if presenter is None:
        raise HTTPException(status_code=503, detail="Presenter not available")
    return presenter.snapshot()
