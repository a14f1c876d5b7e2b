"""Core data model for movement, hazard, and emergency evaluation.

Every model here is a value object: samples are frozen once received, and
status objects are derived per evaluation rather than stored.  The only
long-lived mutable record is :class:`EmergencyState`, which is owned by the
lifecycle state machine.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import HazardSeverity, SecurityLevel

MPS_TO_KMH = 3.6


class Sample(BaseModel):
    """A single position fix from the geolocation source."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    speed_mps: float | None = Field(default=None, ge=0)  # None when the device cannot measure speed
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def speed_kmh(self) -> float | None:
        if self.speed_mps is None:
            return None
        return self.speed_mps * MPS_TO_KMH


class MovementStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: SecurityLevel
    reason: str


class HazardRecord(BaseModel):
    """One active alert from the hazard feed."""

    model_config = ConfigDict(frozen=True)

    severity: HazardSeverity = HazardSeverity.UNKNOWN
    event_label: str = ""


class HazardAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: SecurityLevel
    reason: str


class SecurityStatus(BaseModel):
    """Aggregated (level, reason) pair handed to the lifecycle state machine."""

    model_config = ConfigDict(frozen=True)

    level: SecurityLevel
    reason: str

    @property
    def is_danger(self) -> bool:
        return self.level is SecurityLevel.DANGER


class EmergencyState(BaseModel):
    is_triggered: bool = False
    reason: str = ""


class EmergencyContact(BaseModel):
    """Country-level emergency line shown in the emergency view."""

    model_config = ConfigDict(frozen=True)

    country_name: str
    number: str

    @property
    def tel_uri(self) -> str:
        return f"tel:{self.number}"
