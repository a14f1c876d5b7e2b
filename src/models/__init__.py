from src.models.enums import (
    EmergencyPhase,
    GeolocationErrorKind,
    HazardSeverity,
    SecurityLevel,
)
from src.models.security import (
    EmergencyContact,
    EmergencyState,
    HazardAssessment,
    HazardRecord,
    MovementStatus,
    Sample,
    SecurityStatus,
)

__all__ = [
    "EmergencyContact",
    "EmergencyPhase",
    "EmergencyState",
    "GeolocationErrorKind",
    "HazardAssessment",
    "HazardRecord",
    "HazardSeverity",
    "MovementStatus",
    "Sample",
    "SecurityLevel",
    "SecurityStatus",
]
