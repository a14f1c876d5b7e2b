from __future__ import annotations

from enum import StrEnum

_LEVEL_RANKS: dict[str, int] = {
    "calculating": 0,
    "safe": 1,
    "warning": 2,
    "danger": 3,
}


class SecurityLevel(StrEnum):
    """Totally ordered security classification shared by every source."""

    __slots__ = ()

    CALCULATING = "calculating"
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"

    @property
    def rank(self) -> int:
        return _LEVEL_RANKS[self.value]


class HazardSeverity(StrEnum):
    __slots__ = ()

    EXTREME = "extreme"
    SEVERE = "severe"
    MODERATE = "moderate"
    MINOR = "minor"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: object) -> HazardSeverity:
        """Case-insensitive parse; anything unrecognised becomes ``UNKNOWN``."""
        if not isinstance(raw, str):
            return cls.UNKNOWN
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.UNKNOWN


class GeolocationErrorKind(StrEnum):
    __slots__ = ()

    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"

    @property
    def user_message(self) -> str:
        return _GEOLOCATION_MESSAGES[self]


class EmergencyPhase(StrEnum):
    __slots__ = ()

    IDLE = "idle"
    ACTIVE = "active"


_GEOLOCATION_MESSAGES: dict[GeolocationErrorKind, str] = {
    GeolocationErrorKind.PERMISSION_DENIED: (
        "Location permission was denied. Enable it in your browser and device settings to continue."
    ),
    GeolocationErrorKind.POSITION_UNAVAILABLE: (
        "Location information is unavailable. Make sure your device's GPS is turned on."
    ),
    GeolocationErrorKind.TIMEOUT: (
        "The location request took too long. Try moving to an area with better GPS signal."
    ),
    GeolocationErrorKind.UNSUPPORTED: "Geolocation is not supported on this device.",
}
