"""Exception hierarchy for SentinelSOS.

Only the external lookups raise; every consumer catches these at the seam
and degrades the affected source to ``calculating`` or a fallback value.
"""

from __future__ import annotations


class SentinelError(Exception):
    """Base exception for all SentinelSOS errors."""


class HazardFeedError(SentinelError):
    """The hazard feed could not be reached or returned an unusable payload."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class HazardCoverageError(HazardFeedError):
    """The hazard feed has no coverage for the requested location.

    Unlike a generic feed failure, ``user_message`` is meant to be shown to
    the user verbatim.
    """

    def __init__(self, user_message: str, *, status_code: int | None = 404) -> None:
        self.user_message = user_message
        super().__init__(user_message, status_code=status_code)


class GeocodeError(SentinelError):
    """Reverse geocoding failed (network, non-2xx, or invalid payload)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
