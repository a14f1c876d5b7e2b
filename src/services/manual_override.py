"""Manual SOS override flag.

The override is the only deliberately process-wide mutable flag.  It lives
behind this accessor so that the movement detector, the lifecycle state
machine, and the monitor share one instance by injection, and tests (or
separate sessions) can each own their own.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(__name__)


class ManualOverride:
    """Single-owner accessor around the manual SOS flag."""

    __slots__ = ("_active",)

    def __init__(self, active: bool = False) -> None:
        self._active = active

    @property
    def is_active(self) -> bool:
        return self._active

    def engage(self) -> None:
        if not self._active:
            self._active = True
            logger.info("override.engaged")

    def clear(self) -> None:
        if self._active:
            self._active = False
            logger.info("override.cleared")

    def toggle(self) -> bool:
        """Flip the flag and return its new value."""
        if self._active:
            self.clear()
        else:
            self.engage()
        return self._active
