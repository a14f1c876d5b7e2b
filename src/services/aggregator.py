"""Merge movement and hazard assessments into one security status."""

from __future__ import annotations

from src.models.security import HazardAssessment, MovementStatus, SecurityStatus


def aggregate(movement: MovementStatus, hazard: HazardAssessment) -> SecurityStatus:
    """Max-merge on the level order.

    Movement wins only when strictly higher; on a tie the hazard reason is
    reported.
    """
    if movement.level.rank > hazard.level.rank:
        return SecurityStatus(level=movement.level, reason=movement.reason)
    return SecurityStatus(level=hazard.level, reason=hazard.reason)
