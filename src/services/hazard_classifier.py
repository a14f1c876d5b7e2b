"""Reduce a set of hazard alerts to a single security level.

Pure functions only: the result depends on the multiset of severities, never
on record order.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from src.models.enums import HazardSeverity, SecurityLevel
from src.models.security import HazardAssessment, HazardRecord

SEVERITY_LEVELS: Final[dict[HazardSeverity, SecurityLevel]] = {
    HazardSeverity.EXTREME: SecurityLevel.DANGER,
    HazardSeverity.SEVERE: SecurityLevel.DANGER,
    HazardSeverity.MODERATE: SecurityLevel.WARNING,
    HazardSeverity.MINOR: SecurityLevel.WARNING,
    HazardSeverity.UNKNOWN: SecurityLevel.SAFE,
}

REASON_UNKNOWN = "hazard status unknown"
REASON_NO_HAZARDS = "no hazards"
REASON_DANGER = "extreme or severe hazard alert active"
REASON_MODERATE = "moderate hazard alert active"
REASON_MINOR = "minor hazard advisory active"
REASON_INSIGNIFICANT = "no significant hazards"


def severity_level(severity: HazardSeverity) -> SecurityLevel:
    return SEVERITY_LEVELS.get(severity, SecurityLevel.SAFE)


def classify(hazards: Sequence[HazardRecord] | None, feed_failed: bool = False) -> HazardAssessment:
    """Classify the active hazards for a location.

    ``feed_failed`` or a missing sequence means the feed could not be read,
    which is reported as ``calculating`` rather than ``safe``.
    """
    if feed_failed or hazards is None:
        return HazardAssessment(level=SecurityLevel.CALCULATING, reason=REASON_UNKNOWN)

    if not hazards:
        return HazardAssessment(level=SecurityLevel.SAFE, reason=REASON_NO_HAZARDS)

    highest = SecurityLevel.SAFE
    saw_moderate = False
    for record in hazards:
        level = severity_level(record.severity)
        if record.severity is HazardSeverity.MODERATE:
            saw_moderate = True
        if level.rank > highest.rank:
            highest = level

    if highest is SecurityLevel.DANGER:
        reason = REASON_DANGER
    elif highest is SecurityLevel.WARNING:
        reason = REASON_MODERATE if saw_moderate else REASON_MINOR
    else:
        reason = REASON_INSIGNIFICANT
    return HazardAssessment(level=highest, reason=reason)
