"""Movement anomaly detection over successive position samples.

The detector remembers only the most recent sample and flags two patterns:

* **High speed** -- the current speed exceeds ``high_speed_kmh``
  (``warning``).
* **Sudden stop** -- the previous sample was above ``high_speed_kmh`` and
  the current one is below ``sudden_stop_kmh`` (``danger``), the signature
  of a crash or a forced stop.

When the manual SOS override is engaged the detector reports ``danger``
without touching its memory, so speed-based detection resumes correctly once
the override clears.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from src.models.enums import SecurityLevel
from src.models.security import MovementStatus, Sample

if TYPE_CHECKING:
    from config.settings import Settings
    from src.services.manual_override import ManualOverride

logger = structlog.get_logger(__name__)

REASON_MANUAL_SOS = "manual SOS engaged"
REASON_SPEED_UNAVAILABLE = "speed unavailable"
REASON_HIGH_SPEED = "high speed detected"
REASON_NORMAL = "normal movement"
REASON_SUDDEN_STOP = "sudden stop from high speed"


@dataclass(frozen=True, slots=True)
class DetectorThresholds:
    high_speed_kmh: float = 80.0
    sudden_stop_kmh: float = 10.0
    calculating_sample_updates_memory: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> DetectorThresholds:
        return cls(
            high_speed_kmh=settings.high_speed_threshold_kmh,
            sudden_stop_kmh=settings.sudden_stop_threshold_kmh,
            calculating_sample_updates_memory=settings.calculating_sample_updates_memory,
        )


class MovementAnomalyDetector:
    """Stateful classifier over successive :class:`Sample` objects.

    Parameters
    ----------
    override:
        Shared manual SOS accessor.
    thresholds:
        Speed thresholds and the memory policy for samples without speed.
    """

    __slots__ = ("_last_sample", "_override", "_thresholds")

    def __init__(self, override: ManualOverride, thresholds: DetectorThresholds | None = None) -> None:
        self._override = override
        self._thresholds = thresholds or DetectorThresholds()
        self._last_sample: Sample | None = None

    @property
    def last_sample(self) -> Sample | None:
        return self._last_sample

    @property
    def thresholds(self) -> DetectorThresholds:
        return self._thresholds

    def reset(self) -> None:
        self._last_sample = None

    def evaluate(self, sample: Sample) -> MovementStatus:
        if self._override.is_active:
            return MovementStatus(level=SecurityLevel.DANGER, reason=REASON_MANUAL_SOS)

        current_kmh = sample.speed_kmh
        if current_kmh is None:
            if self._thresholds.calculating_sample_updates_memory:
                self._last_sample = sample
            return MovementStatus(level=SecurityLevel.CALCULATING, reason=REASON_SPEED_UNAVAILABLE)

        status = MovementStatus(level=SecurityLevel.SAFE, reason=REASON_NORMAL)
        if current_kmh > self._thresholds.high_speed_kmh:
            status = MovementStatus(level=SecurityLevel.WARNING, reason=REASON_HIGH_SPEED)

        previous = self._last_sample
        self._last_sample = sample
        if previous is None:
            return status

        previous_kmh = previous.speed_kmh
        if (
            previous_kmh is not None
            and previous_kmh > self._thresholds.high_speed_kmh
            and current_kmh < self._thresholds.sudden_stop_kmh
        ):
            logger.warning(
                "movement.sudden_stop",
                previous_kmh=round(previous_kmh, 1),
                current_kmh=round(current_kmh, 1),
            )
            status = MovementStatus(level=SecurityLevel.DANGER, reason=REASON_SUDDEN_STOP)

        return status
