"""Security monitor: the evaluation pipeline behind every position update.

Coordinates the full pass for one position fix:

1. Move the map marker.
2. Classify movement (synchronous, stateful).
3. Fetch hazards for the position (asynchronous; failures degrade to
   ``calculating``).
4. Classify hazards and aggregate with movement.
5. Publish the status and feed it to the emergency lifecycle.

Two ways in:

* **Direct** -- ``await monitor.process_position(sample)`` runs one pass to
  completion and returns the aggregated status.
* **Event channel** -- ``monitor.submit(event)`` posts onto an
  ``asyncio.Queue`` drained by a single consumer task (:meth:`start`).  Hazard
  fetches run as separate tasks that post a :class:`HazardResult` back onto
  the channel instead of touching shared state from a callback.

The HTTP endpoints use the direct path because each request needs the
resulting status.  The channel serves embedded callers such as an in-process
geolocation source that streams fixes without waiting on each one; the app
lifespan starts its consumer so those callers can ``submit`` straight away.

Evaluations are not serialized: a newer position can start while an older
fetch is outstanding, and the last result applied wins.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

import structlog

from src.exceptions import HazardCoverageError, HazardFeedError
from src.models.enums import GeolocationErrorKind, SecurityLevel
from src.models.security import HazardRecord, MovementStatus, Sample, SecurityStatus
from src.services.aggregator import aggregate
from src.services.hazard_classifier import classify
from src.services.movement import REASON_MANUAL_SOS

if TYPE_CHECKING:
    from src.services.emergency_lifecycle import EmergencyLifecycle
    from src.services.external.nws_client import HazardFeed
    from src.services.manual_override import ManualOverride
    from src.services.movement import MovementAnomalyDetector
    from src.services.presenter import EmergencyPresenter

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

HAZARD_FETCH_FAILED: Final[str] = "Unable to fetch hazard alerts."
HAZARD_NEEDS_LOCATION: Final[str] = "Location is required to look up hazard alerts."
REASON_GEOLOCATION_ERROR: Final[str] = "geolocation error"
REASON_POSITION_UNAVAILABLE: Final[str] = "position unavailable"


# ---------------------------------------------------------------------------
# Channel events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PositionUpdate:
    sample: Sample


@dataclass(frozen=True, slots=True)
class GeolocationFailure:
    kind: GeolocationErrorKind


@dataclass(frozen=True, slots=True)
class HazardOutcome:
    """Result of one hazard fetch; ``error`` set means the feed failed."""

    records: list[HazardRecord] | None
    error: str | None = None

    @property
    def feed_failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True, slots=True)
class HazardResult:
    sample: Sample
    movement: MovementStatus
    outcome: HazardOutcome


@dataclass(frozen=True, slots=True)
class ForceEvaluation:
    pass


@dataclass(frozen=True, slots=True)
class SOSToggle:
    pass


@dataclass(frozen=True, slots=True)
class Dismissal:
    pass


MonitorEvent = PositionUpdate | GeolocationFailure | HazardResult | ForceEvaluation | SOSToggle | Dismissal


# ---------------------------------------------------------------------------
# SecurityMonitor
# ---------------------------------------------------------------------------


class SecurityMonitor:
    """Single evaluation pipeline for one user session."""

    def __init__(
        self,
        detector: MovementAnomalyDetector,
        hazard_feed: HazardFeed,
        lifecycle: EmergencyLifecycle,
        presenter: EmergencyPresenter,
        override: ManualOverride,
    ) -> None:
        self._detector = detector
        self._hazard_feed = hazard_feed
        self._lifecycle = lifecycle
        self._presenter = presenter
        self._override = override
        self._queue: asyncio.Queue[MonitorEvent] = asyncio.Queue()
        self._consumer: asyncio.Task | None = None  # type: ignore[type-arg]
        self._fetches: set[asyncio.Task] = set()  # type: ignore[type-arg]
        self._pending = 0
        self._last_sample: Sample | None = None
        self._last_status = SecurityStatus(level=SecurityLevel.CALCULATING, reason="awaiting first position")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def last_status(self) -> SecurityStatus:
        return self._last_status

    @property
    def last_sample(self) -> Sample | None:
        return self._last_sample

    @property
    def lifecycle(self) -> EmergencyLifecycle:
        return self._lifecycle

    @property
    def override(self) -> ManualOverride:
        return self._override

    @property
    def is_running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    # ------------------------------------------------------------------
    # Direct evaluation
    # ------------------------------------------------------------------

    async def process_position(self, sample: Sample) -> SecurityStatus:
        """Run one complete evaluation pass for *sample*."""
        movement = self._begin(sample)
        outcome = await self._fetch_hazards(sample)
        return await self._complete(sample, movement, outcome)

    async def handle_geolocation_error(self, kind: GeolocationErrorKind) -> SecurityStatus:
        logger.warning("monitor.geolocation_error", kind=kind.value)
        self._presenter.set_geolocation_error(kind.user_message)
        # Movement is unknown here whatever the override says.
        movement = MovementStatus(level=SecurityLevel.CALCULATING, reason=REASON_GEOLOCATION_ERROR)
        return await self._complete(None, movement, HazardOutcome(records=None, error=HAZARD_NEEDS_LOCATION))

    async def force_evaluate(self) -> SecurityStatus:
        """Re-evaluate immediately instead of waiting for the next fix."""
        if self._last_sample is None:
            return await self._evaluate_without_position()
        return await self.process_position(self._last_sample)

    async def toggle_sos(self) -> SecurityStatus:
        """Flip the manual SOS override and re-evaluate at once."""
        active = self._apply_sos_toggle()
        logger.info("monitor.sos_toggled", active=active)
        return await self.force_evaluate()

    def dismiss(self) -> None:
        self._lifecycle.dismiss()

    # ------------------------------------------------------------------
    # Event channel
    # ------------------------------------------------------------------

    def submit(self, event: MonitorEvent) -> None:
        self._pending += 1
        self._queue.put_nowait(event)

    def start(self) -> None:
        if self.is_running:
            return
        self._consumer = asyncio.create_task(self._run(), name="security-monitor")
        logger.info("monitor.started")

    async def stop(self) -> None:
        tasks = [*self._fetches]
        if self._consumer is not None:
            tasks.append(self._consumer)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._fetches.clear()
        self._consumer = None
        self._queue = asyncio.Queue()
        self._pending = 0
        await self._lifecycle.aclose()
        logger.info("monitor.stopped")

    async def drain(self) -> None:
        """Wait until the channel is empty and no hazard fetch is outstanding.

        Raises
        ------
        RuntimeError
            If events are pending but the consumer task is not running.
        """
        while self._pending or self._fetches:
            if not self.is_running:
                raise RuntimeError("security monitor is not running; call start() before drain()")
            if self._fetches:
                await asyncio.gather(*self._fetches, return_exceptions=True)
            else:
                await self._queue.join()

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._dispatch(event)
            except Exception:
                logger.error("monitor.event_failed", event=type(event).__name__, exc_info=True)
            finally:
                self._pending -= 1
                self._queue.task_done()

    async def _dispatch(self, event: MonitorEvent) -> None:
        if isinstance(event, PositionUpdate):
            self._schedule_fetch(event.sample)
        elif isinstance(event, HazardResult):
            await self._complete(event.sample, event.movement, event.outcome)
        elif isinstance(event, GeolocationFailure):
            await self.handle_geolocation_error(event.kind)
        elif isinstance(event, ForceEvaluation):
            if self._last_sample is None:
                await self._evaluate_without_position()
            else:
                self._schedule_fetch(self._last_sample)
        elif isinstance(event, SOSToggle):
            self._apply_sos_toggle()
            self.submit(ForceEvaluation())
        elif isinstance(event, Dismissal):
            self.dismiss()

    def _schedule_fetch(self, sample: Sample) -> None:
        movement = self._begin(sample)
        task = asyncio.create_task(self._fetch_and_post(sample, movement))
        self._fetches.add(task)
        task.add_done_callback(self._fetches.discard)

    async def _fetch_and_post(self, sample: Sample, movement: MovementStatus) -> None:
        outcome = await self._fetch_hazards(sample)
        self.submit(HazardResult(sample=sample, movement=movement, outcome=outcome))

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def _begin(self, sample: Sample) -> MovementStatus:
        self._last_sample = sample
        self._presenter.set_marker_position(sample.latitude, sample.longitude)
        movement = self._detector.evaluate(sample)
        self._presenter.set_hazard_list(loading=True)
        logger.debug("monitor.movement", level=movement.level.value, speed_kmh=sample.speed_kmh)
        return movement

    async def _fetch_hazards(self, sample: Sample) -> HazardOutcome:
        try:
            records = await self._hazard_feed.fetch_hazards(sample.latitude, sample.longitude)
        except HazardCoverageError as exc:
            logger.info("monitor.hazard_coverage_unsupported")
            return HazardOutcome(records=None, error=exc.user_message)
        except HazardFeedError as exc:
            logger.warning("monitor.hazard_fetch_failed", error=str(exc), status_code=exc.status_code)
            return HazardOutcome(records=None, error=HAZARD_FETCH_FAILED)
        except Exception:
            logger.error("monitor.hazard_fetch_failed", exc_info=True)
            return HazardOutcome(records=None, error=HAZARD_FETCH_FAILED)
        return HazardOutcome(records=records)

    async def _complete(self, sample: Sample | None, movement: MovementStatus, outcome: HazardOutcome) -> SecurityStatus:
        if outcome.feed_failed:
            self._presenter.set_hazard_list(error=outcome.error)
        else:
            self._presenter.set_hazard_list(outcome.records)

        hazard = classify(outcome.records, feed_failed=outcome.feed_failed)
        status = aggregate(movement, hazard)
        self._last_status = status
        self._presenter.set_status(status.level, status.reason)
        logger.info(
            "monitor.evaluated",
            level=status.level.value,
            reason=status.reason,
            movement=movement.level.value,
            hazard=hazard.level.value,
        )
        await self._lifecycle.apply(status, sample)
        return status

    async def _evaluate_without_position(self) -> SecurityStatus:
        # A forced evaluation before the first fix still honours the override.
        if self._override.is_active:
            movement = MovementStatus(level=SecurityLevel.DANGER, reason=REASON_MANUAL_SOS)
        else:
            movement = MovementStatus(level=SecurityLevel.CALCULATING, reason=REASON_POSITION_UNAVAILABLE)
        outcome = HazardOutcome(records=None, error=HAZARD_NEEDS_LOCATION)
        return await self._complete(None, movement, outcome)

    def _apply_sos_toggle(self) -> bool:
        active = self._override.toggle()
        self._presenter.set_sos_indicator(active)
        if not active and self._lifecycle.is_active:
            self._lifecycle.dismiss()
        return active
