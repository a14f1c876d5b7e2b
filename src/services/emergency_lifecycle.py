"""Edge-triggered emergency lifecycle.

Two states, ``idle`` and ``active``, cycled indefinitely.  Side effects fire
only on transitions, never while a state persists:

* ``idle -> active`` (level becomes ``danger``): start the looping alarm,
  show the emergency view with the reason and, when a position is known,
  show the fallback emergency number at once and resolve the local number
  in the background.
* ``active -> idle`` (level leaves ``danger``, or the user dismisses):
  stop the alarm, hide the emergency view, clear the reason.  A user
  dismissal also clears the manual SOS override so the next evaluation does
  not immediately re-trigger.

Each activation starts a new *episode*; a background contact resolution
only writes its result if its episode is still the live one.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog

from src.models.enums import EmergencyPhase
from src.models.security import EmergencyState, Sample, SecurityStatus
from src.services.contact_resolver import FALLBACK_CONTACT

if TYPE_CHECKING:
    from src.services.contact_resolver import EmergencyContactResolver
    from src.services.manual_override import ManualOverride
    from src.services.presenter import EmergencyPresenter

logger = structlog.get_logger(__name__)


class EmergencyLifecycle:
    """Owner of :class:`EmergencyState` and its transition side effects.

    Parameters
    ----------
    presenter:
        Receives alarm, emergency view, and contact notifications.
    resolver:
        Resolves the local emergency number on activation.
    override:
        Shared manual SOS accessor, cleared on user dismissal.
    """

    __slots__ = ("_contact_task", "_contact_tasks", "_episode", "_override", "_presenter", "_resolver", "_state")

    def __init__(
        self,
        presenter: EmergencyPresenter,
        resolver: EmergencyContactResolver,
        override: ManualOverride,
    ) -> None:
        self._presenter = presenter
        self._resolver = resolver
        self._override = override
        self._state = EmergencyState()
        self._episode = 0
        self._contact_task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._contact_tasks: set[asyncio.Task] = set()  # type: ignore[type-arg]

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> EmergencyState:
        return self._state.model_copy()

    @property
    def phase(self) -> EmergencyPhase:
        return EmergencyPhase.ACTIVE if self._state.is_triggered else EmergencyPhase.IDLE

    @property
    def is_active(self) -> bool:
        return self._state.is_triggered

    @property
    def episode(self) -> int:
        """Number of activations so far."""
        return self._episode

    @property
    def pending_contact_resolutions(self) -> int:
        return len(self._contact_tasks)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def apply(self, status: SecurityStatus, sample: Sample | None = None) -> EmergencyState:
        """Feed one aggregated status into the state machine."""
        if status.is_danger and not self._state.is_triggered:
            self._activate(status.reason, sample)
        elif not status.is_danger and self._state.is_triggered:
            logger.info("lifecycle.deescalated", level=status.level.value)
            self._deactivate()
        return self.state

    def dismiss(self) -> EmergencyState:
        """User-requested dismissal; also clears the manual SOS override."""
        if self._state.is_triggered:
            logger.info("lifecycle.dismissed", episode=self._episode)
            self._deactivate()
        if self._override.is_active:
            self._override.clear()
            self._presenter.set_sos_indicator(False)
        return self.state

    async def wait_for_contact(self) -> None:
        """Wait for an outstanding contact resolution, if any."""
        task = self._contact_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def aclose(self) -> None:
        """Cancel every outstanding contact resolution, stale episodes included."""
        tasks = [*self._contact_tasks]
        self._contact_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._contact_tasks.clear()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _activate(self, reason: str, sample: Sample | None) -> None:
        self._episode += 1
        self._state = EmergencyState(is_triggered=True, reason=reason)
        logger.warning("lifecycle.activated", episode=self._episode, reason=reason, has_position=sample is not None)

        self._presenter.start_looping_alarm()
        self._presenter.show_emergency(reason)

        if sample is not None:
            self._presenter.set_contact_info(FALLBACK_CONTACT)
            task = asyncio.create_task(
                self._resolve_contact(self._episode, sample),
                name=f"contact-resolution-{self._episode}",
            )
            self._contact_tasks.add(task)
            task.add_done_callback(self._contact_tasks.discard)
            self._contact_task = task

    def _deactivate(self) -> None:
        self._state = EmergencyState()
        self._presenter.stop_alarm()
        self._presenter.hide_emergency()

    async def _resolve_contact(self, episode: int, sample: Sample) -> None:
        try:
            contact = await self._resolver.resolve(sample.latitude, sample.longitude)
        except Exception:
            logger.warning("lifecycle.contact_resolution_failed", episode=episode, exc_info=True)
            return

        if episode != self._episode or not self._state.is_triggered:
            logger.debug("lifecycle.contact_discarded", episode=episode, current_episode=self._episode)
            return
        self._presenter.set_contact_info(contact)
