"""Outbound notifications from the core to the UI, audio, and map layers.

The core only ever *calls* a presenter; it never reads state back.  The
shipped :class:`LoggingPresenter` logs every notification and keeps the most
recent view in a :class:`PresenterSnapshot` for the HTTP API to serve.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import structlog
from pydantic import BaseModel, Field

from src.models.enums import SecurityLevel
from src.models.security import EmergencyContact, HazardRecord

logger = structlog.get_logger(__name__)


@runtime_checkable
class EmergencyPresenter(Protocol):
    """One-way collaborator interface for everything the user sees or hears."""

    def show_emergency(self, reason: str) -> None: ...

    def hide_emergency(self) -> None: ...

    def set_contact_info(self, contact: EmergencyContact) -> None: ...

    def set_status(self, level: SecurityLevel, reason: str) -> None: ...

    def set_hazard_list(
        self,
        records: Sequence[HazardRecord] | None = None,
        *,
        loading: bool = False,
        error: str | None = None,
    ) -> None: ...

    def start_looping_alarm(self) -> None: ...

    def stop_alarm(self) -> None: ...

    def set_marker_position(self, latitude: float, longitude: float) -> None: ...

    def set_sos_indicator(self, active: bool) -> None: ...

    def set_geolocation_error(self, message: str) -> None: ...


class PresenterSnapshot(BaseModel):
    """Latest presented view."""

    level: SecurityLevel = SecurityLevel.CALCULATING
    reason: str = ""
    hazards: list[HazardRecord] = Field(default_factory=list)
    hazards_loading: bool = False
    hazards_error: str | None = None
    emergency_visible: bool = False
    emergency_reason: str = ""
    contact: EmergencyContact | None = None
    alarm_playing: bool = False
    marker: tuple[float, float] | None = None
    sos_active: bool = False
    geolocation_error: str | None = None


class LoggingPresenter:
    """Presenter that logs notifications and remembers the latest view."""

    def __init__(self) -> None:
        self._view = PresenterSnapshot()

    def snapshot(self) -> PresenterSnapshot:
        return self._view.model_copy(deep=True)

    # -- Emergency view ------------------------------------------------------

    def show_emergency(self, reason: str) -> None:
        self._view.emergency_visible = True
        self._view.emergency_reason = reason
        logger.warning("presenter.emergency_shown", reason=reason)

    def hide_emergency(self) -> None:
        self._view.emergency_visible = False
        self._view.emergency_reason = ""
        self._view.contact = None
        logger.info("presenter.emergency_hidden")

    def set_contact_info(self, contact: EmergencyContact) -> None:
        self._view.contact = contact
        logger.info("presenter.contact_set", country=contact.country_name, number=contact.number)

    # -- Audio ---------------------------------------------------------------

    def start_looping_alarm(self) -> None:
        self._view.alarm_playing = True
        logger.warning("presenter.alarm_started")

    def stop_alarm(self) -> None:
        self._view.alarm_playing = False
        logger.info("presenter.alarm_stopped")

    # -- Status panel --------------------------------------------------------

    def set_status(self, level: SecurityLevel, reason: str) -> None:
        self._view.level = level
        self._view.reason = reason
        logger.info("presenter.status", level=level.value, reason=reason)

    def set_hazard_list(
        self,
        records: Sequence[HazardRecord] | None = None,
        *,
        loading: bool = False,
        error: str | None = None,
    ) -> None:
        self._view.hazards_loading = loading
        self._view.hazards_error = error
        self._view.hazards = list(records) if records and not loading and error is None else []
        if error is not None:
            logger.info("presenter.hazards_error", error=error)
        elif not loading:
            logger.info("presenter.hazards", count=len(self._view.hazards))

    def set_geolocation_error(self, message: str) -> None:
        self._view.geolocation_error = message
        logger.warning("presenter.geolocation_error", message=message)

    # -- Map / controls ------------------------------------------------------

    def set_marker_position(self, latitude: float, longitude: float) -> None:
        self._view.marker = (latitude, longitude)
        self._view.geolocation_error = None
        logger.debug("presenter.marker", latitude=round(latitude, 4), longitude=round(longitude, 4))

    def set_sos_indicator(self, active: bool) -> None:
        self._view.sos_active = active
        logger.info("presenter.sos_indicator", active=active)
