"""SentinelSOS service layer -- detection, classification, lifecycle, and caching.

Everything here is pure Python on top of asyncio; the HTTP adapters for the
hazard feed and geocoder live in :mod:`src.services.external`.
"""

from __future__ import annotations

from src.services.aggregator import aggregate
from src.services.cache import CacheSweeper, TTLCache, coordinate_key
from src.services.contact_resolver import FALLBACK_CONTACT, EmergencyContactResolver
from src.services.emergency_lifecycle import EmergencyLifecycle
from src.services.hazard_classifier import SEVERITY_LEVELS, classify, severity_level
from src.services.manual_override import ManualOverride
from src.services.movement import DetectorThresholds, MovementAnomalyDetector
from src.services.presenter import EmergencyPresenter, LoggingPresenter, PresenterSnapshot
from src.services.session_code import generate_session_code

__all__ = [
    "FALLBACK_CONTACT",
    "SEVERITY_LEVELS",
    "CacheSweeper",
    "DetectorThresholds",
    "EmergencyContactResolver",
    "EmergencyLifecycle",
    "EmergencyPresenter",
    "LoggingPresenter",
    "ManualOverride",
    "MovementAnomalyDetector",
    "PresenterSnapshot",
    "TTLCache",
    "aggregate",
    "classify",
    "coordinate_key",
    "generate_session_code",
    "severity_level",
]
