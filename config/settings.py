"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. All keys use the
``SENTINEL_`` prefix (e.g. ``SENTINEL_HIGH_SPEED_THRESHOLD_KMH=90``).
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the SentinelSOS service.

    Environment variables are loaded from a ``.env`` file when present.
    """

    model_config = SettingsConfigDict(
        env_prefix="SENTINEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"

    # ── API ────────────────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"

    # ── Movement detection ─────────────────────────────────────────────
    high_speed_threshold_kmh: float = Field(default=80.0, gt=0)
    sudden_stop_threshold_kmh: float = Field(default=10.0, ge=0)
    # Whether a sample without speed replaces the detector's memory.
    calculating_sample_updates_memory: bool = False

    # ── Cache TTLs (seconds) ───────────────────────────────────────────
    contact_cache_ttl: int = 3_600  # 1 hour
    hazard_zone_cache_ttl: int = 600  # 10 minutes
    cache_max_size: int = 1_000
    cache_sweep_interval_seconds: float = 300.0

    # ── External services ──────────────────────────────────────────────
    nws_base_url: str = "https://api.weather.gov"
    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    geocode_language: str = "en"
    http_user_agent: str = "SentinelSOS/0.1 (personal safety monitor)"
    http_timeout_seconds: float = 10.0
    http_retry_attempts: int = Field(default=2, ge=1)

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION


# Module-level singleton -- import ``settings`` everywhere.
settings = Settings()
