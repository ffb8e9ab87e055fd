"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. App-specific
settings use the ``RESQUENET_`` prefix; GCP / infrastructure settings use
their canonical environment variable names via ``validation_alias``.
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
    """Central configuration for the ResqueNet backend.

    Environment variables are loaded from a ``.env`` file when present.
    App-specific keys are prefixed with ``RESQUENET_``; GCP / infra keys
    use their standard names (configured via ``validation_alias``).
    """

    model_config = SettingsConfigDict(
        env_prefix="RESQUENET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"

    # ── Request store ──────────────────────────────────────────────────
    store_backend: Literal["memory", "firestore"] = "memory"
    requests_collection: str = "emergency_requests"
    store_write_attempts: int = Field(default=3, ge=1)
    store_retry_min_seconds: float = Field(default=0.5, ge=0)
    store_retry_max_seconds: float = Field(default=4.0, ge=0)

    # ── GCP / Firestore ────────────────────────────────────────────────
    gcp_project_id: str = Field(default="", validation_alias="GCP_PROJECT_ID")
    firestore_database: str = Field(default="(default)", validation_alias="FIRESTORE_DATABASE")

    # ── Map ────────────────────────────────────────────────────────────
    # Rescuer marker shown on the live map; a fixed point until volunteer
    # assignment exists.
    volunteer_latitude: float = 26.85
    volunteer_longitude: float = 80.95
    map_tile_url: str = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
    map_zoom: int = Field(default=13, ge=0, le=19)

    # ── Sessions ───────────────────────────────────────────────────────
    session_ttl_seconds: int = Field(default=3_600, ge=1)  # 1 hour
    max_sessions: int = Field(default=10_000, ge=1)

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION


# Module-level singleton — import ``settings`` everywhere.
settings = Settings()
