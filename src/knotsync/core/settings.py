"""
Centralized settings for knotsync.

One validated, cached settings object read from ``KNOTSYNC_*`` environment
variables and an optional ``.env`` file.

Examples:
    >>> from knotsync.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.max_batch_size
    500

Tags:
    configuration, settings, pydantic, knotsync
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from knotsync.core.errors import InvalidConfigError, MissingConfigError


class StoreBackend(str, Enum):
    """Document store implementations."""

    MEMORY = "memory"
    FIRESTORE = "firestore"


# Firestore rejects batches with more than 500 writes.
FIRESTORE_BATCH_CAP = 500


class KnotSyncSettings(BaseSettings):
    """knotsync configuration.

    All fields can be set via ``KNOTSYNC_*`` environment variables (e.g.
    ``KNOTSYNC_STORE_BACKEND=firestore``) or through a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="KNOTSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Store ────────────────────────────────────────────────────
    app_id: str = Field(default="default-app-id", description="Top-level apps/{appId} segment")
    store_backend: StoreBackend = Field(default=StoreBackend.MEMORY)
    max_batch_size: int = Field(default=FIRESTORE_BATCH_CAP, ge=1)
    query_in_limit: int = Field(default=30, ge=1, description="Max values per 'in' filter")

    # ── Firestore ────────────────────────────────────────────────
    firestore_project: str = Field(default="")
    firestore_database: str = Field(default="(default)")
    credentials_path: str = Field(default="", description="Service account JSON; ADC when empty")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @model_validator(mode="after")
    def _validate_backend(self) -> KnotSyncSettings:
        if self.store_backend == StoreBackend.FIRESTORE:
            if not self.firestore_project:
                raise MissingConfigError("KNOTSYNC_FIRESTORE_PROJECT")
            if self.max_batch_size > FIRESTORE_BATCH_CAP:
                raise InvalidConfigError(
                    "KNOTSYNC_MAX_BATCH_SIZE",
                    self.max_batch_size,
                    f"Firestore batches are capped at {FIRESTORE_BATCH_CAP} writes",
                )
        if self.log_format not in ("json", "console"):
            raise InvalidConfigError("KNOTSYNC_LOG_FORMAT", self.log_format)
        return self

    @property
    def json_logs(self) -> bool:
        return self.log_format == "json"


_settings_cache: dict[str, KnotSyncSettings] = {}


def get_settings(*, _force_reload: bool = False) -> KnotSyncSettings:
    """Load, validate, and cache a :class:`KnotSyncSettings` instance."""
    if _force_reload or "default" not in _settings_cache:
        _settings_cache["default"] = KnotSyncSettings()
    return _settings_cache["default"]


def clear_settings_cache() -> None:
    """Drop the cached settings (tests and CLI overrides)."""
    _settings_cache.clear()


__all__ = [
    "StoreBackend",
    "KnotSyncSettings",
    "FIRESTORE_BATCH_CAP",
    "get_settings",
    "clear_settings_cache",
]
