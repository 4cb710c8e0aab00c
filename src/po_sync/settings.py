"""
settings.py - Persisted configuration and small state blobs.

Lives in the same SQLite file as the submissions (settings table):
remote endpoint overlay, admin PIN, dark-mode flag, form draft,
delivery tuning, and the retry queue list.
"""

import json
import logging
import os
import sqlite3
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Mapping

from po_sync.config import (
    DEFAULT_ADMIN_PIN,
    DEFAULT_API_KEY,
    DEFAULT_REMOTE_ENDPOINT,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    ENV_API_KEY,
    ENV_REMOTE_ENDPOINT,
    MIN_ADMIN_PIN_LENGTH,
    SETTINGS_KEY_ADMIN_PIN,
    SETTINGS_KEY_API_CONFIG,
    SETTINGS_KEY_DARK_MODE,
    SETTINGS_KEY_DRAFT,
    SETTINGS_KEY_REMOTE_CONFIG,
    SYNC_INTERVAL_SECONDS,
)
from po_sync.errors import ConfigError, StorageError, ValidationError
from po_sync.models import RemoteConfig
from po_sync.store import SubmissionStore

logger = logging.getLogger(__name__)


def default_remote_config() -> RemoteConfig:
    """Hardcoded default, with environment overrides applied."""
    return RemoteConfig(
        endpoint=os.environ.get(ENV_REMOTE_ENDPOINT, DEFAULT_REMOTE_ENDPOINT),
        api_key=os.environ.get(ENV_API_KEY, DEFAULT_API_KEY),
    )


@dataclass(frozen=True)
class SyncSettings:
    """Runtime tuning for delivery and scheduling."""
    interval_seconds: float = SYNC_INTERVAL_SECONDS
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    enable_sync: bool = True
    auto_start: bool = True

    def __post_init__(self) -> None:
        if self.retry_attempts < 1:
            raise ConfigError("retry_attempts must be at least 1", key="retry_attempts")
        if self.timeout_seconds <= 0:
            raise ConfigError("timeout_seconds must be positive", key="timeout_seconds")
        if self.interval_seconds <= 0:
            raise ConfigError("interval_seconds must be positive", key="interval_seconds")
        if self.retry_delay_seconds < 0:
            raise ConfigError("retry_delay_seconds must not be negative", key="retry_delay_seconds")

    def overlay(self, data: Mapping[str, Any]) -> "SyncSettings":
        known = {f.name for f in fields(self)}
        return replace(self, **{k: v for k, v in data.items() if k in known and v is not None})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SettingsStore:
    """Key/value settings sharing the submission store's connection."""

    def __init__(self, store: SubmissionStore):
        self._store = store

    @property
    def lock(self):
        return self._store.lock

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        with self._store.lock:
            try:
                row = self._store.connection.execute(
                    "SELECT value FROM settings WHERE key = ?", (key,)
                ).fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to read setting {key}: {e}", operation="settings_get") from e
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            logger.warning(f"Discarding corrupt setting {key}")
            return default

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        with self._store.lock:
            try:
                self._store.connection.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, payload),
                )
            except sqlite3.Error as e:
                raise StorageError(f"Failed to write setting {key}: {e}", operation="settings_set") from e

    def remove(self, key: str) -> None:
        with self._store.lock:
            try:
                self._store.connection.execute("DELETE FROM settings WHERE key = ?", (key,))
            except sqlite3.Error as e:
                raise StorageError(f"Failed to remove setting {key}: {e}", operation="settings_remove") from e

    # ------------------------------------------------------------------
    # Remote config
    # ------------------------------------------------------------------

    def load_remote_config(self) -> RemoteConfig:
        """Persisted overlay on top of the default endpoint."""
        base = default_remote_config()
        saved = self.get(SETTINGS_KEY_REMOTE_CONFIG)
        if not isinstance(saved, Mapping):
            return base
        return base.overlay(saved)

    def save_remote_config(self, current: RemoteConfig, changes: Mapping[str, Any]) -> RemoteConfig:
        """Overlay changes on current, persist, and return the result."""
        updated = current.overlay(changes)
        self.set(SETTINGS_KEY_REMOTE_CONFIG, updated.to_dict())
        logger.info(f"Remote config saved (endpoint={updated.endpoint[:60]})")
        return updated

    # ------------------------------------------------------------------
    # Delivery tuning
    # ------------------------------------------------------------------

    def load_sync_settings(self, base: SyncSettings | None = None) -> SyncSettings:
        base = base or SyncSettings()
        saved = self.get(SETTINGS_KEY_API_CONFIG)
        return base.overlay(saved) if isinstance(saved, Mapping) else base

    def save_sync_settings(self, settings: SyncSettings) -> None:
        self.set(SETTINGS_KEY_API_CONFIG, settings.to_dict())

    # ------------------------------------------------------------------
    # Admin PIN
    # ------------------------------------------------------------------

    def get_admin_pin(self) -> str:
        pin = self.get(SETTINGS_KEY_ADMIN_PIN)
        return pin if isinstance(pin, str) and pin else DEFAULT_ADMIN_PIN

    def verify_admin_pin(self, attempt: str | None) -> bool:
        return attempt is not None and attempt == self.get_admin_pin()

    def set_admin_pin(self, new_pin: str) -> None:
        if not new_pin or len(new_pin) < MIN_ADMIN_PIN_LENGTH:
            raise ValidationError(
                f"PIN must be at least {MIN_ADMIN_PIN_LENGTH} characters",
                field="admin_pin",
            )
        self.set(SETTINGS_KEY_ADMIN_PIN, new_pin)
        logger.info("Admin PIN updated")

    # ------------------------------------------------------------------
    # UI state
    # ------------------------------------------------------------------

    def get_dark_mode(self) -> bool:
        return bool(self.get(SETTINGS_KEY_DARK_MODE, False))

    def set_dark_mode(self, enabled: bool) -> None:
        self.set(SETTINGS_KEY_DARK_MODE, bool(enabled))

    def save_draft(self, draft: Mapping[str, Any]) -> None:
        self.set(SETTINGS_KEY_DRAFT, dict(draft))

    def load_draft(self) -> dict[str, Any] | None:
        draft = self.get(SETTINGS_KEY_DRAFT)
        return draft if isinstance(draft, dict) else None

    def clear_draft(self) -> None:
        self.remove(SETTINGS_KEY_DRAFT)
