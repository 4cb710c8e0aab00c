"""
retry_queue.py - Persisted queue of deliveries awaiting replay.

Entries are parked here by the resilient client after its in-call
retries are exhausted, and replayed by the sync engine. The list lives
in the settings table under a reserved key so it survives restarts.
"""

import logging
import uuid
from typing import Any

from po_sync.config import SETTINGS_KEY_FAILED_REQUESTS
from po_sync.models import RetryQueueEntry
from po_sync.settings import SettingsStore
from po_sync.utils.timeutil import utc_now_iso

logger = logging.getLogger(__name__)


class RetryQueue:
    def __init__(self, settings: SettingsStore):
        self._settings = settings

    def __len__(self) -> int:
        return len(self.entries())

    def entries(self) -> list[RetryQueueEntry]:
        raw = self._settings.get(SETTINGS_KEY_FAILED_REQUESTS, [])
        if not isinstance(raw, list):
            return []
        return [RetryQueueEntry.from_dict(item) for item in raw if isinstance(item, dict)]

    def add(self, action: str, data: Any) -> RetryQueueEntry:
        entry = RetryQueueEntry(
            id=uuid.uuid4().hex,
            action=action,
            data=data,
            timestamp=utc_now_iso(),
            attempts=0,
        )
        with self._settings.lock:
            current = self.entries()
            current.append(entry)
            self.replace(current)
        logger.info(f"Queued {action} for later replay ({entry.id})")
        return entry

    def remove(self, entry_ids: set[str]) -> int:
        with self._settings.lock:
            current = self.entries()
            kept = [entry for entry in current if entry.id not in entry_ids]
            self.replace(kept)
        return len(current) - len(kept)

    def update(self, entry: RetryQueueEntry) -> None:
        """Persist a changed entry (attempt count) if it is still queued."""
        with self._settings.lock:
            current = self.entries()
            self.replace([entry if item.id == entry.id else item for item in current])

    def replace(self, entries: list[RetryQueueEntry]) -> None:
        self._settings.set(SETTINGS_KEY_FAILED_REQUESTS, [entry.to_dict() for entry in entries])

    def clear(self) -> None:
        self.replace([])

