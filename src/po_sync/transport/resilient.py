"""
resilient.py - Bounded-retry delivery for API-style operations.

Wraps a single-attempt RemoteClient with:
- up to retry_attempts tries per call
- linear backoff: retry_delay * attempt between tries
- on exhaustion, hand the operation to a queue hook for later replay
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping

from po_sync.config import ACTION_DIRECT_SYNC
from po_sync.logging_config import SyncLogger
from po_sync.settings import SyncSettings
from po_sync.shaping import build_action_envelope
from po_sync.transport.base import DeliveryResult, RemoteClient

logger = logging.getLogger(__name__)

ExhaustedHook = Callable[[str, Any], Awaitable[None]]
UserProvider = Callable[[], Mapping[str, Any] | None]


class ResilientClient:
    """
    Retrying wrapper used by create/update/delete operations.

    Timeouts and transport errors are retried exactly like HTTP errors.
    """

    def __init__(
        self,
        client: RemoteClient,
        settings_provider: Callable[[], SyncSettings],
        on_exhausted: ExhaustedHook | None = None,
        user_provider: UserProvider | None = None,
    ):
        self._client = client
        self._settings_provider = settings_provider
        self._on_exhausted = on_exhausted
        self._user_provider = user_provider or (lambda: None)
        self._sync_log = SyncLogger()

    @property
    def client(self) -> RemoteClient:
        return self._client

    async def sync_with_action(self, action: str, data: Any) -> DeliveryResult:
        """Send data wrapped in the {action, data, ...} envelope."""
        envelope = build_action_envelope(action, data, self._user_provider())
        return await self._deliver(envelope, action=action, queue_data=data)

    async def sync_directly(self, shaped: Mapping[str, Any]) -> DeliveryResult:
        """Send an already-shaped PO object without an envelope."""
        return await self._deliver(shaped, action=ACTION_DIRECT_SYNC, queue_data=shaped)

    async def _deliver(self, payload: Any, action: str, queue_data: Any) -> DeliveryResult:
        settings = self._settings_provider()
        if not settings.enable_sync:
            logger.info(f"Remote sync is disabled; skipping {action}")
            return DeliveryResult(success=True, data="Sync disabled", skipped=True)

        last: DeliveryResult | None = None
        for attempt in range(1, settings.retry_attempts + 1):
            result = await self._client.post(payload)
            if result.success:
                logger.info(f"Remote sync successful: {action}")
                return result

            last = result
            logger.warning(
                f"Remote sync failed: {action} ({attempt}/{settings.retry_attempts}): {result.error}"
            )
            if attempt < settings.retry_attempts:
                await asyncio.sleep(settings.retry_delay_seconds * attempt)

        queued = False
        if self._on_exhausted is not None:
            await self._on_exhausted(action, queue_data)
            self._sync_log.request_queued(action, settings.retry_attempts)
            queued = True

        return DeliveryResult(
            success=False,
            error=last.error if last else None,
            status_code=last.status_code if last else None,
            queued=queued,
        )
