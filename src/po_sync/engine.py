"""
engine.py - Sync engine.

The SyncEngine reconciles the local submission store with the remote
workflow endpoint. It coordinates:
- Sync passes over pending submissions
- Single and bulk resend/delete admin actions
- Form submission (validate, persist, attempt delivery)
- Replay of the retry queue

Passes are re-entrant and unguarded. Overlapping passes may push the
same submission twice; delivery is at-least-once and mark_sent is
idempotent.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from po_sync.collaborators import AuthProvider, Connectivity, NetworkState
from po_sync.config import ACTION_DIRECT_SYNC
from po_sync.errors import NotFoundError, POSyncError
from po_sync.logging_config import SyncLogger
from po_sync.models import Submission
from po_sync.retry_queue import RetryQueue
from po_sync.settings import SettingsStore, SyncSettings
from po_sync.shaping import build_action_envelope, build_test_payload, shape_po_for_send
from po_sync.store import SubmissionStore
from po_sync.transport.base import DeliveryResult, RemoteClient
from po_sync.validation import validate_submission

logger = logging.getLogger(__name__)


@dataclass
class PassResult:
    """Outcome of one sync pass."""
    attempted: int = 0
    sent: int = 0
    failed: int = 0
    skipped: str | None = None
    failures: dict[int, str] = field(default_factory=dict)


@dataclass
class SubmitResult:
    success: bool
    submission_id: int | None = None
    errors: list[str] = field(default_factory=list)
    synced: bool = False


PassObserver = Callable[[PassResult], None]


class SyncEngine:
    """
    Delivers pending submissions to the remote endpoint.

    State per submission: PENDING -> SENT on acknowledgment. There is no
    failed state; a failed delivery stays pending and is picked up by
    the next pass.
    """

    def __init__(
        self,
        store: SubmissionStore,
        client: RemoteClient,
        retry_queue: RetryQueue | None = None,
        settings: SettingsStore | None = None,
        connectivity: Connectivity | None = None,
        auth: AuthProvider | None = None,
        settings_provider: Callable[[], SyncSettings] | None = None,
    ):
        self._store = store
        self._client = client
        self._retry_queue = retry_queue
        self._settings = settings
        self._connectivity = connectivity or NetworkState()
        self._auth = auth
        self._settings_provider = settings_provider or SyncSettings
        self._observers: list[PassObserver] = []
        self._sync_log = SyncLogger()

    @property
    def store(self) -> SubmissionStore:
        return self._store

    @property
    def client(self) -> RemoteClient:
        return self._client

    def add_observer(self, observer: PassObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: PassObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    # ------------------------------------------------------------------
    # Sync pass
    # ------------------------------------------------------------------

    async def push_pending(self, trigger: str = "manual") -> PassResult:
        """
        Run one sync pass.

        Offline or an unavailable store makes the pass a no-op. Otherwise
        every pending submission gets one delivery attempt, in order; a
        failure is logged and the pass moves on to the next one.
        """
        if not self._connectivity.is_online():
            logger.debug("Offline; sync pass skipped")
            return PassResult(skipped="offline")
        if not self._store.is_available:
            logger.debug("Store unavailable; sync pass skipped")
            return PassResult(skipped="store_unavailable")

        started = time.monotonic()
        pending = await self._run_in_executor(self._store.get_pending)
        result = PassResult()
        if pending:
            self._sync_log.pass_started(len(pending), trigger)

        for submission in pending:
            result.attempted += 1
            try:
                delivery = await self._client.post(shape_po_for_send(submission))
                if delivery.success:
                    # An overlapping pass may already have recorded this one
                    if await self._run_in_executor(self._store.mark_sent, submission.id):
                        result.sent += 1
                else:
                    result.failed += 1
                    result.failures[submission.id] = delivery.error or "unknown error"
                    self._sync_log.delivery_failed(submission.id, delivery.error, delivery.status_code)
            except Exception as e:
                result.failed += 1
                result.failures[submission.id] = str(e)
                logger.error(f"Push failed for id {submission.id}: {type(e).__name__}: {e}")

        if pending:
            self._sync_log.pass_completed(
                result.attempted, result.sent, result.failed,
                (time.monotonic() - started) * 1000,
            )
        self._notify(result)
        return result

    # ------------------------------------------------------------------
    # Admin actions
    # ------------------------------------------------------------------

    async def resend(self, submission_id: int) -> DeliveryResult:
        """
        Deliver one submission now, whatever its current state.

        Raises:
            NotFoundError: If the id does not exist
        """
        submission = await self._run_in_executor(self._store.get_by_id, submission_id)
        if submission is None:
            raise NotFoundError(submission_id)

        delivery = await self._client.post(shape_po_for_send(submission))
        if delivery.success:
            await self._run_in_executor(self._store.mark_sent, submission.id)
            logger.info(f"Resent submission {submission.id}")
        else:
            self._sync_log.delivery_failed(submission.id, delivery.error, delivery.status_code)

        self._notify(PassResult(
            attempted=1,
            sent=1 if delivery.success else 0,
            failed=0 if delivery.success else 1,
        ))
        return delivery

    async def resend_many(self, submission_ids: Iterable[int]) -> int:
        """Resend each id in turn; returns how many were delivered."""
        delivered = 0
        for submission_id in submission_ids:
            try:
                result = await self.resend(submission_id)
            except NotFoundError:
                logger.warning(f"Failed to resend id {submission_id}: not found")
                continue
            if result.success:
                delivered += 1
        return delivered

    async def delete_many(self, submission_ids: Iterable[int]) -> int:
        deleted = 0
        for submission_id in submission_ids:
            if await self._run_in_executor(self._store.delete, submission_id):
                deleted += 1
        logger.info(f"Deleted {deleted} submissions")
        return deleted

    async def test_post(self) -> DeliveryResult:
        """Send a connectivity test to the configured endpoint."""
        return await self._client.post(build_test_payload())

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(
        self,
        data: Mapping[str, Any] | Submission,
        user_id: str | None = None,
    ) -> SubmitResult:
        """
        Accept a form submission.

        Validation failures persist nothing. A valid submission is saved
        before any network attempt, then an immediate pass is run; a
        delivery failure leaves it pending but still counts as accepted.

        Raises:
            StorageError: If the local save fails
        """
        validation = validate_submission(data)
        if not validation.is_valid:
            return SubmitResult(success=False, errors=validation.errors)

        submission = data if isinstance(data, Submission) else Submission.from_dict(data)
        if user_id is not None:
            submission = submission.copy(user_id=user_id)

        submission_id = await self._run_in_executor(self._store.save, submission)

        if self._settings is not None:
            await self._run_in_executor(self._settings.clear_draft)

        try:
            await self.push_pending(trigger="submit")
        except POSyncError as e:
            logger.warning(f"Push failed (queued): {e}")

        saved = await self._run_in_executor(self._store.get_by_id, submission_id)
        return SubmitResult(
            success=True,
            submission_id=submission_id,
            synced=bool(saved and saved.sent),
        )

    # ------------------------------------------------------------------
    # Retry queue
    # ------------------------------------------------------------------

    async def enqueue_failed(self, action: str, data: Any) -> None:
        """Park an exhausted delivery; hook for the resilient client."""
        if self._retry_queue is None:
            logger.warning(f"No retry queue configured; dropping {action}")
            return
        await self._run_in_executor(self._retry_queue.add, action, data)

    async def process_retry_queue(self) -> int:
        """
        Replay every queued entry once.

        Delivered entries are removed (a replayed PO is also marked sent
        in the store). An entry that has now failed retry_attempts
        replays is given up on and removed.

        Returns:
            Number of entries removed from the queue
        """
        if self._retry_queue is None or not self._connectivity.is_online():
            return 0

        entries = await self._run_in_executor(self._retry_queue.entries)
        if not entries:
            return 0

        logger.info(f"Processing {len(entries)} pending requests...")
        max_attempts = self._settings_provider().retry_attempts
        user = self._auth.get_current_user() if self._auth else None
        processed: set[str] = set()

        for entry in entries:
            entry.attempts += 1
            if entry.action == ACTION_DIRECT_SYNC:
                payload = entry.data
            else:
                payload = build_action_envelope(entry.action, entry.data, user)

            result = await self._client.post(payload)
            if result.success:
                logger.info(f"Successfully processed pending request: {entry.action}")
                processed.add(entry.id)
                if entry.action == ACTION_DIRECT_SYNC and isinstance(entry.data, Mapping):
                    po_id = entry.data.get("id")
                    if po_id is not None:
                        await self._run_in_executor(self._store.mark_sent, po_id)
            elif entry.attempts >= max_attempts:
                logger.warning(
                    f"Giving up on failed request after {entry.attempts} attempts: {entry.action}"
                )
                processed.add(entry.id)
            else:
                await self._run_in_executor(self._retry_queue.update, entry)

        if processed:
            await self._run_in_executor(self._retry_queue.remove, processed)
        return len(processed)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _notify(self, result: PassResult) -> None:
        for observer in list(self._observers):
            try:
                observer(result)
            except Exception as e:
                logger.error(f"Sync observer failed: {e}")

    async def _run_in_executor(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)
