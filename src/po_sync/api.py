"""
api.py - Purchase order service for UI and HTTP callers.

Every method returns a response dict with a `success` flag instead of
raising. Creates and updates go straight to the remote endpoint through
the retrying client; anything that still fails lands in the retry queue
and the record stays pending for the next sync pass.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from po_sync.collaborators import AnonymousAuth, AuthProvider, Connectivity, LoggingNotifier, NetworkState, Notifier
from po_sync.config import ACTION_DELETE_PO
from po_sync.errors import NotFoundError, POSyncError
from po_sync.models import Submission
from po_sync.retry_queue import RetryQueue
from po_sync.shaping import build_health_check_payload, shape_po_for_send
from po_sync.store import SubmissionStore
from po_sync.transport.base import DeliveryResult
from po_sync.transport.resilient import ResilientClient
from po_sync.utils.timeutil import utc_now_iso
from po_sync.validation import validate_submission

logger = logging.getLogger(__name__)

SYNC_STATUS_SYNCED = "synced"
SYNC_STATUS_QUEUED = "queued"
SYNC_STATUS_DISABLED = "disabled"

# Fields owned by the store; never copied from an older revision
_REVISION_RESET_KEYS = ("id", "sent", "sentAt", "createdAt", "timestamp")


def _sync_status(result: DeliveryResult) -> str:
    if result.skipped:
        return SYNC_STATUS_DISABLED
    return SYNC_STATUS_SYNCED if result.success else SYNC_STATUS_QUEUED


class POService:
    """Create, revise, delete and query purchase orders."""

    def __init__(
        self,
        store: SubmissionStore,
        client: ResilientClient,
        retry_queue: RetryQueue | None = None,
        auth: AuthProvider | None = None,
        notifier: Notifier | None = None,
        connectivity: Connectivity | None = None,
    ):
        self._store = store
        self._client = client
        self._retry_queue = retry_queue
        self._auth = auth or AnonymousAuth()
        self._notifier = notifier or LoggingNotifier()
        self._connectivity = connectivity or NetworkState()

    async def create_po(self, data: Mapping[str, Any]) -> dict[str, Any]:
        try:
            validation = validate_submission(data)
            if not validation.is_valid:
                return {"success": False, "errors": validation.errors}

            submission = Submission.from_dict(data)
            if submission.user_id is None:
                submission = submission.copy(user_id=self._current_user_id())

            saved, sync = await self._save_and_send(submission)
            if sync.success:
                self._notifier.show_success("Submitted", f"Purchase Order {saved.id} created")
            else:
                self._notifier.show_error("Queued", f"Purchase Order {saved.id} saved; delivery will be retried")

            return {
                "success": True,
                "po": saved.to_dict(),
                "syncStatus": _sync_status(sync),
                "message": "Purchase Order created successfully",
            }
        except POSyncError as e:
            logger.error(f"Create PO error: {e}")
            return {"success": False, "error": e.message}

    async def update_po(self, po_id: int, changes: Mapping[str, Any]) -> dict[str, Any]:
        """
        Revise a purchase order.

        Sent records are immutable, so a revision is stored as a new
        submission that points at the original through `revisionOf`.
        The original record is left as it is.
        """
        try:
            original = await self._run_in_executor(self._store.get_by_id, po_id)
            if original is None:
                raise NotFoundError(po_id)

            merged = original.to_dict()
            merged.update(changes)
            for key in _REVISION_RESET_KEYS:
                merged.pop(key, None)
            merged["revisionOf"] = original.id
            merged["updatedAt"] = utc_now_iso()

            validation = validate_submission(merged)
            if not validation.is_valid:
                return {"success": False, "errors": validation.errors}

            saved, sync = await self._save_and_send(Submission.from_dict(merged))
            return {
                "success": True,
                "po": saved.to_dict(),
                "syncStatus": _sync_status(sync),
                "message": "Purchase Order updated successfully",
            }
        except POSyncError as e:
            logger.error(f"Update PO error: {e}")
            return {"success": False, "error": e.message}

    async def delete_po(self, po_id: int) -> dict[str, Any]:
        try:
            po = await self._run_in_executor(self._store.get_by_id, po_id)
            if po is None:
                raise NotFoundError(po_id)

            if not await self._run_in_executor(self._store.delete, po_id):
                return {"success": False, "error": "Failed to delete Purchase Order"}

            sync = await self._client.sync_with_action(ACTION_DELETE_PO, po.to_dict())
            return {
                "success": True,
                "syncStatus": _sync_status(sync),
                "message": "Purchase Order deleted successfully",
            }
        except POSyncError as e:
            logger.error(f"Delete PO error: {e}")
            return {"success": False, "error": e.message}

    async def get_pos(
        self,
        filters: Mapping[str, Any] | None = None,
        user_id: str | None = None,
    ) -> dict[str, Any]:
        filters = dict(filters or {})
        try:
            pos = await self._run_in_executor(
                self._store.search, filters.get("query") or "", filters, user_id
            )
            items = [po.to_dict() for po in pos]
            result: Any = items
            if filters.get("page") and filters.get("limit"):
                result = self._store.paginate(items, int(filters["page"]), int(filters["limit"]))
            return {
                "success": True,
                "data": result,
                "message": "Purchase Orders retrieved successfully",
            }
        except POSyncError as e:
            logger.error(f"Get POs error: {e}")
            return {"success": False, "error": e.message}

    async def get_po_by_id(self, po_id: int) -> dict[str, Any]:
        try:
            po = await self._run_in_executor(self._store.get_by_id, po_id)
            if po is None:
                raise NotFoundError(po_id)
            return {
                "success": True,
                "data": po.to_dict(),
                "message": "Purchase Order retrieved successfully",
            }
        except POSyncError as e:
            logger.error(f"Get PO by ID error: {e}")
            return {"success": False, "error": e.message}

    async def get_stats(self, user_id: str | None = None) -> dict[str, Any]:
        try:
            po_stats = await self._run_in_executor(self._store.stats, user_id)
            queued = len(self._retry_queue) if self._retry_queue is not None else 0
            return {
                "success": True,
                "data": {"pos": po_stats, "retryQueue": queued},
                "message": "Statistics retrieved successfully",
            }
        except POSyncError as e:
            logger.error(f"Get stats error: {e}")
            return {"success": False, "error": e.message}

    async def export_data(self, format: str = "json") -> dict[str, Any]:
        if format != "json":
            return {"success": False, "error": "Unsupported export format"}
        try:
            data = await self._run_in_executor(self._store.export_data)
        except POSyncError as e:
            logger.error(f"Export error: {e}")
            return {"success": False, "error": e.message}
        today = datetime.now(timezone.utc).date().isoformat()
        return {
            "success": True,
            "data": data,
            "filename": f"po_export_{today}.json",
            "message": "Data exported successfully",
        }

    async def health_check(self) -> dict[str, Any]:
        """Single unretried health check against the remote endpoint."""
        result = await self._client.client.post(build_health_check_payload())
        return {"success": result.success, "online": self._connectivity.is_online()}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _save_and_send(self, submission: Submission) -> tuple[Submission, DeliveryResult]:
        new_id = await self._run_in_executor(self._store.save, submission)
        saved = await self._run_in_executor(self._store.get_by_id, new_id)

        sync = await self._client.sync_directly(shape_po_for_send(saved))
        if sync.success and not sync.skipped:
            await self._run_in_executor(self._store.mark_sent, new_id)
            saved = await self._run_in_executor(self._store.get_by_id, new_id)
        return saved, sync

    def _current_user_id(self) -> str | None:
        user = self._auth.get_current_user()
        if not user or user.get("id") is None:
            return None
        return str(user["id"])

    async def _run_in_executor(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)
