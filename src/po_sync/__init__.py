"""
po_sync - Local-first purchase order submission pipeline

Captures purchase orders into a durable local store and delivers them
to a remote workflow endpoint, surviving offline periods and endpoint
failures.
"""

from po_sync.context import AppContext
from po_sync.engine import PassResult, SubmitResult, SyncEngine
from po_sync.errors import (
    POSyncError,
    StorageError,
    ValidationError,
    NotFoundError,
    RemoteError,
    ConfigError,
)
from po_sync.models import RemoteConfig, ScheduleLine, ScopeLine, Submission
from po_sync.store import SubmissionStore

__version__ = "1.0.0"
__all__ = [
    # Core
    "AppContext",
    "SyncEngine",
    "SubmissionStore",
    "PassResult",
    "SubmitResult",
    # Models
    "Submission",
    "ScheduleLine",
    "ScopeLine",
    "RemoteConfig",
    # Errors
    "POSyncError",
    "StorageError",
    "ValidationError",
    "NotFoundError",
    "RemoteError",
    "ConfigError",
]
