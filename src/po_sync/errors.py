"""
errors.py - Domain-specific exceptions for po_sync.

All exceptions inherit from POSyncError for unified handling.
Each exception type represents a distinct failure mode.
"""

from typing import Any


class POSyncError(Exception):
    """Base exception for all po_sync errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


class StorageError(POSyncError):
    """
    Raised when the local storage medium fails.

    Quota exhaustion, corruption, constraint violations. These are
    fatal to the single operation and are never retried automatically.
    """

    def __init__(
        self, message: str, operation: str | None = None, sql: str | None = None
    ) -> None:
        context = {}
        if operation is not None:
            context["operation"] = operation
        if sql is not None:
            # Truncate long SQL for readability
            context["sql"] = sql[:200] + "..." if len(sql) > 200 else sql
        super().__init__(message, context=context)
        self.operation = operation
        self.sql = sql


class ValidationError(POSyncError):
    """
    Raised when user input cannot be accepted.

    Carries the complete list of violations so callers can render
    all of them at once.
    """

    def __init__(
        self, message: str, errors: list[str] | None = None, field: str | None = None
    ) -> None:
        context = {}
        if field is not None:
            context["field"] = field
        if errors:
            context["error_count"] = len(errors)
        super().__init__(message, context=context)
        self.errors = list(errors or [])
        self.field = field


class NotFoundError(POSyncError):
    """Raised when a submission id does not exist in the local store."""

    def __init__(self, submission_id: int) -> None:
        super().__init__(
            "Purchase Order not found",
            context={"submission_id": submission_id},
        )
        self.submission_id = submission_id


class RemoteError(POSyncError):
    """
    Raised inside the transport layer when a delivery attempt fails.

    Never escapes the client boundary: clients convert it into a
    failed DeliveryResult.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        context = {}
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(message, context=context)
        self.status_code = status_code

    @property
    def is_rejection(self) -> bool:
        """True for 4xx responses, which retrying is unlikely to fix."""
        return self.status_code is not None and 400 <= self.status_code < 500


class ConfigError(POSyncError):
    """Raised when a configuration value is unusable."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message, context={"key": key} if key else None)
        self.key = key
