"""
base.py - Abstract base class for remote delivery clients.

All clients return a DeliveryResult instead of raising, so callers can
branch on success without exception handling.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class DeliveryResult:
    """Outcome of one delivery (possibly after retries)."""
    success: bool
    data: Any = None
    error: str | None = None
    status_code: int | None = None
    queued: bool = False
    skipped: bool = False  # sync disabled; nothing was sent

    @property
    def is_rejection(self) -> bool:
        """Remote answered 4xx: the payload itself was refused."""
        return self.status_code is not None and 400 <= self.status_code < 500

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            result = {"success": True, "data": self.data}
            if self.skipped:
                result["skipped"] = True
            return result
        result: dict[str, Any] = {"success": False, "error": self.error}
        if self.queued:
            result["queued"] = True
        return result


class RemoteClient(ABC):
    """
    Abstract base class for delivery clients.

    Implementations perform exactly one outbound call per post() and
    never retry internally.
    """

    @abstractmethod
    async def post(self, payload: Any) -> DeliveryResult:
        """Serialize payload as one JSON object and deliver it."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Client name for logging."""
        pass
