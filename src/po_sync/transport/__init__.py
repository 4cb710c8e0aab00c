"""
transport/__init__.py - Remote delivery layer.

Provides the single-attempt webhook client and the retrying wrapper
used by API-style operations.
"""

from po_sync.transport.base import DeliveryResult, RemoteClient
from po_sync.transport.http_transport import WebhookClient
from po_sync.transport.resilient import ResilientClient

__all__ = [
    "DeliveryResult",
    "RemoteClient",
    "WebhookClient",
    "ResilientClient",
]
