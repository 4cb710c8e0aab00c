"""
context.py - Application context.

Owns one instance of every pipeline component for a single local
database: store, settings, retry queue, remote clients, sync engine,
scheduler and API service. Nothing in the pipeline is a module-level
singleton; tests build as many contexts as they need.

Usage:
    async with AppContext("po.db") as ctx:
        await ctx.engine.submit(form_data)
"""

import logging
import os
from typing import Any

import httpx

from po_sync.api import POService
from po_sync.collaborators import AnonymousAuth, AuthProvider, LoggingNotifier, NetworkState, Notifier
from po_sync.config import DEFAULT_DB_PATH, ENV_DB_PATH
from po_sync.engine import SyncEngine
from po_sync.models import RemoteConfig
from po_sync.retry_queue import RetryQueue
from po_sync.scheduler import SyncScheduler
from po_sync.settings import SettingsStore, SyncSettings, default_remote_config
from po_sync.store import SubmissionStore
from po_sync.transport.http_transport import WebhookClient
from po_sync.transport.resilient import ResilientClient

logger = logging.getLogger(__name__)


class AppContext:
    """Wiring and lifecycle for one local store."""

    def __init__(
        self,
        db_path: str | None = None,
        sync_settings: SyncSettings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        auth: AuthProvider | None = None,
        notifier: Notifier | None = None,
        network: NetworkState | None = None,
    ):
        self.db_path = db_path or os.environ.get(ENV_DB_PATH, DEFAULT_DB_PATH)
        self.auth = auth or AnonymousAuth()
        self.notifier = notifier or LoggingNotifier()
        self.network = network or NetworkState()

        self.store = SubmissionStore(self.db_path)
        self.settings = SettingsStore(self.store)
        self.retry_queue = RetryQueue(self.settings)

        self._base_settings = sync_settings or SyncSettings()
        self._sync_settings = self._base_settings
        self._remote_config = default_remote_config()
        self._http_transport = http_transport

        self.client: WebhookClient | None = None
        self.resilient: ResilientClient | None = None
        self.engine: SyncEngine | None = None
        self.scheduler: SyncScheduler | None = None
        self.service: POService | None = None
        self._initialized = False

    async def __aenter__(self) -> "AppContext":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    @property
    def remote_config(self) -> RemoteConfig:
        return self._remote_config

    @property
    def sync_settings(self) -> SyncSettings:
        return self._sync_settings

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def init(self, start_scheduler: bool | None = None) -> None:
        """
        Open the store and build the pipeline.

        The scheduler starts when `start_scheduler` is True, or when it
        is None and the settings say auto_start.
        """
        if self._initialized:
            return

        self.store.initialize()
        self._remote_config = self.settings.load_remote_config()
        self._sync_settings = self.settings.load_sync_settings(self._base_settings)

        self.client = WebhookClient(
            config_provider=lambda: self._remote_config,
            timeout=self._sync_settings.timeout_seconds,
            transport=self._http_transport,
        )
        self.engine = SyncEngine(
            store=self.store,
            client=self.client,
            retry_queue=self.retry_queue,
            settings=self.settings,
            connectivity=self.network,
            auth=self.auth,
            settings_provider=lambda: self._sync_settings,
        )
        self.resilient = ResilientClient(
            client=self.client,
            settings_provider=lambda: self._sync_settings,
            on_exhausted=self.engine.enqueue_failed,
            user_provider=self.auth.get_current_user,
        )
        self.service = POService(
            store=self.store,
            client=self.resilient,
            retry_queue=self.retry_queue,
            auth=self.auth,
            notifier=self.notifier,
            connectivity=self.network,
        )
        self.scheduler = SyncScheduler(
            engine=self.engine,
            interval_seconds=self._sync_settings.interval_seconds,
            connectivity=self.network,
        )
        self._initialized = True
        logger.info(f"Context ready (db={self.db_path}, endpoint={self._remote_config.endpoint[:60]})")

        if start_scheduler is None:
            start_scheduler = self._sync_settings.auto_start
        if start_scheduler:
            self.scheduler.start()

    async def shutdown(self) -> None:
        """Stop timers, then release the HTTP client and the database."""
        if self.scheduler is not None:
            await self.scheduler.stop()
        if self.client is not None:
            await self.client.close()
        self.store.close()
        self._initialized = False
        logger.info("Context shut down")

    def update_remote_config(self, endpoint: str | None = None, api_key: str | None = None) -> RemoteConfig:
        """Persist a new endpoint/key; the next delivery uses it."""
        changes: dict[str, Any] = {}
        if endpoint is not None:
            changes["endpoint"] = endpoint
        if api_key is not None:
            changes["apiKey"] = api_key
        self._remote_config = self.settings.save_remote_config(self._remote_config, changes)
        return self._remote_config

    def update_sync_settings(self, **changes: Any) -> SyncSettings:
        """
        Overlay and persist delivery tuning.

        Retry settings are read per delivery. The pass interval and the
        HTTP timeout are pushed to the running scheduler and client; a
        new interval applies from the next wait.
        """
        updated = self._sync_settings.overlay(changes)
        self.settings.save_sync_settings(updated)
        self._sync_settings = updated
        if self.scheduler is not None:
            self.scheduler.interval = updated.interval_seconds
        if self.client is not None:
            self.client.timeout = updated.timeout_seconds
        return updated
