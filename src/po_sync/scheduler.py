import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Optional

from po_sync.collaborators import Connectivity, NetworkState
from po_sync.config import SYNC_INTERVAL_SECONDS
from po_sync.engine import PassResult, SyncEngine
from po_sync.utils.timeutil import utc_now_iso

logger = logging.getLogger(__name__)


class SchedulerStatus(Enum):
    STOPPED = "stopped"
    IDLE = "idle"
    SYNCING = "syncing"
    OFFLINE = "offline"
    ERROR = "error"


@dataclass
class SyncStats:
    passes: int = 0
    sent: int = 0
    failed: int = 0
    replayed: int = 0
    errors: int = 0
    last_pass_at: str = ""
    last_error: str = ""
    last_duration_ms: float = 0.0

    def record(self, result: PassResult, duration_ms: float) -> None:
        self.passes += 1
        self.sent += result.sent
        self.failed += result.failed
        self.last_pass_at = utc_now_iso()
        self.last_duration_ms = round(duration_ms, 2)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SyncScheduler:
    """
    Background trigger for sync passes.

    Handles:
    - An initial pass as soon as it starts
    - Periodic passes every interval_seconds
    - An extra pass when connectivity is restored
    - Manual passes on request

    Triggers are independent: an online-restore or manual pass may run
    while a periodic one is in flight.
    """

    def __init__(
        self,
        engine: SyncEngine,
        interval_seconds: float = SYNC_INTERVAL_SECONDS,
        connectivity: Connectivity | None = None,
        on_status_change: Optional[Callable[[SchedulerStatus], None]] = None
    ):
        self.engine = engine
        self.interval = interval_seconds
        self.connectivity = connectivity or NetworkState()
        self.on_status_change = on_status_change

        self.stats = SyncStats()
        self._running = False
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task | None = None
        self._extra_tasks: set[asyncio.Task] = set()
        self._status = SchedulerStatus.STOPPED

    @property
    def status(self) -> SchedulerStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the periodic loop on the running event loop."""
        if self._running:
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run_loop())

    async def stop(self) -> None:
        """
        Stop scheduling new passes.

        A pass already in flight is allowed to finish.
        """
        if not self._running:
            return

        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        if self._extra_tasks:
            await asyncio.gather(*self._extra_tasks, return_exceptions=True)
        self._set_status(SchedulerStatus.STOPPED)
        logger.info("SyncScheduler stopped")

    async def _run_loop(self) -> None:
        logger.info(f"SyncScheduler started (interval={self.interval}s)")

        while self._running:
            try:
                await self.sync_now(trigger="interval" if self.stats.passes else "startup")
            except Exception as e:
                logger.error(f"Sync cycle failed: {e}")
                self.stats.errors += 1
                self.stats.last_error = str(e)
                self._set_status(SchedulerStatus.ERROR)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                if self._stop_event.is_set():
                    break
            except asyncio.TimeoutError:
                continue

    async def sync_now(self, trigger: str = "manual") -> PassResult:
        """Perform a single pass, then replay the retry queue."""
        if not self.connectivity.is_online():
            self._set_status(SchedulerStatus.OFFLINE)
            return PassResult(skipped="offline")

        self._set_status(SchedulerStatus.SYNCING)
        started = time.monotonic()

        result = await self.engine.push_pending(trigger=trigger)
        self.stats.replayed += await self.engine.process_retry_queue()

        self.stats.record(result, (time.monotonic() - started) * 1000)
        self._set_status(SchedulerStatus.IDLE if self._running else SchedulerStatus.STOPPED)
        return result

    async def trigger(self) -> PassResult:
        """Manual pass, awaited by the caller."""
        return await self.sync_now(trigger="manual")

    def notify_online(self) -> asyncio.Task:
        """
        Connectivity restored; run a pass now without waiting for the timer.

        Returns the task so callers may await it.
        """
        if isinstance(self.connectivity, NetworkState):
            self.connectivity.set_online(True)
        logger.info("Connection restored. Processing pending submissions...")
        task = asyncio.get_running_loop().create_task(self._guarded_sync("online"))
        self._extra_tasks.add(task)
        task.add_done_callback(self._extra_tasks.discard)
        return task

    def notify_offline(self) -> None:
        if isinstance(self.connectivity, NetworkState):
            self.connectivity.set_online(False)
        self._set_status(SchedulerStatus.OFFLINE)

    async def _guarded_sync(self, trigger: str) -> PassResult | None:
        try:
            return await self.sync_now(trigger=trigger)
        except Exception as e:
            logger.error(f"Sync on {trigger} failed: {e}")
            self.stats.errors += 1
            self.stats.last_error = str(e)
            self._set_status(SchedulerStatus.ERROR)
            return None

    def _set_status(self, status: SchedulerStatus) -> None:
        if self._status != status:
            self._status = status
            if self.on_status_change:
                self.on_status_change(status)
