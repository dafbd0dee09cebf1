"""Scheduler Module."""

import asyncio
import contextlib
from datetime import UTC, datetime, timedelta

from tzlocal import get_localzone

from src import log
from src.config.settings import WatchlistBridgeConfig
from src.core.bridge import BridgeClient
from src.exceptions import SchedulerNotInitializedError

__all__ = ["SchedulerClient"]

# Back-off after an unexpected error escapes a pass
_ERROR_BACKOFF = 10


class SchedulerClient:
    """Drives the bridge on a fixed interval.

    The first pass starts as soon as the scheduler is started, later passes
    follow every ``sync_interval`` minutes. In ``run_once`` mode the scheduler
    sets its stop event after the first pass. Two passes never run at the
    same time, a manual trigger waits for the pass in flight.
    """

    def __init__(
        self,
        global_config: WatchlistBridgeConfig,
        bridge_client: BridgeClient | None = None,
    ):
        """Initialize the scheduler.

        Args:
            global_config (WatchlistBridgeConfig): Global application configuration.
            bridge_client (BridgeClient | None): Bridge to drive. One is built from
                ``global_config`` in ``initialize`` when omitted.
        """
        self.global_config = global_config
        self.bridge_client = bridge_client
        self.sync_interval = global_config.sync_interval * 60
        self.stop_event = asyncio.Event()
        self.next_sync_at: datetime | None = None

        self._running = False
        self._pass_lock = asyncio.Lock()
        self._pass_task: asyncio.Task | None = None
        self._driver: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        """Whether ``start`` was called and ``stop`` was not."""
        return self._running

    def request_shutdown(self) -> None:
        """Ask the scheduler to wind down; safe to call from signal handlers."""
        if not self.stop_event.is_set():
            self.stop_event.set()

    def _require_bridge(self) -> BridgeClient:
        if self.bridge_client is None:
            raise SchedulerNotInitializedError("Scheduler has not been initialized")
        return self.bridge_client

    async def initialize(self) -> None:
        """Build the bridge client when none was injected."""
        if self.bridge_client is None:
            log.info("Creating bridge client")
            self.bridge_client = BridgeClient(self.global_config)
        log.info(f"Scheduler ready: {self.global_config}")

    async def sync(self) -> None:
        """Run one pass, logging instead of raising any error it hits.

        Raises:
            SchedulerNotInitializedError: If there is no bridge client yet.
        """
        bridge = self._require_bridge()

        async with self._pass_lock:
            self._pass_task = asyncio.create_task(bridge.sync())
            try:
                await self._pass_task
            except asyncio.CancelledError:
                if not self._pass_task.done():
                    log.info("Cancelling the running pass")
                    self._pass_task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await self._pass_task
                raise
            except Exception:
                log.error("Synchronization pass failed", exc_info=True)
            finally:
                self._pass_task = None

    async def trigger_sync(self) -> None:
        """Run a pass right away, queued behind any pass already in flight."""
        log.info("Pass requested manually")
        await self.sync()

    async def start(self) -> None:
        """Launch the driver task.

        Raises:
            SchedulerNotInitializedError: If there is no bridge client yet.
        """
        if self._running:
            return
        self._require_bridge()
        self._running = True

        if self.global_config.run_once:
            log.info("Running a single pass, the application exits afterwards")
            self._driver = asyncio.create_task(self._run_once())
            return

        log.info(
            f"Passes scheduled every $$'{self.global_config.sync_interval}'$$ "
            "minute(s)"
        )
        self._driver = asyncio.create_task(self._run_forever())

    async def wait_for_completion(self) -> None:
        """Block until the stop event is set."""
        if not self._running:
            return
        try:
            await self.stop_event.wait()
        except asyncio.CancelledError:
            log.info("Wait for scheduler completion interrupted")
            raise

    async def stop(self) -> None:
        """Cancel the driver and any pass in flight, then close the bridge."""
        if not self._running:
            return
        self._running = False
        self.stop_event.set()
        log.info("Stopping scheduler")

        for task in (self._pass_task, self._driver):
            if task is None or task.done():
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._driver = None
        self.next_sync_at = None

        if self.bridge_client is not None:
            await self.bridge_client.close()
        log.info("Scheduler stopped")

    async def _run_once(self) -> None:
        try:
            await self.sync()
        finally:
            self.stop_event.set()

    async def _run_forever(self) -> None:
        while self._running and not self.stop_event.is_set():
            try:
                await self.sync()
                self.next_sync_at = datetime.now(UTC) + timedelta(
                    seconds=self.sync_interval
                )
                log.info(
                    "Next pass at "
                    f"$$'{self.next_sync_at.astimezone(get_localzone())}'$$"
                )
                await self._sleep(self.sync_interval)
            except asyncio.CancelledError:
                log.debug("Scheduler loop cancelled")
                break
            except Exception:
                log.error("Scheduler loop error", exc_info=True)
                await self._sleep(_ERROR_BACKOFF)

    async def _sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` or until shutdown is requested."""
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self.stop_event.wait(), seconds)

    async def __aenter__(self) -> "SchedulerClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
