"""
Background scheduler for integration sync.

Runs one reconciliation cycle at startup, then one per interval, until
stopped. Cycles never overlap: every run (scheduled or manual) passes through
a single-slot lock, and a run that finds the slot taken is skipped and logged.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Protocol

from ..config import SyncConfig
from .engine import IntegrationSyncer
from .storage import utc_now_iso

logger = logging.getLogger("alfie.sync.scheduler")

THREAD_JOIN_TIMEOUT_SECONDS = 5


class Syncer(Protocol):
    def sync(self) -> dict[str, Any]: ...


class SyncScheduler:
    """Runs a syncer periodically in a dedicated thread with its own event loop."""

    def __init__(
        self,
        config: SyncConfig,
        syncer: Syncer | None = None,
        interval_seconds: float | None = None,
    ):
        self.config = config
        self.syncer = syncer or IntegrationSyncer(config)
        if interval_seconds is not None and interval_seconds > 0:
            self.interval_seconds = interval_seconds
        else:
            self.interval_seconds = config.sync_interval_seconds

        self._cycle_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._shutdown_event: asyncio.Event | None = None

        self.last_sync: str | None = None
        self.last_result: dict[str, Any] | None = None
        self.last_error: str | None = None
        self.cycles_run = 0
        self.skipped_cycles = 0

    # --- Single cycle ---

    @property
    def cycle_in_progress(self) -> bool:
        return self._cycle_lock.locked()

    def run_cycle(self, trigger: str = "scheduled") -> bool:
        """
        Run one sync cycle unless another is already in flight.

        Errors from the syncer are logged, never raised.

        Returns:
            True if the cycle ran, False if it was skipped.
        """
        if not self._cycle_lock.acquire(blocking=False):
            with self._stats_lock:
                self.skipped_cycles += 1
            logger.warning(f"[Scheduler] Previous sync still running; skipping {trigger} cycle")
            return False

        try:
            logger.debug(f"[Scheduler] Starting {trigger} sync")
            try:
                self.last_result = self.syncer.sync()
                self.last_error = None
            except Exception as e:
                logger.error(f"[Scheduler] {trigger.capitalize()} sync failed: {e}")
                self.last_error = str(e)
            self.cycles_run += 1
            self.last_sync = utc_now_iso()
        finally:
            self._cycle_lock.release()
        return True

    # --- Loop ---

    async def _run(self) -> None:
        assert self._shutdown_event is not None
        loop = asyncio.get_running_loop()

        logger.info(f"[Scheduler] Started. Sync interval: {self.interval_seconds}s")

        # Initial sync on startup
        await loop.run_in_executor(None, self.run_cycle, "initial")

        while not self._shutdown_event.is_set():
            try:
                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=self.interval_seconds,
                    )
                    break
                except asyncio.TimeoutError:
                    pass

                await loop.run_in_executor(None, self.run_cycle, "scheduled")

            except Exception as e:
                logger.error(f"[Scheduler] Sync cycle failed: {e}")

        logger.info("[Scheduler] Stopped")

    def _run_in_thread(self) -> None:
        assert self._loop is not None
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run())
            self._loop.run_until_complete(self._loop.shutdown_default_executor())
        except Exception as e:
            logger.error(f"[Scheduler] Thread error: {e}")
        finally:
            self._loop.close()

    # --- Lifecycle ---

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the scheduler thread. No-op if already running."""
        if self.is_running:
            logger.debug("[Scheduler] Already running")
            return

        self._loop = asyncio.new_event_loop()
        self._shutdown_event = asyncio.Event()
        self._thread = threading.Thread(
            target=self._run_in_thread,
            name="integration-sync-scheduler",
            daemon=True,  # Dies when main thread exits
        )
        self._thread.start()

    def stop(self) -> None:
        """
        Stop the scheduler.

        An in-flight cycle is allowed to finish; an unfinished import simply
        leaves its watermark stale for the next start.
        """
        loop, event = self._loop, self._shutdown_event
        if loop is not None and event is not None and not loop.is_closed():
            try:
                loop.call_soon_threadsafe(event.set)
                logger.info("[Scheduler] Shutdown signal sent")
            except RuntimeError:
                # Loop closed between the check and the call
                logger.debug("[Scheduler] Event loop already closed")

        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=THREAD_JOIN_TIMEOUT_SECONDS)
            if self._thread.is_alive():
                logger.warning("[Scheduler] Thread did not stop gracefully")

    def get_status(self) -> dict[str, Any]:
        """Snapshot of scheduler state for status endpoints."""
        return {
            "running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "cycle_in_progress": self.cycle_in_progress,
            "cycles_run": self.cycles_run,
            "skipped_cycles": self.skipped_cycles,
            "last_sync": self.last_sync,
            "last_result": self.last_result,
            "last_error": self.last_error,
        }
