from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import schedule

from ..connectivity.monitor import ConnectivityMonitor
from ..core.constants import DEFAULT_SYNC_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Background daemon that flushes the sync queue on a fixed interval.

    The flush is an interval job on a private ``schedule.Scheduler``; the
    daemon thread polls ``run_pending``. Runs only while the monitor reports
    online. There is no backoff: a persistently failing item is retried on
    every tick.
    """

    def __init__(
        self,
        flush: Callable[[], object],
        connectivity: ConnectivityMonitor,
        *,
        interval_seconds: float = DEFAULT_SYNC_INTERVAL_SECONDS,
    ):
        self._flush = flush
        self._connectivity = connectivity
        self._interval = float(interval_seconds)
        # Poll often enough that a job is never late by more than a second.
        self._poll_seconds = min(1.0, self._interval)
        self._jobs = schedule.Scheduler()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            logger.warning("Sync scheduler is already running")
            return

        self._jobs.clear()
        self._jobs.every(self._interval).seconds.do(self.tick)

        self._stop.clear()
        self._thread = threading.Thread(target=self._run_scheduler, name="sync-scheduler", daemon=True)
        self._thread.start()
        logger.info("Sync scheduler started (interval: %ss)", self._interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        self._jobs.clear()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Sync scheduler stopped")

    def tick(self) -> None:
        if not self._connectivity.is_online:
            return
        self._flush()

    def _run_scheduler(self) -> None:
        while not self._stop.is_set():
            try:
                self._jobs.run_pending()
            except Exception:
                # Keep the daemon alive; the next run retries.
                logger.exception("Sync scheduler tick failed")
            self._stop.wait(self._poll_seconds)
