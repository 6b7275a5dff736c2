"""Expired-entry cleanup for both cache tiers, on demand or on a timer."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from hubcache.cache.durable import DurableTier
from hubcache.cache.memory import MemoryTier
from hubcache.cache.metrics import MetricsCollector
from hubcache.models import SweepResult

logger = logging.getLogger(__name__)


class CleanupSweeper:
    """Remove expired entries so the durable store does not grow without bound.

    Reads are already safe without sweeping (the memory tier evicts lazily
    and the durable tier checks TTLs), so sweeping only reclaims space.
    A sweep tolerates entries disappearing between listing and deletion,
    which makes it safe to run alongside reads, writes, and invalidations.

    Example::

        sweeper = CleanupSweeper(memory, durable, metrics)
        sweeper.sweep()            # on demand
        sweeper.start(interval=3600)  # every hour in a daemon thread
        sweeper.stop()
    """

    def __init__(
        self,
        memory: MemoryTier,
        durable: DurableTier,
        metrics: MetricsCollector,
    ) -> None:
        self._memory = memory
        self._durable = durable
        self._metrics = metrics
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def sweep(self) -> SweepResult:
        """Run one cleanup pass over both tiers.

        Raises:
            CacheDirectoryError: If the durable directory cannot be listed.
        """
        started_at = datetime.now(timezone.utc)
        memory_removed = self._memory.remove_expired()
        scan = self._durable.remove_expired()
        finished_at = datetime.now(timezone.utc)
        self._metrics.mark_cleanup(finished_at)

        logger.info(
            "Cache sweep removed %d memory and %d durable entries (%d failed)",
            memory_removed,
            scan.removed,
            scan.failed,
        )
        return SweepResult(
            memory_removed=memory_removed,
            durable_removed=scan.removed,
            failed=scan.failed,
            started_at=started_at,
            finished_at=finished_at,
        )

    # ------------------------------------------------------------------ #
    # Periodic mode
    # ------------------------------------------------------------------ #

    def start(self, interval: float) -> None:
        """Sweep every *interval* seconds in a daemon thread until :meth:`stop`."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            args=(interval,),
            daemon=True,
            name="hubcache-sweeper",
        )
        self._thread.start()
        logger.debug("Started periodic cache sweeps every %ss", interval)

    def stop(self, timeout: float = 2.0) -> None:
        """Signal the periodic thread to exit and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    @property
    def is_running(self) -> bool:
        """Whether the periodic thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def _run(self, interval: float) -> None:
        while not self._stop_event.wait(interval):
            try:
                self.sweep()
            except Exception:
                # A failed pass must not end periodic cleanup.
                logger.exception("Periodic cache sweep failed")
