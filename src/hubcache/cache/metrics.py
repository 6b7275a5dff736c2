"""Hit/miss counters and latency samples for the response cache.

Counters can be persisted to a small JSON file (``stats.json`` beside the
durable entries) so that separate processes sharing a cache directory, such
as successive CLI invocations, report cumulative numbers. Persistence is
best-effort: the file is loaded once at construction, rewritten every
:data:`FLUSH_EVERY` reads and on :meth:`MetricsCollector.flush`, and any
I/O failure is logged and ignored. Concurrent writers overwrite each other
(last writer wins).
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from hubcache.config import atomic_write
from hubcache.models import MetricsRecord, PerformanceSummary

logger = logging.getLogger(__name__)

LATENCY_WINDOW = 1000
"""Number of recent read latencies kept in memory."""

FLUSH_EVERY = 10
"""Reads between writes of the persisted counters."""


class MetricsCollector:
    """Thread-safe read metrics.

    Every cache read records either a hit (with the tier that served it)
    or a miss, together with its latency in milliseconds. Hit latencies
    also feed a running average used for the time-saved estimate.

    Args:
        assumed_upstream_latency_ms: Assumed cost of one upstream call.
            Configuration, not a measurement.
        window: How many recent latency samples to keep.
        store: Optional JSON file the counters are loaded from and saved to.
    """

    def __init__(
        self,
        assumed_upstream_latency_ms: float,
        window: int = LATENCY_WINDOW,
        store: Optional[Path] = None,
    ) -> None:
        self._assumed_upstream_latency_ms = assumed_upstream_latency_ms
        self._store = store
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._tier_hits: dict[str, int] = {"memory": 0, "durable": 0}
        self._hit_latency_total_ms = 0.0
        self._samples: deque[float] = deque(maxlen=window)
        self._last_cleanup: Optional[datetime] = None
        self._unsaved = 0
        if store is not None:
            self._load(store)

    def record_hit(self, latency_ms: float, tier: str) -> None:
        """Count a hit served by *tier* (``"memory"`` or ``"durable"``)."""
        with self._lock:
            self._hits += 1
            self._tier_hits[tier] = self._tier_hits.get(tier, 0) + 1
            self._hit_latency_total_ms += latency_ms
            self._samples.append(latency_ms)
            self._note_read()

    def record_miss(self, latency_ms: float) -> None:
        """Count a read that neither tier could satisfy."""
        with self._lock:
            self._misses += 1
            self._samples.append(latency_ms)
            self._note_read()

    def mark_cleanup(self, when: datetime) -> None:
        """Record the completion time of a sweep."""
        with self._lock:
            self._last_cleanup = when
            self._save()

    def reset(self) -> None:
        """Zero every counter, including the persisted copy."""
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._tier_hits = {"memory": 0, "durable": 0}
            self._hit_latency_total_ms = 0.0
            self._samples.clear()
            self._last_cleanup = None
            self._save()

    def flush(self) -> None:
        """Persist counters recorded since the last save, if any."""
        with self._lock:
            if self._unsaved:
                self._save()

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    @property
    def last_cleanup(self) -> Optional[datetime]:
        return self._last_cleanup

    def hit_rate(self) -> float:
        """Return ``hits / (hits + misses)``, or ``0.0`` before any read."""
        with self._lock:
            return self._hit_rate()

    def snapshot(self) -> dict[str, Any]:
        """Return the counters as a dict suitable for :class:`~hubcache.models.CacheStats`.

        ``recent_average_latency_ms`` averages the in-memory sample window
        (hits and misses of this process only).
        """
        with self._lock:
            recent = sum(self._samples) / len(self._samples) if self._samples else 0.0
            return {
                "hits": self._hits,
                "misses": self._misses,
                "memory_hits": self._tier_hits.get("memory", 0),
                "durable_hits": self._tier_hits.get("durable", 0),
                "hit_rate": self._hit_rate(),
                "recent_average_latency_ms": recent,
                "last_cleanup": self._last_cleanup,
            }

    def performance_summary(self) -> PerformanceSummary:
        """Estimate the upstream calls and time saved so far.

        ``estimated_time_saved_ms`` is
        ``hits * (assumed_upstream_latency_ms - average_hit_latency_ms)``,
        floored at zero.
        """
        with self._lock:
            average = self._hit_latency_total_ms / self._hits if self._hits else 0.0
            saved = self._hits * (self._assumed_upstream_latency_ms - average)
            return PerformanceSummary(
                hit_rate=self._hit_rate(),
                average_hit_latency_ms=average,
                estimated_api_calls_saved=self._hits,
                estimated_time_saved_ms=max(0.0, saved),
                assumed_upstream_latency_ms=self._assumed_upstream_latency_ms,
            )

    # ------------------------------------------------------------------ #
    # Persistence (callers hold the lock, except during __init__)
    # ------------------------------------------------------------------ #

    def _hit_rate(self) -> float:
        total = self._hits + self._misses
        return self._hits / total if total else 0.0

    def _note_read(self) -> None:
        self._unsaved += 1
        if self._unsaved >= FLUSH_EVERY:
            self._save()

    def _load(self, store: Path) -> None:
        try:
            text = store.read_text(encoding="utf-8")
        except FileNotFoundError:
            return
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Cannot read cache metrics %s: %s", store, exc)
            return

        try:
            record = MetricsRecord.model_validate_json(text)
        except ValidationError as exc:
            logger.warning("Ignoring corrupt cache metrics %s: %s", store.name, exc)
            return

        self._hits = record.hits
        self._misses = record.misses
        self._tier_hits = {"memory": record.memory_hits, "durable": record.durable_hits}
        self._hit_latency_total_ms = record.hit_latency_total_ms
        self._last_cleanup = record.last_cleanup

    def _save(self) -> None:
        self._unsaved = 0
        if self._store is None:
            return
        record = MetricsRecord(
            hits=self._hits,
            misses=self._misses,
            memory_hits=self._tier_hits.get("memory", 0),
            durable_hits=self._tier_hits.get("durable", 0),
            hit_latency_total_ms=self._hit_latency_total_ms,
            last_cleanup=self._last_cleanup,
        )
        try:
            atomic_write(self._store, record.model_dump_json(indent=2), mode=0o600)
        except OSError as exc:
            logger.warning("Failed to save cache metrics to %s: %s", self._store, exc)
