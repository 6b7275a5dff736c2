"""Two-tier response cache for GitHub API data.

:class:`ResponseCache` is the single entry point the rest of the application
uses. It is constructed once at process start and handed to whatever needs
it (the GitHub client, the admin commands); nothing in this package keeps
module-level cache state.

Read path: memory tier, then durable tier (backfilling memory on a hit),
otherwise a miss. On a miss the caller fetches from GitHub and calls
:meth:`ResponseCache.set`, which writes memory first and then disk. A
failed disk write is logged and ignored; memory stays authoritative for
the life of the process.

The enable flag only governs reads and writes. Invalidation, sweeps and
previews always act on both tiers, so entries written before caching was
turned off can still be removed. Read counters are persisted to
``stats.json`` in the cache directory (see :mod:`hubcache.cache.metrics`)
and reset by :meth:`ResponseCache.invalidate_all`.

See Also:
    :class:`~hubcache.models.CacheConfig` -- enable flag, TTLs, and the
    assumed upstream latency used by :meth:`ResponseCache.performance_summary`.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional

from hubcache.cache.durable import DurableTier
from hubcache.cache.invalidation import InvalidationController
from hubcache.cache.keys import (
    ResourceTypeLike,
    Scope,
    build_key,
    hash_principal,
    principal_of,
    validate_resource_type,
)
from hubcache.cache.memory import MemoryTier
from hubcache.cache.metrics import MetricsCollector
from hubcache.cache.sweeper import CleanupSweeper
from hubcache.cache.ttl import TTLPolicy
from hubcache.exceptions import CacheDirectoryError
from hubcache.models import (
    CacheConfig,
    CacheEntry,
    CacheStats,
    InvalidationResult,
    PerformanceSummary,
    SweepResult,
)

logger = logging.getLogger(__name__)

STATS_FILENAME = "stats.json"
"""Persisted read counters. Never mistaken for an entry: it has no ``_``."""


class ResponseCache:
    """Per-principal cache for upstream API responses.

    Args:
        cache_dir: Directory for the durable tier (one JSON file per entry).
        config: Cache configuration (enable flag, TTLs, latency assumption).
        clock: Returns the current time as epoch seconds. Injectable for tests.

    Example::

        from hubcache.cache import ResponseCache
        from hubcache.models import CacheConfig

        cache = ResponseCache("/tmp/gh-cache", CacheConfig())
        scope = {"owner": "octo", "repo": "widgets", "state": "open"}
        issues = cache.get("issues", scope, token)
        if issues is None:
            issues = fetch_issues_from_github()
            cache.set("issues", scope, token, issues, etag=response_etag)
    """

    def __init__(
        self,
        cache_dir: str | Path,
        config: CacheConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._cache_dir = Path(cache_dir)
        self._clock = clock
        self._ttl = TTLPolicy(config)
        self._memory = MemoryTier(clock)
        self._durable = DurableTier(self._cache_dir, self._ttl.ttl_for, clock)
        self._metrics = MetricsCollector(
            config.assumed_upstream_latency_ms,
            store=self._cache_dir / STATS_FILENAME,
        )
        self._invalidation = InvalidationController(self._memory, self._durable)
        self._sweeper = CleanupSweeper(self._memory, self._durable, self._metrics)

    @property
    def enabled(self) -> bool:
        """Whether caching is on. A disabled cache misses every read and ignores writes.

        Administrative operations (invalidation, sweeps) work either way.
        """
        return self._config.enabled

    @property
    def ttl_policy(self) -> TTLPolicy:
        """The TTL policy applied to new entries."""
        return self._ttl

    # ------------------------------------------------------------------ #
    # Read / write
    # ------------------------------------------------------------------ #

    def get(self, resource_type: ResourceTypeLike, scope: Scope, token: str) -> Optional[Any]:
        """Return the cached payload, or ``None`` on a miss.

        Storage failures never escape: an unreadable or corrupt durable
        entry is a miss.

        Args:
            resource_type: Resource type such as ``"issues"``.
            scope: Scope parameters identifying the resource, or ``None``.
            token: The caller's access token (hashed, never stored).

        Raises:
            ValueError: If *resource_type* is not a valid resource type name.
        """
        if not self.enabled:
            return None

        started = time.perf_counter()
        key = build_key(resource_type, scope, token)

        entry = self._memory.get(key)
        if entry is not None:
            self._metrics.record_hit(_elapsed_ms(started), "memory")
            return entry.payload

        entry = self._durable.get(key)
        if entry is not None:
            self._memory.set(key, entry)
            self._metrics.record_hit(_elapsed_ms(started), "durable")
            return entry.payload

        self._metrics.record_miss(_elapsed_ms(started))
        return None

    def set(
        self,
        resource_type: ResourceTypeLike,
        scope: Scope,
        token: str,
        payload: Any,
        etag: Optional[str] = None,
    ) -> None:
        """Store *payload* in both tiers.

        The memory write always happens. The durable write is a single
        best-effort attempt: on failure it is logged and the call still
        succeeds.

        Raises:
            ValueError: If *resource_type* is not a valid resource type name.
        """
        if not self.enabled:
            return

        key = build_key(resource_type, scope, token)
        entry = CacheEntry(
            key=key,
            payload=payload,
            timestamp=self._clock(),
            ttl_seconds=self._ttl.ttl_for(resource_type),
            etag=etag,
        )
        self._memory.set(key, entry)
        try:
            self._durable.set(key, entry)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning(
                "Durable cache write failed for %s (kept in memory only): %s",
                validate_resource_type(resource_type),
                exc,
            )

    # ------------------------------------------------------------------ #
    # Invalidation
    # ------------------------------------------------------------------ #

    def invalidate_all(self) -> InvalidationResult:
        """Remove every entry from both tiers and reset the read counters.

        Raises:
            CacheDirectoryError: If the durable directory cannot be listed.
        """
        result = self._invalidation.invalidate_all()
        self._metrics.reset()
        return result

    def invalidate_scope(self, token: str) -> InvalidationResult:
        """Remove every entry belonging to *token*'s principal.

        Raises:
            CacheDirectoryError: If the durable directory cannot be listed.
        """
        return self._invalidation.invalidate_scope(hash_principal(token))

    def invalidate_type(
        self, resource_type: ResourceTypeLike, scope: Scope, token: str
    ) -> InvalidationResult:
        """Remove entries of one resource type (optionally one scope) for *token*.

        Check ``applied_scope`` on the result: a partial scope widens the
        invalidation to every entry of the principal.

        Raises:
            CacheDirectoryError: If the durable directory cannot be listed.
            ValueError: If *resource_type* is not a valid resource type name,
                or *scope* names a parameter the type does not take.
        """
        return self._invalidation.invalidate_type(resource_type, scope, hash_principal(token))

    def describe_scope(self, token: str) -> dict[str, Any]:
        """Preview what :meth:`invalidate_scope` would remove for *token*.

        Returns:
            A ``dict`` with ``principal_hash``, ``memory_keys`` and
            ``durable_keys``.

        Raises:
            CacheDirectoryError: If the durable directory cannot be listed.
        """
        principal_hash = hash_principal(token)
        memory_keys = sorted(k for k in self._memory.keys() if principal_of(k) == principal_hash)
        durable_keys = sorted(k for k in self._durable.keys() if principal_of(k) == principal_hash)
        return {
            "principal_hash": principal_hash,
            "memory_keys": memory_keys,
            "durable_keys": durable_keys,
        }

    # ------------------------------------------------------------------ #
    # Cleanup
    # ------------------------------------------------------------------ #

    def sweep(self) -> SweepResult:
        """Remove expired entries from both tiers.

        Raises:
            CacheDirectoryError: If the durable directory cannot be listed.
        """
        return self._sweeper.sweep()

    def start_sweeper(self, interval: Optional[float] = None) -> None:
        """Start periodic sweeps (default: ``cleanup_interval_seconds``)."""
        if not self.enabled:
            return
        self._sweeper.start(interval or self._config.cleanup_interval_seconds)

    # ------------------------------------------------------------------ #
    # Statistics
    # ------------------------------------------------------------------ #

    def stats(self) -> CacheStats:
        """Return hit/miss counters and tier sizes.

        An unreadable durable directory is logged and reported as empty
        rather than failing the stats call.
        """
        if not self.enabled:
            return CacheStats(
                enabled=False,
                cache_dir=str(self._cache_dir),
                ttl_settings=self._ttl.as_dict(),
            )

        try:
            durable_count, durable_size = self._durable.usage()
        except CacheDirectoryError as exc:
            logger.warning("Cannot measure durable cache: %s", exc)
            durable_count, durable_size = 0, 0

        return CacheStats(
            enabled=True,
            memory_entry_count=len(self._memory),
            durable_entry_count=durable_count,
            approximate_total_size_bytes=durable_size,
            cache_dir=str(self._cache_dir),
            ttl_settings=self._ttl.as_dict(),
            **self._metrics.snapshot(),
        )

    def performance_summary(self) -> PerformanceSummary:
        """Return the estimated upstream calls and time saved by cache hits."""
        return self._metrics.performance_summary()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def close(self) -> None:
        """Stop periodic sweeps and save the read counters. Safe to call more than once."""
        self._sweeper.stop()
        self._metrics.flush()

    def __enter__(self) -> ResponseCache:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0
