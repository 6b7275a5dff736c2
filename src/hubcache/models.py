"""Canonical Pydantic models shared across all hubcache modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`GitHubConfig`, :class:`OutputConfig`, and
    :class:`GlobalConfig`.

**Cache models** -- produced and consumed by :mod:`hubcache.cache`:
    :class:`ResourceType`, :class:`CacheEntry`, :class:`CacheStats`,
    :class:`MetricsRecord`, :class:`PerformanceSummary`,
    :class:`InvalidationResult`, and :class:`SweepResult`.

All models use Pydantic v2.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# --- Configuration ---


class CacheConfig(BaseModel):
    """Response cache settings stored in :class:`GlobalConfig`.

    TTLs are in seconds and are written into every entry at ``set`` time,
    so changing them only affects entries written afterwards.
    """

    enabled: bool = Field(default=True, description="Enable response caching")
    directory: Optional[str] = Field(
        default=None,
        description="Durable cache directory (default: <XDG cache dir>/hubcache/github)",
    )
    repositories_ttl_seconds: int = Field(
        default=900, ge=1, description="TTL for repository listings"
    )
    issues_ttl_seconds: int = Field(
        default=300, ge=1, description="TTL for issue listings"
    )
    default_ttl_seconds: int = Field(
        default=300, ge=1, description="TTL for any other resource type"
    )
    assumed_upstream_latency_ms: float = Field(
        default=300.0,
        ge=0,
        description="Assumed latency of one GitHub API call, used for time-saved estimates",
    )
    cleanup_interval_seconds: int = Field(
        default=3600, ge=1, description="Interval between periodic sweeps"
    )


class GitHubConfig(BaseModel):
    """Upstream GitHub API settings stored in :class:`GlobalConfig`."""

    api_url: str = Field(default="https://api.github.com", description="API base URL")
    timeout: int = Field(default=30, description="Request timeout in seconds")
    max_retries: int = Field(default=3, description="Max retry attempts")
    per_page: int = Field(default=100, ge=1, le=100, description="Page size for list calls")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/hubcache/config.json``.

    Loaded and saved by :func:`~hubcache.config.load_global_config` and
    :func:`~hubcache.config.save_global_config`. Environment variables
    override the file; see :func:`~hubcache.config.resolve_config`.
    """

    cache: CacheConfig = Field(default_factory=CacheConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Cache ---


class ResourceType(str, enum.Enum):
    """GitHub resource types the application caches.

    The cache accepts any lowercase alphanumeric resource type string; these
    are the ones with dedicated TTLs and known scope parameters.
    """

    REPOSITORIES = "repositories"
    ISSUES = "issues"


SCOPE_PARAMETERS: dict[str, tuple[str, ...]] = {
    ResourceType.REPOSITORIES.value: (),
    ResourceType.ISSUES.value: ("owner", "repo", "state"),
}
"""Scope parameters that fully identify one entry of each known resource type."""


class CacheEntry(BaseModel):
    """A single cached upstream response.

    Entries are immutable in practice: every write builds a new instance and
    replaces the previous one whole.

    Attributes:
        key: The derived cache key (see :mod:`hubcache.cache.keys`).
        payload: The JSON-serialisable response data.
        timestamp: Write time as epoch seconds.
        ttl_seconds: Freshness window captured from the TTL policy at write time.
        etag: The upstream ``ETag`` header, if any.
    """

    key: str
    payload: Any = None
    timestamp: float
    ttl_seconds: int = Field(ge=1)
    etag: Optional[str] = None

    def is_valid(self, now: float) -> bool:
        """Return ``True`` while ``now - timestamp < ttl_seconds``."""
        return now - self.timestamp < self.ttl_seconds


class CacheStats(BaseModel):
    """Point-in-time statistics returned by :meth:`ResponseCache.stats`."""

    enabled: bool
    hits: int = 0
    misses: int = 0
    memory_hits: int = 0
    durable_hits: int = 0
    hit_rate: float = 0.0
    recent_average_latency_ms: float = 0.0
    memory_entry_count: int = 0
    durable_entry_count: int = 0
    approximate_total_size_bytes: int = 0
    last_cleanup: Optional[datetime] = None
    cache_dir: Optional[str] = None
    ttl_settings: dict[str, int] = Field(default_factory=dict)


class MetricsRecord(BaseModel):
    """Read counters persisted as ``stats.json`` in the cache directory.

    Lets counters accumulate across short-lived processes sharing one
    cache directory. Latency samples are not persisted.
    """

    hits: int = Field(default=0, ge=0)
    misses: int = Field(default=0, ge=0)
    memory_hits: int = Field(default=0, ge=0)
    durable_hits: int = Field(default=0, ge=0)
    hit_latency_total_ms: float = Field(default=0.0, ge=0)
    last_cleanup: Optional[datetime] = None


class PerformanceSummary(BaseModel):
    """Derived savings estimate.

    ``estimated_time_saved_ms`` multiplies hits by the configured assumed
    upstream latency minus the observed average hit latency. The upstream
    latency is an assumption, not a measurement, so when the observed hit
    latency exceeds it the product would be negative; the estimate is
    floored at zero instead of reporting time lost.
    """

    hit_rate: float = 0.0
    average_hit_latency_ms: float = 0.0
    estimated_api_calls_saved: int = 0
    estimated_time_saved_ms: float = 0.0
    assumed_upstream_latency_ms: float = 0.0


class InvalidationResult(BaseModel):
    """Outcome of an invalidation call.

    ``applied_scope`` may be wider than ``requested_scope`` when the
    requested granularity could not be resolved; ``note`` then says why.
    Scopes are ``all``, ``principal``, ``type``, or ``entry``.
    """

    requested_scope: str
    applied_scope: str
    principal_hash: Optional[str] = None
    memory_removed: int = 0
    durable_removed: int = 0
    failed: int = 0
    note: Optional[str] = None


class SweepResult(BaseModel):
    """Outcome of one :meth:`CleanupSweeper.sweep` pass."""

    memory_removed: int = 0
    durable_removed: int = 0
    failed: int = 0
    started_at: datetime
    finished_at: datetime
