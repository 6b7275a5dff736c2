"""Freshness windows per resource type."""

from __future__ import annotations

from hubcache.cache.keys import ResourceTypeLike, validate_resource_type
from hubcache.models import CacheConfig, ResourceType


class TTLPolicy:
    """Map a resource type to its TTL in seconds.

    Repository listings default to 15 minutes and issue listings to 5
    minutes; any other type uses ``default_ttl_seconds``. Consulted only at
    write time: the TTL is stored in each entry, so entries stay
    self-describing when the configuration later changes.
    """

    def __init__(self, config: CacheConfig) -> None:
        self._ttls = {
            ResourceType.REPOSITORIES.value: config.repositories_ttl_seconds,
            ResourceType.ISSUES.value: config.issues_ttl_seconds,
        }
        self._default = config.default_ttl_seconds

    def ttl_for(self, resource_type: ResourceTypeLike) -> int:
        """Return the TTL in seconds for *resource_type*."""
        return self._ttls.get(validate_resource_type(resource_type), self._default)

    def as_dict(self) -> dict[str, int]:
        """Return the configured TTLs, including ``default``."""
        return {**self._ttls, "default": self._default}
