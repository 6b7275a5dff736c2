"""Two-tier response caching for hubcache.

This package provides :class:`ResponseCache`, the cache that sits between
the application and the GitHub API. Entries live in an in-process memory
tier backed by one JSON file per entry on disk, are keyed per principal
(a digest of the caller's access token), and expire after a per-resource
TTL.

The cache is consumed by :class:`~hubcache.client.GitHubClient` and by the
``hubcache cache`` admin commands, and is controlled by the ``cache``
section of the configuration (:class:`~hubcache.models.CacheConfig`).
"""

from hubcache.cache.cache import ResponseCache
from hubcache.cache.keys import build_key, hash_principal

__all__ = ["ResponseCache", "build_key", "hash_principal"]
