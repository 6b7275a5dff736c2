"""In-process memory tier of the response cache."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from hubcache.models import CacheEntry


class MemoryTier:
    """Thread-safe map of key to :class:`~hubcache.models.CacheEntry`.

    Every operation holds a single lock, so each call is atomic with
    respect to the others. Contents are lost when the process exits.

    Expired entries are evicted lazily: :meth:`get` drops an expired entry
    the moment it sees one, so this tier never returns stale data. Entries
    that are never read again are removed by :meth:`remove_expired`.

    Args:
        clock: Returns the current time as epoch seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the valid entry for *key*, evicting it if it has expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_valid(self._clock()):
                del self._entries[key]
                return None
            return entry

    def set(self, key: str, entry: CacheEntry) -> None:
        """Store *entry* under *key*, replacing any previous entry."""
        with self._lock:
            self._entries[key] = entry

    def delete(self, key: str) -> bool:
        """Remove *key*. Returns ``True`` if an entry was removed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_matching(self, predicate: Callable[[str], bool]) -> int:
        """Remove every entry whose key satisfies *predicate*.

        Returns:
            The number of entries removed.
        """
        with self._lock:
            doomed = [key for key in self._entries if predicate(key)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def remove_expired(self) -> int:
        """Remove all expired entries and return how many were dropped."""
        with self._lock:
            now = self._clock()
            doomed = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def clear(self) -> int:
        """Remove every entry and return how many there were."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def keys(self) -> list[str]:
        """Return a snapshot of the stored keys, expired or not."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
