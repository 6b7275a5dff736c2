"""On-disk durable tier of the response cache.

Each entry is one JSON file named ``{resource_type}_{key}.json`` inside the
cache directory::

    {
      "key": "issues-octo-widgets-open-1f2e3d4c5b6a7980",
      "data": [...],
      "timestamp": 1760864400000,
      "ttl_seconds": 300,
      "etag": "W/\\"abc\\""
    }

``timestamp`` is epoch milliseconds; ``etag`` is omitted when the upstream
response had none. Files are written atomically (temp file, fsync, rename)
with ``0o600`` permissions, since cached payloads can include private
repository data.

Reads never raise. A missing, unreadable, malformed, or mismatched file is
a miss. Expired files are reported as misses but left on disk for the
sweeper: deleting on read would put filesystem writes on the read path.
"""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, NamedTuple, Optional

from pydantic import ValidationError

from hubcache.cache.keys import resource_type_of
from hubcache.config import atomic_write
from hubcache.exceptions import CacheDirectoryError
from hubcache.models import CacheEntry

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


class ScanResult(NamedTuple):
    """Counts from a directory scan that deletes files."""

    removed: int = 0
    failed: int = 0


class DurableTier:
    """One-JSON-file-per-key store used as fallback and warm-start source.

    Args:
        directory: Directory holding the entry files. Created on first write.
        ttl_fallback: Maps a resource type to a TTL, used for files written
            without a ``ttl_seconds`` field.
        clock: Returns the current time as epoch seconds.
    """

    def __init__(
        self,
        directory: str | Path,
        ttl_fallback: Callable[[str], int],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._directory = Path(directory)
        self._ttl_fallback = ttl_fallback
        self._clock = clock

    @property
    def directory(self) -> Path:
        """The directory holding the entry files."""
        return self._directory

    def path_for(self, key: str) -> Path:
        """Return the file path that stores *key*."""
        return self._directory / f"{resource_type_of(key)}_{key}{_SUFFIX}"

    # ------------------------------------------------------------------ #
    # Read / write
    # ------------------------------------------------------------------ #

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the valid entry for *key*, or ``None``.

        Never raises; every failure is logged at debug level and reported
        as a miss.
        """
        path = self.path_for(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Unreadable cache file %s: %s", path.name, exc)
            return None

        entry = self._parse(key, text, path.name)
        if entry is None or not entry.is_valid(self._clock()):
            return None
        return entry

    def set(self, key: str, entry: CacheEntry) -> None:
        """Write *entry* to disk, atomically replacing any previous file.

        Raises:
            OSError: If the file cannot be written.
            TypeError: If the payload is not JSON-serialisable.
            ValueError: If the payload contains circular references.
        """
        document: dict[str, Any] = {
            "key": key,
            "data": entry.payload,
            "timestamp": int(round(entry.timestamp * 1000)),
            "ttl_seconds": entry.ttl_seconds,
        }
        if entry.etag is not None:
            document["etag"] = entry.etag
        text = json.dumps(document, ensure_ascii=False)
        atomic_write(self.path_for(key), text, mode=0o600)

    def delete(self, key: str) -> bool:
        """Remove the file for *key*. Returns ``True`` if a file was removed."""
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            return False
        return True

    # ------------------------------------------------------------------ #
    # Scans
    # ------------------------------------------------------------------ #

    def delete_matching(self, predicate: Callable[[str], bool]) -> ScanResult:
        """Remove every file whose derived key satisfies *predicate*.

        Each deletion is independent: a file that has already disappeared
        counts as removed by someone else and is skipped, and any other
        failure is logged and counted without aborting the scan.

        Raises:
            CacheDirectoryError: If the directory exists but cannot be listed.
        """
        removed = failed = 0
        for key, path in self._list():
            if not predicate(key):
                continue
            outcome = self._unlink(path)
            if outcome is True:
                removed += 1
            elif outcome is False:
                failed += 1
        return ScanResult(removed, failed)

    def delete_all(self) -> ScanResult:
        """Remove every entry file. Idempotent on an empty or missing directory."""
        return self.delete_matching(lambda key: True)

    def remove_expired(self) -> ScanResult:
        """Remove expired entries, plus files that can never be served.

        Files that parse but fail validation (corrupt JSON, wrong schema,
        mismatched key, no usable TTL) are removed as well, since :meth:`get`
        would treat them as misses forever. Files that cannot be read at all
        are counted as failures and left in place. A file replaced by a
        concurrent :meth:`set` between reading and deleting is kept.

        Raises:
            CacheDirectoryError: If the directory exists but cannot be listed.
        """
        removed = failed = 0
        now = self._clock()
        for key, path in self._list():
            try:
                seen = _identity(path)
                text = path.read_text(encoding="utf-8")
            except FileNotFoundError:
                continue
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping unreadable cache file %s: %s", path.name, exc)
                failed += 1
                continue

            entry = self._parse(key, text, path.name)
            if entry is not None and entry.is_valid(now):
                continue
            if not _unchanged(path, seen):
                # Replaced by a concurrent write after it was read.
                continue
            outcome = self._unlink(path)
            if outcome is True:
                removed += 1
            elif outcome is False:
                failed += 1
        return ScanResult(removed, failed)

    def keys(self) -> list[str]:
        """Return the keys of all entry files, expired or not.

        Raises:
            CacheDirectoryError: If the directory exists but cannot be listed.
        """
        return [key for key, _ in self._list()]

    def usage(self) -> tuple[int, int]:
        """Return ``(entry_count, total_size_bytes)`` for the entry files.

        Raises:
            CacheDirectoryError: If the directory exists but cannot be listed.
        """
        count = size = 0
        for _, path in self._list():
            try:
                size += path.stat().st_size
            except OSError:
                continue
            count += 1
        return count, size

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _list(self) -> list[tuple[str, Path]]:
        """List ``(key, path)`` for every entry file, skipping temp files."""
        try:
            names = os.listdir(self._directory)
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise CacheDirectoryError(
                f"Cannot list cache directory {self._directory}: {exc}"
            ) from exc

        found: list[tuple[str, Path]] = []
        for name in names:
            # Temp files from in-flight writes start with a dot.
            if name.startswith(".") or not name.endswith(_SUFFIX):
                continue
            _, sep, key = name[: -len(_SUFFIX)].partition("_")
            if not sep or not key:
                continue
            found.append((key, self._directory / name))
        return found

    def _unlink(self, path: Path) -> Optional[bool]:
        """Delete *path*: ``True`` removed, ``None`` already gone, ``False`` failed."""
        try:
            path.unlink()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Failed to remove cache file %s: %s", path.name, exc)
            return False
        return True

    def _parse(self, key: str, text: str, filename: str) -> Optional[CacheEntry]:
        """Validate a file's content against the entry schema."""
        try:
            raw = json.loads(text)
        except ValueError as exc:
            logger.debug("Corrupt cache file %s: %s", filename, exc)
            return None

        if not isinstance(raw, dict) or "data" not in raw or "timestamp" not in raw:
            logger.debug("Cache file %s does not match the entry schema", filename)
            return None
        if raw.get("key", key) != key:
            logger.debug("Cache file %s holds a different key", filename)
            return None

        timestamp = raw["timestamp"]
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            logger.debug("Cache file %s has a non-numeric timestamp", filename)
            return None

        ttl = raw.get("ttl_seconds")
        if ttl is None:
            try:
                ttl = self._ttl_fallback(resource_type_of(key))
            except ValueError as exc:
                logger.debug("Cache file %s has no usable TTL: %s", filename, exc)
                return None

        try:
            return CacheEntry(
                key=key,
                payload=raw["data"],
                timestamp=timestamp / 1000.0,
                ttl_seconds=ttl,
                etag=raw.get("etag"),
            )
        except ValidationError as exc:
            logger.debug("Cache file %s failed validation: %s", filename, exc)
            return None


def _identity(path: Path) -> tuple[int, int]:
    """Return ``(inode, mtime_ns)``; an atomic replace changes the inode."""
    info = path.stat()
    return info.st_ino, info.st_mtime_ns


def _unchanged(path: Path, seen: tuple[int, int]) -> bool:
    try:
        return _identity(path) == seen
    except OSError:
        return False
