"""Local storage for mirrored remote content.

This module provides:
- CacheStore: Owns the cache root (one directory per cache key)
- CacheStatus: Existence, staleness and size of one cache entry
- CacheStats: Recursive size and file count

Layout:
    <cache_root>/<cache_key>/                  mirrored content
    <cache_root>/<cache_key>/.last_sync.json   last successful sync
    <cache_root>/<cache_key>.lock              lock sidecar (see locks.py)

Filesystem errors while computing status or stats are logged and degrade
the result; they never propagate to callers.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import shutil
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from remotecache.core.config import DEFAULT_TTL_HOURS

logger = logging.getLogger(__name__)

LAST_SYNC_FILE = ".last_sync.json"


@dataclass
class CacheStats:
    """Size and file count of a cache directory."""

    size_bytes: int = 0
    file_count: int = 0


@dataclass
class CacheStatus:
    """Status of one cache entry.

    Attributes:
        cache_key: Derived cache key.
        cache_path: Directory holding mirrored content.
        exists: Whether the directory exists.
        last_synced_at: Last successful sync (directory mtime as fallback).
        is_expired: Whether last_synced_at is older than the TTL.
        size_bytes: Total size of mirrored files.
        file_count: Number of mirrored files.
    """

    cache_key: str
    cache_path: Path
    exists: bool = False
    last_synced_at: datetime | None = None
    is_expired: bool = False
    size_bytes: int = 0
    file_count: int = 0


class CacheStore:
    """Filesystem store for cache entries.

    No concurrency control of its own: callers coordinate through
    LockManager.
    """

    def __init__(
        self,
        cache_root: Path | str,
        ttl_hours: float = DEFAULT_TTL_HOURS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        Args:
            cache_root: Base directory for all cache entries.
            ttl_hours: Age after which an entry is expired.
            clock: Returns the current time as epoch seconds.
        """
        self._root = Path(cache_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self.ttl_hours = ttl_hours
        self._clock = clock

    @property
    def root(self) -> Path:
        """Return the cache root directory."""
        return self._root

    @property
    def location(self) -> str:
        """Return a human-readable description of the cache root."""
        return f"Local filesystem: {self._root}"

    def now(self) -> datetime:
        """Get the current time from the store clock."""
        return datetime.fromtimestamp(self._clock(), tz=UTC)

    def path_for(self, cache_key: str) -> Path:
        """Get the directory of a cache entry.

        Raises:
            ValueError: If the key is not a single plain path component.
        """
        if not cache_key or cache_key in (".", "..") or "/" in cache_key or "\\" in cache_key:
            raise ValueError(f"Invalid cache key: {cache_key!r}")
        return self._root / cache_key

    def prepare(self, cache_key: str) -> Path:
        """Create the entry directory if needed and return it."""
        path = self.path_for(cache_key)
        if not path.exists():
            path.mkdir(parents=True, exist_ok=True)
            logger.debug("Cache directory created: %s", path)
        return path

    def exists(self, cache_key: str) -> bool:
        """Check if a cache entry directory exists."""
        return self.path_for(cache_key).is_dir()

    def list_keys(self) -> list[str]:
        """List cache keys (directories directly under the root)."""
        try:
            return sorted(entry.name for entry in self._root.iterdir() if entry.is_dir())
        except OSError as e:
            logger.warning("Unable to list cache root %s: %s", self._root, e)
            return []

    # === Last sync stamp ===

    def mark_synced(self, cache_key: str) -> None:
        """Record a successful sync.

        The stamp is written to a temporary file and renamed into place.
        Failure is logged and swallowed: the next status check falls back
        to the directory mtime.
        """
        path = self.path_for(cache_key)
        now = self.now()
        payload = json.dumps({"synced_at": now.isoformat()}, indent=2)
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=".last_sync.", suffix=".tmp", dir=path)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, path / LAST_SYNC_FILE)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.warning("Unable to write last-sync stamp for %s: %s", cache_key, e)
            return

        # Touch the directory so humans browsing the cache see it change
        with contextlib.suppress(OSError):
            os.utime(path, (now.timestamp(), now.timestamp()))
        logger.debug("Last-sync stamp updated for %s", cache_key)

    def read_last_sync(self, cache_key: str) -> datetime | None:
        """Read the last successful sync time, or None if unknown."""
        stamp = self.path_for(cache_key) / LAST_SYNC_FILE
        if not stamp.exists():
            return None
        try:
            data = json.loads(stamp.read_text(encoding="utf-8"))
            synced_at = datetime.fromisoformat(data["synced_at"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Unable to read last-sync stamp for %s: %s", cache_key, e)
            return None
        if synced_at.tzinfo is None:
            synced_at = synced_at.replace(tzinfo=UTC)
        return synced_at

    def last_activity(self, cache_key: str) -> datetime | None:
        """Get the stamp time, falling back to the directory mtime."""
        last_sync = self.read_last_sync(cache_key)
        if last_sync is not None:
            return last_sync
        try:
            mtime = self.path_for(cache_key).stat().st_mtime
        except OSError:
            return None
        return datetime.fromtimestamp(mtime, tz=UTC)

    def age_hours(self, cache_key: str) -> float | None:
        """Get the age of an entry in hours, or None if it doesn't exist."""
        last = self.last_activity(cache_key)
        if last is None:
            return None
        return (self.now() - last).total_seconds() / 3600

    def is_expired(self, last_synced_at: datetime, ttl_hours: float | None = None) -> bool:
        """Check if a sync time is older than the TTL."""
        ttl = self.ttl_hours if ttl_hours is None else ttl_hours
        age = (self.now() - last_synced_at).total_seconds() / 3600
        return age > ttl

    # === Status and stats ===

    def status(self, cache_key: str) -> CacheStatus:
        """Get the status of a cache entry. Never raises for I/O errors."""
        path = self.path_for(cache_key)
        status = CacheStatus(cache_key=cache_key, cache_path=path)
        if not path.is_dir():
            return status

        status.exists = True
        try:
            status.last_synced_at = self.last_activity(cache_key)
            if status.last_synced_at is not None:
                status.is_expired = self.is_expired(status.last_synced_at)
            stats = self.stats(path)
            status.size_bytes = stats.size_bytes
            status.file_count = stats.file_count
        except OSError as e:
            logger.warning("Error reading cache status for %s: %s", cache_key, e)
        return status

    def stats(self, path: Path) -> CacheStats:
        """Sum sizes and count files below ``path``.

        Symlinks are not followed; unreadable entries are skipped.
        """
        stats = CacheStats()
        root = Path(path)
        pending = [root]
        while pending:
            directory = pending.pop()
            try:
                entries = list(os.scandir(directory))
            except OSError as e:
                logger.debug("Skipping unreadable directory %s: %s", directory, e)
                continue
            for entry in entries:
                try:
                    if entry.is_dir(follow_symlinks=False):
                        pending.append(Path(entry.path))
                        continue
                    if directory == root and entry.name == LAST_SYNC_FILE:
                        continue
                    stats.size_bytes += entry.stat(follow_symlinks=False).st_size
                    stats.file_count += 1
                except OSError as e:
                    logger.debug("Skipping unreadable entry %s: %s", entry.path, e)
        return stats

    # === Removal ===

    def remove(self, cache_key: str) -> bool:
        """Delete a cache entry.

        Returns:
            True if a directory was deleted, False if it didn't exist.
        """
        path = self.path_for(cache_key)
        if not path.exists():
            return False
        shutil.rmtree(path)
        logger.info("Cache removed: %s", cache_key)
        return True
