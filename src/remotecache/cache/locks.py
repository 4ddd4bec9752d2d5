"""Advisory lock files for cache entries.

This module provides:
- LockManager: Acquire, release, inspect and force-unlock per cache key
- LockInfo: Owner metadata stored in a lock sidecar

A lock is a JSON sidecar ``<cache_root>/<cache_key>.lock`` written to a
temporary file and hard-linked into place. The link fails if the lock
exists, so two acquirers on the same filesystem cannot both succeed, and
readers never see a lock without its content. Locks older than
``max_lock_age`` or with malformed content are treated as abandoned and
reclaimed by is_locked().

Known limitation: exclusive links are not reliable on every network
filesystem, so processes on different hosts sharing one cache root are not
guaranteed mutual exclusion. The short max lock age bounds how long a stale
lock from a crashed process can block a key.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import timedelta
from pathlib import Path

from remotecache.core.config import DEFAULT_MAX_LOCK_MINUTES
from remotecache.core.errors import LockContentionError

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"


@dataclass
class LockInfo:
    """Ownership metadata of a lock.

    Attributes:
        cache_key: Locked cache key.
        sync_id: Identifier of the sync attempt holding the lock.
        acquired_at: Acquisition time as epoch seconds.
        pid: Process id of the owner.
    """

    cache_key: str
    sync_id: str
    acquired_at: float
    pid: int

    @classmethod
    def from_json(cls, text: str) -> LockInfo:
        """Parse lock file content.

        Raises:
            ValueError: If the content is not a valid lock record.
        """
        try:
            data = json.loads(text)
            return cls(
                cache_key=str(data["cache_key"]),
                sync_id=str(data["sync_id"]),
                acquired_at=float(data["acquired_at"]),
                pid=int(data["pid"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed lock file: {e}") from e

    def to_json(self) -> str:
        """Serialize for the lock file."""
        return json.dumps(asdict(self), indent=2)

    def age(self, now: float) -> timedelta:
        """Get the lock age relative to ``now``."""
        return timedelta(seconds=now - self.acquired_at)


class LockManager:
    """Per-key advisory locks stored next to the cache directories."""

    def __init__(
        self,
        cache_root: Path | str,
        max_lock_age: timedelta = timedelta(minutes=DEFAULT_MAX_LOCK_MINUTES),
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the lock manager.

        Args:
            cache_root: Directory holding cache entries and their locks.
            max_lock_age: Age after which a lock is reclaimed.
            clock: Returns the current time as epoch seconds.
        """
        self._root = Path(cache_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self.max_lock_age = max_lock_age
        self._clock = clock

    @property
    def root(self) -> Path:
        """Return the directory holding the lock files."""
        return self._root

    def lock_path(self, cache_key: str) -> Path:
        """Get the sidecar path of a cache key's lock."""
        return self._root / f"{cache_key}{LOCK_SUFFIX}"

    def inspect(self, cache_key: str) -> LockInfo | None:
        """Read a lock without reclaiming it.

        Returns:
            LockInfo, or None if there is no lock or it is malformed.
        """
        try:
            return LockInfo.from_json(self.lock_path(cache_key).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None

    def is_locked(self, cache_key: str) -> bool:
        """Check for a valid lock, reclaiming expired or corrupt ones."""
        path = self.lock_path(cache_key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Unreadable lock %s (%s), reclaiming it", path, e)
            self._reclaim(path)
            return False

        try:
            info = LockInfo.from_json(text)
        except ValueError:
            logger.warning("Stale lock recovered: corrupt lock file %s removed", path)
            self._reclaim(path)
            return False

        age = info.age(self._clock())
        if age > self.max_lock_age:
            logger.warning(
                "Stale lock recovered: %s held by sync %s (pid %d) for %.0f minutes, removed",
                path,
                info.sync_id,
                info.pid,
                age.total_seconds() / 60,
            )
            self._reclaim(path)
            return False
        return True

    def acquire(self, cache_key: str, sync_id: str) -> LockInfo:
        """Create the lock sidecar.

        Call is_locked() first so abandoned locks are reclaimed.

        Raises:
            LockContentionError: If a lock file already exists.
        """
        info = LockInfo(
            cache_key=cache_key,
            sync_id=str(sync_id),
            acquired_at=self._clock(),
            pid=os.getpid(),
        )
        path = self.lock_path(cache_key)
        # The body is written first and hard-linked into place, so a lock
        # file is never observed empty
        fd, tmp_name = tempfile.mkstemp(prefix=f".{cache_key}.", suffix=".tmp", dir=self._root)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(info.to_json())
            try:
                os.link(tmp_name, path)
            except FileExistsError as e:
                raise LockContentionError(cache_key) from e
        finally:
            Path(tmp_name).unlink(missing_ok=True)
        logger.debug("Lock acquired: %s (sync %s)", path, sync_id)
        return info

    def release(self, cache_key: str, sync_id: str | None = None) -> None:
        """Delete the lock sidecar if present.

        Args:
            cache_key: Locked cache key.
            sync_id: If given, only a lock owned by this sync is deleted
                (it may have been force-unlocked and re-acquired since).
        """
        path = self.lock_path(cache_key)
        if sync_id is not None:
            owner = self.inspect(cache_key)
            if owner is not None and owner.sync_id != str(sync_id):
                logger.warning(
                    "Lock %s now belongs to sync %s, leaving it in place",
                    path,
                    owner.sync_id,
                )
                return
        try:
            path.unlink()
        except FileNotFoundError:
            return
        logger.debug("Lock released: %s", path)

    def force_unlock(self, cache_key: str) -> bool:
        """Delete the lock regardless of age or owner.

        Returns:
            True if a lock file was deleted.
        """
        path = self.lock_path(cache_key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Lock forcibly removed: %s", path)
        return True

    def _reclaim(self, path: Path) -> None:
        """Remove an abandoned lock file."""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Unable to remove stale lock %s: %s", path, e)
