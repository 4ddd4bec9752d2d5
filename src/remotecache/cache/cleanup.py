"""Cleanup of expired cache entries.

This module provides:
- cleanup_expired_caches: Remove entries older than a maximum age
- CacheCleanupScheduler: Daily automatic cleanup
- CleanupResult: What was removed and what failed

Entries holding a valid lock are never removed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from remotecache.core.config import DEFAULT_TTL_HOURS

if TYPE_CHECKING:
    from remotecache.cache.locks import LockManager
    from remotecache.cache.storage import CacheStore

logger = logging.getLogger(__name__)


@dataclass
class RemovedCache:
    """A cache entry removed by cleanup."""

    cache_key: str
    age_hours: float
    size_bytes: int
    file_count: int


@dataclass
class CleanupError:
    """A cache entry cleanup could not handle."""

    entry: str
    error: str


@dataclass
class CleanupResult:
    """Result of a cleanup run."""

    removed: list[RemovedCache] = field(default_factory=list)
    skipped_locked: list[str] = field(default_factory=list)
    errors: list[CleanupError] = field(default_factory=list)
    total_size_reclaimed: int = 0
    total_count: int = 0


def cleanup_expired_caches(
    store: CacheStore,
    locks: LockManager,
    max_age_hours: float = DEFAULT_TTL_HOURS,
) -> CleanupResult:
    """Remove cache entries whose last sync is older than ``max_age_hours``.

    Age is measured from the last-sync stamp, falling back to the directory
    mtime. Errors on one entry are recorded and do not stop the run.

    Args:
        store: Cache store.
        locks: Lock manager (locked entries are skipped).
        max_age_hours: Maximum age to keep.

    Returns:
        CleanupResult with removed entries, skipped locked keys and errors.
    """
    logger.info("Cleaning up caches older than %sh", max_age_hours)
    result = CleanupResult()

    for cache_key in store.list_keys():
        try:
            age = store.age_hours(cache_key)
            if age is None or age <= max_age_hours:
                continue
            if locks.is_locked(cache_key):
                logger.info("Skipping locked cache %s", cache_key)
                result.skipped_locked.append(cache_key)
                continue

            stats = store.stats(store.path_for(cache_key))
            store.remove(cache_key)
            result.removed.append(
                RemovedCache(
                    cache_key=cache_key,
                    age_hours=round(age, 2),
                    size_bytes=stats.size_bytes,
                    file_count=stats.file_count,
                )
            )
            result.total_size_reclaimed += stats.size_bytes
            result.total_count += stats.file_count
        except (OSError, ValueError) as e:
            logger.warning("Unable to clean up cache %s: %s", cache_key, e)
            result.errors.append(CleanupError(entry=cache_key, error=str(e)))

    if result.removed:
        logger.info(
            "Cache cleanup completed: %d caches removed, %d bytes reclaimed",
            len(result.removed),
            result.total_size_reclaimed,
        )
    else:
        logger.debug("Cache cleanup: no caches older than %sh", max_age_hours)
    return result


class CacheCleanupScheduler:
    """Scheduler running cache cleanup once a day."""

    def __init__(
        self,
        store: CacheStore,
        locks: LockManager,
        max_age_hours: float = DEFAULT_TTL_HOURS,
        hour: int = 3,
        minute: int = 0,
    ) -> None:
        """Initialize the scheduler.

        Args:
            store: Cache store.
            locks: Lock manager.
            max_age_hours: Maximum age to keep.
            hour: Hour to run the cleanup job (0-23).
            minute: Minute to run the cleanup job (0-59).
        """
        self._store = store
        self._locks = locks
        self._max_age_hours = max_age_hours
        self._hour = hour
        self._minute = minute
        self._scheduler: BackgroundScheduler | None = None

    def _cleanup_job(self) -> None:
        """Job function for the scheduled cleanup."""
        logger.info("Starting scheduled cache cleanup (max age: %sh)", self._max_age_hours)
        try:
            cleanup_expired_caches(self._store, self._locks, self._max_age_hours)
        except Exception:
            logger.exception("Error during scheduled cache cleanup")

    def start(self) -> None:
        """Start the scheduler."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self._cleanup_job,
            trigger=CronTrigger(hour=self._hour, minute=self._minute),
            id="cache_cleanup",
            name="Daily cache cleanup",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "Cache cleanup scheduler started (daily at %02d:%02d, max age: %sh)",
            self._hour,
            self._minute,
            self._max_age_hours,
        )

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Cache cleanup scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if the scheduler is running."""
        return self._scheduler is not None

    def run_now(self) -> CleanupResult:
        """Run a cleanup immediately."""
        return cleanup_expired_caches(self._store, self._locks, self._max_age_hours)
