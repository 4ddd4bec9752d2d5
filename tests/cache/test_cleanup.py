"""Tests for expired cache cleanup."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from remotecache.cache.cleanup import CacheCleanupScheduler, cleanup_expired_caches
from remotecache.cache.locks import LockManager
from remotecache.cache.storage import CacheStore
from tests.helpers import Clock

HOUR = 3600


def _synced(store: CacheStore, key: str, content: str = "data") -> None:
    path = store.prepare(key)
    (path / "file.txt").write_text(content)
    store.mark_synced(key)


class TestCleanupExpiredCaches:
    """Tests for cleanup_expired_caches."""

    def test_removes_only_old_entries(
        self, store: CacheStore, locks: LockManager, clock: Clock
    ) -> None:
        """Entries older than the maximum age are removed."""
        _synced(store, "old", "12345")
        clock.advance(80 * HOUR)
        _synced(store, "new")

        result = cleanup_expired_caches(store, locks, max_age_hours=72)

        assert [r.cache_key for r in result.removed] == ["old"]
        assert result.total_size_reclaimed == 5
        assert result.total_count == 1
        assert not store.exists("old")
        assert store.exists("new")

    def test_skips_locked_entries(
        self, store: CacheStore, locks: LockManager, clock: Clock
    ) -> None:
        """An entry with a valid lock is never removed."""
        _synced(store, "busy")
        clock.advance(80 * HOUR)
        locks.acquire("busy", "sync-1")

        result = cleanup_expired_caches(store, locks, max_age_hours=72)

        assert result.removed == []
        assert result.skipped_locked == ["busy"]
        assert store.exists("busy")

    def test_stale_lock_does_not_protect(
        self, store: CacheStore, locks: LockManager, clock: Clock
    ) -> None:
        """A lock older than its maximum age does not block cleanup."""
        _synced(store, "stuck")
        locks.acquire("stuck", "sync-1")
        clock.advance(80 * HOUR)

        result = cleanup_expired_caches(store, locks, max_age_hours=72)

        assert [r.cache_key for r in result.removed] == ["stuck"]
        assert not locks.lock_path("stuck").exists()

    def test_errors_recorded(self, store: CacheStore, locks: LockManager, clock: Clock) -> None:
        """A failing removal is recorded and the run continues."""
        _synced(store, "a")
        _synced(store, "b")
        clock.advance(80 * HOUR)

        original_remove = store.remove

        def flaky_remove(key: str) -> bool:
            if key == "a":
                raise OSError("permission denied")
            return original_remove(key)

        with patch.object(store, "remove", side_effect=flaky_remove):
            result = cleanup_expired_caches(store, locks, max_age_hours=72)

        assert [r.cache_key for r in result.removed] == ["b"]
        assert result.errors[0].entry == "a"
        assert "permission denied" in result.errors[0].error


class TestCacheCleanupScheduler:
    """Tests for CacheCleanupScheduler."""

    def test_start_stop(self, store: CacheStore, locks: LockManager) -> None:
        """The scheduler starts once and stops cleanly."""
        scheduler = CacheCleanupScheduler(store, locks, hour=3)
        scheduler.start()
        try:
            assert scheduler.is_running
            scheduler.start()
            assert scheduler.is_running
        finally:
            scheduler.stop()
        assert not scheduler.is_running

    def test_run_now(self, store: CacheStore, locks: LockManager, clock: Clock) -> None:
        """run_now() runs a cleanup immediately."""
        _synced(store, "old")
        clock.advance(100 * HOUR)
        scheduler = CacheCleanupScheduler(store, locks, max_age_hours=72)
        result = scheduler.run_now()
        assert [r.cache_key for r in result.removed] == ["old"]

    def test_job_errors_are_logged(self, store: CacheStore, locks: LockManager) -> None:
        """The scheduled job never raises."""
        scheduler = CacheCleanupScheduler(store, locks)
        with (
            patch(
                "remotecache.cache.cleanup.cleanup_expired_caches",
                side_effect=RuntimeError("boom"),
            ),
            patch("remotecache.cache.cleanup.logger") as mock_logger,
        ):
            scheduler._cleanup_job()
        mock_logger.exception.assert_called_once()

    def test_uses_background_scheduler(self, store: CacheStore, locks: LockManager) -> None:
        """The job is registered with a daily cron trigger."""
        with patch("remotecache.cache.cleanup.BackgroundScheduler") as scheduler_cls:
            instance = MagicMock()
            scheduler_cls.return_value = instance
            scheduler = CacheCleanupScheduler(store, locks, hour=4, minute=30)
            scheduler.start()
        instance.add_job.assert_called_once()
        assert instance.add_job.call_args.kwargs["id"] == "cache_cleanup"
        instance.start.assert_called_once()
