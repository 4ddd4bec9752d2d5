"""Tests for lock files."""

from __future__ import annotations

import json
import logging
import os
from datetime import timedelta
from pathlib import Path

import pytest

from remotecache.cache.locks import LockInfo, LockManager
from remotecache.core.errors import LockContentionError
from tests.helpers import Clock

MINUTE = 60


class TestLockManager:
    """Tests for LockManager."""

    def test_acquire_and_release(self, locks: LockManager) -> None:
        """A lock can be taken and released."""
        assert locks.is_locked("k1") is False
        info = locks.acquire("k1", "sync-1")
        assert info.sync_id == "sync-1"
        assert locks.is_locked("k1") is True
        locks.release("k1")
        assert locks.is_locked("k1") is False

    def test_lock_file_next_to_cache_directory(
        self, locks: LockManager, cache_root: Path
    ) -> None:
        """The lock is a sidecar, not a file inside the cache directory."""
        locks.acquire("k1", "sync-1")
        path = cache_root.resolve() / "k1.lock"
        assert locks.lock_path("k1") == path
        data = json.loads(path.read_text())
        assert data["sync_id"] == "sync-1"
        assert data["cache_key"] == "k1"

    def test_second_acquire_fails(self, locks: LockManager) -> None:
        """Only one acquirer wins for a key."""
        locks.acquire("k1", "sync-1")
        with pytest.raises(LockContentionError) as exc_info:
            locks.acquire("k1", "sync-2")
        assert exc_info.value.cache_key == "k1"
        assert locks.inspect("k1").sync_id == "sync-1"  # type: ignore[union-attr]

    def test_keys_are_independent(self, locks: LockManager) -> None:
        """Locks on different keys do not interfere."""
        locks.acquire("k1", "sync-1")
        locks.acquire("k2", "sync-2")
        assert locks.is_locked("k1")
        assert locks.is_locked("k2")

    def test_release_missing_lock(self, locks: LockManager) -> None:
        """Releasing an absent lock is a no-op."""
        locks.release("k1")

    def test_release_leaves_foreign_lock(self, locks: LockManager) -> None:
        """A sync does not release a lock re-acquired by another sync."""
        locks.acquire("k1", "sync-2")
        locks.release("k1", "sync-1")
        assert locks.is_locked("k1")
        locks.release("k1", "sync-2")
        assert not locks.is_locked("k1")

    def test_expired_lock_reclaimed(
        self, locks: LockManager, clock: Clock, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A lock older than 30 minutes is removed with a warning."""
        locks.acquire("k1", "sync-1")
        clock.advance(29 * MINUTE)
        assert locks.is_locked("k1") is True

        clock.advance(11 * MINUTE)
        with caplog.at_level(logging.WARNING, logger="remotecache"):
            assert locks.is_locked("k1") is False

        assert not locks.lock_path("k1").exists()
        assert "Stale lock recovered" in caplog.text

    def test_custom_max_age(self, cache_root: Path, clock: Clock) -> None:
        """The maximum lock age is configurable."""
        locks = LockManager(cache_root, max_lock_age=timedelta(minutes=1), clock=clock)
        locks.acquire("k1", "sync-1")
        clock.advance(2 * MINUTE)
        assert locks.is_locked("k1") is False

    def test_corrupt_lock_reclaimed(
        self, locks: LockManager, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A malformed lock file is treated as abandoned."""
        locks.lock_path("k1").write_text("garbage")
        assert locks.inspect("k1") is None
        with caplog.at_level(logging.WARNING, logger="remotecache"):
            assert locks.is_locked("k1") is False
        assert not locks.lock_path("k1").exists()
        assert "Stale lock recovered" in caplog.text

    def test_force_unlock(self, locks: LockManager) -> None:
        """force_unlock() removes a fresh lock and reports it."""
        locks.acquire("k1", "sync-1")
        assert locks.force_unlock("k1") is True
        assert locks.is_locked("k1") is False
        assert locks.force_unlock("k1") is False

    def test_acquire_after_force_unlock(self, locks: LockManager) -> None:
        """A key can be locked again after a forced unlock."""
        locks.acquire("k1", "sync-1")
        locks.force_unlock("k1")
        info = locks.acquire("k1", "sync-2")
        assert info.sync_id == "sync-2"

    def test_lock_published_with_content(
        self, locks: LockManager, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A reader never finds the lock file without its body."""
        real_link = os.link
        observed: list[bool] = []

        def checking_link(src: str, dst: Path) -> None:
            assert not Path(dst).exists()
            assert LockInfo.from_json(Path(src).read_text()).sync_id == "sync-1"
            real_link(src, dst)
            # What a cleanup thread would see right after publication
            observed.append(locks.is_locked("k1"))

        monkeypatch.setattr(os, "link", checking_link)
        locks.acquire("k1", "sync-1")

        assert observed == [True]
        assert locks.inspect("k1").sync_id == "sync-1"  # type: ignore[union-attr]

    def test_no_temporary_files_left(self, locks: LockManager, cache_root: Path) -> None:
        """Acquisition leaves only the lock file behind, even on contention."""
        locks.acquire("k1", "sync-1")
        with pytest.raises(LockContentionError):
            locks.acquire("k1", "sync-2")
        assert sorted(p.name for p in cache_root.iterdir()) == ["k1.lock"]
