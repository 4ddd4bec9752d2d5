"""Sync orchestration.

This module provides:
- SyncOrchestrator: Drive a sync through preflight, lock, dry run and transfer
- SyncResult: Outcome of a successful sync
- CacheEntryStatus: Cache status plus lock state
- ScanResult / RemoteFile: Cached files mapped back to remote paths

A sync walks PREFLIGHT -> LOCK_WAIT -> DRY_RUN -> TRANSFERRING -> DONE.
Nothing touches the cache before preflight succeeds, and once the lock is
acquired it is released on every exit path.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path, PurePosixPath

from remotecache.cache.cleanup import CleanupResult, cleanup_expired_caches
from remotecache.cache.locks import LockInfo, LockManager
from remotecache.cache.scanner import remap_to_remote, scan_cache
from remotecache.cache.storage import CacheStatus, CacheStore
from remotecache.core.config import CacheConfig
from remotecache.core.errors import (
    CacheExpiredError,
    CacheNotFoundError,
    LockContentionError,
    RemoteCacheError,
)
from remotecache.core.filters import ExclusionRules
from remotecache.core.keys import derive_cache_key
from remotecache.core.types import Connection, PathSet, SyncOptions, SyncPhase
from remotecache.sync.bridge import create_bridge
from remotecache.sync.preflight import ConnectivityPreflight
from remotecache.sync.transfer import ProgressCallback, TransferExecutor, TransferItem

logger = logging.getLogger(__name__)


def new_sync_id() -> str:
    """Generate an identifier for a sync attempt."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


@dataclass
class SyncResult:
    """Outcome of a successful sync.

    Attributes:
        cache_key: Derived cache key.
        cache_path: Local mirror directory.
        sync_id: Identifier of this attempt.
        estimated_files: Files announced by the dry run.
        files_transferred: Files copied by the transfer.
        duration_seconds: Wall time of the whole sync.
        connection: Connection without credentials.
    """

    cache_key: str
    cache_path: Path
    sync_id: str
    estimated_files: int
    files_transferred: int
    duration_seconds: float
    connection: dict[str, str | int] = field(default_factory=dict)


@dataclass
class CacheEntryStatus:
    """Cache status together with the lock state."""

    status: CacheStatus
    locked: bool = False
    lock: LockInfo | None = None


@dataclass
class RemoteFile:
    """A cached file mapped back to its remote location."""

    path: str
    cache_path: Path
    size: int


@dataclass
class ScanResult:
    """Files available in a cache entry."""

    cache_key: str
    cache_path: Path
    last_synced_at: datetime | None
    is_expired: bool
    files: list[RemoteFile] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        """Sum of file sizes in bytes."""
        return sum(f.size for f in self.files)


class SyncOrchestrator:
    """Coordinate the cache components for sync, status and maintenance."""

    def __init__(
        self,
        store: CacheStore,
        locks: LockManager,
        preflight: ConnectivityPreflight,
        executor: TransferExecutor,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Cache store.
            locks: Lock manager sharing the store's root.
            preflight: Connectivity checks.
            executor: rsync executor.
        """
        self.store = store
        self.locks = locks
        self.preflight = preflight
        self.executor = executor

    @classmethod
    def from_config(cls, config: CacheConfig) -> SyncOrchestrator:
        """Wire all components from a configuration."""
        bridge = create_bridge(config.bridge)
        return cls(
            store=CacheStore(config.cache_root, ttl_hours=config.ttl_hours),
            locks=LockManager(
                config.cache_root, max_lock_age=timedelta(minutes=config.max_lock_minutes)
            ),
            preflight=ConnectivityPreflight(bridge, connection_timeout=config.connection_timeout),
            executor=TransferExecutor(
                bridge,
                dry_run_timeout=config.dry_run_timeout,
                transfer_timeout=config.transfer_timeout,
            ),
        )

    def cache_key(
        self,
        connection: Connection,
        paths: PathSet | str,
        options: SyncOptions | None = None,
    ) -> str:
        """Derive the cache key of a request."""
        return derive_cache_key(connection, paths, options or SyncOptions())

    # === Sync ===

    def plan_transfers(self, cache_path: Path, paths: PathSet) -> list[TransferItem]:
        """Lay out where each remote entry is mirrored.

        A single directory without files is mirrored into the cache
        directory itself. Otherwise every entry keeps its remote path below
        the cache directory, and files land in their parent's mirror.
        """
        if paths.is_single_directory:
            return [TransferItem(remote_path=paths.directories[0], local_dest=cache_path)]

        items = [
            TransferItem(remote_path=d, local_dest=_mirror_path(cache_path, d))
            for d in paths.directories
        ]
        for remote_file in paths.files:
            parent = str(PurePosixPath(remote_file).parent)
            items.append(
                TransferItem(
                    remote_path=remote_file,
                    local_dest=_mirror_path(cache_path, parent),
                    is_file=True,
                )
            )
        return items

    async def sync(
        self,
        connection: Connection,
        paths: PathSet | str,
        options: SyncOptions | None = None,
        sync_id: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> SyncResult:
        """Mirror remote paths into their cache entry.

        Raises:
            PreflightError: Bridge, host or a remote path is unusable.
            LockContentionError: Another sync holds the lock for this key.
            TransferError: rsync failed or timed out.

            Every raised RemoteCacheError has ``phase`` set.
        """
        paths = PathSet.coerce(paths)
        options = options or SyncOptions()
        sync_id = sync_id or new_sync_id()
        started = time.monotonic()
        phase = SyncPhase.PREFLIGHT
        logger.info(
            "[%s] Sync requested: %s %s",
            sync_id,
            connection.target,
            ", ".join(paths.all_paths()),
        )

        try:
            await self.preflight.run(connection, paths)

            phase = SyncPhase.LOCK_WAIT
            cache_key = self.cache_key(connection, paths, options)
            cache_path = self.store.prepare(cache_key)
            # No await between the check and the exclusive create
            if self.locks.is_locked(cache_key):
                raise LockContentionError(cache_key)
            self.locks.acquire(cache_key, sync_id)
        except RemoteCacheError as e:
            e.phase = phase
            logger.warning("[%s] Sync failed during %s: %s", sync_id, phase.value, e.message)
            raise

        try:
            phase = SyncPhase.DRY_RUN
            items = self.plan_transfers(cache_path, paths)
            estimated = 0
            for item in items:
                estimate = await self.executor.dry_run(connection, item, options, sync_id)
                estimated += estimate.estimated_files

            phase = SyncPhase.TRANSFERRING
            transferred = 0
            for item in items:
                result = await self.executor.transfer(
                    connection, item, options, sync_id, on_progress
                )
                transferred += result.files_transferred
            self.store.mark_synced(cache_key)
            phase = SyncPhase.DONE
        except RemoteCacheError as e:
            e.phase = phase
            logger.error("[%s] Sync failed during %s: %s", sync_id, phase.value, e.message)
            raise
        finally:
            self.locks.release(cache_key, sync_id)

        duration = time.monotonic() - started
        logger.info(
            "[%s] Sync completed for cache %s: %d files in %.1fs",
            sync_id,
            cache_key,
            transferred,
            duration,
        )
        return SyncResult(
            cache_key=cache_key,
            cache_path=cache_path,
            sync_id=sync_id,
            estimated_files=estimated,
            files_transferred=transferred,
            duration_seconds=round(duration, 3),
            connection=connection.masked(),
        )

    # === Status and maintenance ===

    def status(
        self,
        connection: Connection,
        paths: PathSet | str,
        options: SyncOptions | None = None,
    ) -> CacheEntryStatus:
        """Get the cache status and lock state of a request."""
        return self.status_for_key(self.cache_key(connection, paths, options))

    def status_for_key(self, cache_key: str) -> CacheEntryStatus:
        """Get the cache status and lock state of a cache key."""
        locked = self.locks.is_locked(cache_key)
        return CacheEntryStatus(
            status=self.store.status(cache_key),
            locked=locked,
            lock=self.locks.inspect(cache_key) if locked else None,
        )

    def force_unlock(
        self,
        connection: Connection,
        paths: PathSet | str,
        options: SyncOptions | None = None,
    ) -> bool:
        """Delete the lock of a request regardless of its age."""
        return self.force_unlock_key(self.cache_key(connection, paths, options))

    def force_unlock_key(self, cache_key: str) -> bool:
        """Delete the lock of a cache key regardless of its age."""
        removed = self.locks.force_unlock(cache_key)
        if not removed:
            logger.info("No lock to remove for cache %s", cache_key)
        return removed

    def remove(self, cache_key: str) -> bool:
        """Delete a cache entry.

        Raises:
            LockContentionError: If a sync currently holds its lock.
        """
        if self.locks.is_locked(cache_key):
            raise LockContentionError(cache_key)
        return self.store.remove(cache_key)

    def cleanup(self, max_age_hours: float | None = None) -> CleanupResult:
        """Remove unlocked cache entries older than ``max_age_hours``."""
        max_age = self.store.ttl_hours if max_age_hours is None else max_age_hours
        return cleanup_expired_caches(self.store, self.locks, max_age)

    def scan(
        self,
        connection: Connection,
        paths: PathSet | str,
        options: SyncOptions | None = None,
        allow_expired: bool = False,
    ) -> ScanResult:
        """List cached files under their remote paths.

        Raises:
            CacheNotFoundError: If the entry was never synced.
            CacheExpiredError: If the entry is expired and allow_expired is False.
        """
        paths = PathSet.coerce(paths)
        options = options or SyncOptions()
        cache_key = self.cache_key(connection, paths, options)
        status = self.store.status(cache_key)
        if not status.exists:
            raise CacheNotFoundError(cache_key)
        if status.is_expired and not allow_expired:
            raise CacheExpiredError(cache_key)

        rules = ExclusionRules.from_options(options)
        result = ScanResult(
            cache_key=cache_key,
            cache_path=status.cache_path,
            last_synced_at=status.last_synced_at,
            is_expired=status.is_expired,
        )
        if paths.is_single_directory:
            remote_base = paths.directories[0]
            scanned = scan_cache(status.cache_path, rules, recursive=options.recursive)
        else:
            remote_base = "/"
            scanned = scan_cache(status.cache_path, rules, recursive=True)

        for entry in scanned:
            result.files.append(
                RemoteFile(
                    path=remap_to_remote(entry.relative_path, remote_base),
                    cache_path=entry.path,
                    size=entry.size,
                )
            )
        logger.info("Scan of cache %s: %d files", cache_key, len(result.files))
        return result


def _mirror_path(cache_path: Path, remote_path: str) -> Path:
    """Map an absolute remote path below the cache directory.

    Parent references are dropped so the result never leaves cache_path.
    """
    parts = [p for p in PurePosixPath(remote_path).parts if p not in ("/", ".", "..")]
    return cache_path.joinpath(*parts)
