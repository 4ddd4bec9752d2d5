"""Cache module - Storage, locks, cleanup and scanning of mirrored content."""

from remotecache.cache.cleanup import (
    CacheCleanupScheduler,
    CleanupError,
    CleanupResult,
    RemovedCache,
    cleanup_expired_caches,
)
from remotecache.cache.locks import LockInfo, LockManager
from remotecache.cache.scanner import ScannedFile, remap_to_remote, scan_cache
from remotecache.cache.storage import LAST_SYNC_FILE, CacheStats, CacheStatus, CacheStore

__all__ = [
    # Cleanup
    "CacheCleanupScheduler",
    "CleanupError",
    "CleanupResult",
    "RemovedCache",
    "cleanup_expired_caches",
    # Locks
    "LockInfo",
    "LockManager",
    # Scanner
    "ScannedFile",
    "remap_to_remote",
    "scan_cache",
    # Storage
    "LAST_SYNC_FILE",
    "CacheStats",
    "CacheStatus",
    "CacheStore",
]
