"""Error taxonomy for remote cache synchronization.

Every failure surfaced to callers derives from RemoteCacheError and
carries a short ``kind`` so the HTTP layer and the CLI can map it to a
distinct response.
"""

from __future__ import annotations

from enum import Enum

from remotecache.core.types import SyncPhase


class RemoteCacheError(Exception):
    """Base exception for remote cache errors."""

    kind = "remote_cache"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.phase: SyncPhase | None = None


class PreflightReason(str, Enum):
    """Why a preflight check failed."""

    BRIDGE_UNAVAILABLE = "bridge_unavailable"
    HOST_UNREACHABLE = "host_unreachable"
    AUTH_FAILED = "auth_failed"
    TIMEOUT = "timeout"
    CONNECTION_FAILED = "connection_failed"
    REMOTE_PATH_MISSING = "remote_path_missing"


class PreflightError(RemoteCacheError):
    """The bridge, the host or a remote path is not usable."""

    kind = "preflight"

    def __init__(self, message: str, reason: PreflightReason) -> None:
        super().__init__(message)
        self.reason = reason


class LockContentionError(RemoteCacheError):
    """A sync is already in progress for this cache key."""

    kind = "sync_in_progress"

    def __init__(self, cache_key: str) -> None:
        super().__init__(f"Sync already in progress for cache {cache_key}")
        self.cache_key = cache_key


class TransferError(RemoteCacheError):
    """The transfer tool exited with a non-zero status."""

    kind = "transfer_failed"

    def __init__(self, message: str, stderr: str = "", exit_code: int | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr
        self.exit_code = exit_code


class TransferTimeoutError(TransferError, TimeoutError):
    """A dry-run or transfer exceeded its time ceiling and was killed."""

    kind = "transfer_timeout"

    def __init__(self, message: str, timeout: float) -> None:
        super().__init__(message)
        self.timeout = timeout


class CacheNotFoundError(RemoteCacheError):
    """No cache exists yet for this key."""

    kind = "cache_not_found"

    def __init__(self, cache_key: str) -> None:
        super().__init__(f"No cache for {cache_key}: sync this remote path first")
        self.cache_key = cache_key


class CacheExpiredError(RemoteCacheError):
    """The cache exists but is older than its TTL."""

    kind = "cache_expired"

    def __init__(self, cache_key: str) -> None:
        super().__init__(f"Cache {cache_key} is expired: a new sync is recommended")
        self.cache_key = cache_key
