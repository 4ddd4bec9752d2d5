"""Core module - Shared configuration, value types, errors and keys."""

from remotecache.core.config import CacheConfig
from remotecache.core.errors import (
    CacheExpiredError,
    CacheNotFoundError,
    LockContentionError,
    PreflightError,
    PreflightReason,
    RemoteCacheError,
    TransferError,
    TransferTimeoutError,
)
from remotecache.core.filters import ExclusionRules
from remotecache.core.keys import derive_cache_key
from remotecache.core.paths import (
    Environment,
    PathTranslator,
    PosixPathTranslator,
    WslPathTranslator,
)
from remotecache.core.types import Connection, PathSet, SyncOptions, SyncPhase

__all__ = [
    # Config
    "CacheConfig",
    # Errors
    "CacheExpiredError",
    "CacheNotFoundError",
    "LockContentionError",
    "PreflightError",
    "PreflightReason",
    "RemoteCacheError",
    "TransferError",
    "TransferTimeoutError",
    # Filters
    "ExclusionRules",
    # Keys
    "derive_cache_key",
    # Paths
    "Environment",
    "PathTranslator",
    "PosixPathTranslator",
    "WslPathTranslator",
    # Types
    "Connection",
    "PathSet",
    "SyncOptions",
    "SyncPhase",
]
