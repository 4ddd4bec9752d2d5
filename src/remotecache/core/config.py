"""Configuration for remotecache.

This module defines the configuration shared by the HTTP server and the CLI.
Values come from environment variables with sensible defaults.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_TTL_HOURS = 72
DEFAULT_MAX_LOCK_MINUTES = 30
DEFAULT_CLEANUP_HOUR = 3

DRY_RUN_TIMEOUT = 30.0  # seconds
TRANSFER_TIMEOUT = 30 * 60.0  # seconds
CONNECTION_TIMEOUT = 15.0  # seconds
REMOTE_PATH_TIMEOUT = 10.0  # seconds

BRIDGE_CHOICES = ("auto", "native", "wsl")


def default_cache_root() -> Path:
    """Get the default cache root (under the system temp directory)."""
    return Path(tempfile.gettempdir()) / "remotecache"


@dataclass
class CacheConfig:
    """Configuration for the remote cache subsystem.

    Attributes:
        cache_root: Directory holding one subdirectory per cache key.
        ttl_hours: Age after which a cache is considered stale.
        max_lock_minutes: Age after which a lock is considered abandoned.
        bridge: Execution bridge for rsync/ssh ("auto", "native" or "wsl").
        log_path: Optional log file path.
        log_level: Level for the remotecache logger.
        cleanup_hour: Hour of the daily cleanup job (-1 disables it).
        dry_run_timeout: Dry-run ceiling in seconds.
        transfer_timeout: Transfer ceiling in seconds.
        connection_timeout: SSH probe ceiling in seconds.
    """

    cache_root: Path = field(default_factory=default_cache_root)
    ttl_hours: float = DEFAULT_TTL_HOURS
    max_lock_minutes: float = DEFAULT_MAX_LOCK_MINUTES
    bridge: str = "auto"
    log_path: Path | None = None
    log_level: str = "INFO"
    cleanup_hour: int = DEFAULT_CLEANUP_HOUR
    dry_run_timeout: float = DRY_RUN_TIMEOUT
    transfer_timeout: float = TRANSFER_TIMEOUT
    connection_timeout: float = CONNECTION_TIMEOUT

    def __post_init__(self) -> None:
        """Normalize and validate values."""
        self.cache_root = Path(self.cache_root).expanduser()
        if self.log_path is not None:
            self.log_path = Path(self.log_path).expanduser()
        self.bridge = self.bridge.lower()
        self.log_level = self.log_level.upper()
        if self.bridge not in BRIDGE_CHOICES:
            raise ValueError(
                f"Unknown bridge: {self.bridge} (expected one of {', '.join(BRIDGE_CHOICES)})"
            )
        if self.ttl_hours <= 0:
            raise ValueError("ttl_hours must be positive")
        if self.max_lock_minutes <= 0:
            raise ValueError("max_lock_minutes must be positive")

    @property
    def cleanup_enabled(self) -> bool:
        """Check if the scheduled cleanup job should run."""
        return 0 <= self.cleanup_hour <= 23

    @classmethod
    def from_env(cls) -> CacheConfig:
        """Build configuration from REMOTECACHE_* environment variables."""
        env = os.environ
        log_path = env.get("REMOTECACHE_LOG_PATH")
        return cls(
            cache_root=Path(env.get("REMOTECACHE_ROOT") or default_cache_root()),
            ttl_hours=float(env.get("REMOTECACHE_TTL_HOURS", DEFAULT_TTL_HOURS)),
            max_lock_minutes=float(
                env.get("REMOTECACHE_MAX_LOCK_MINUTES", DEFAULT_MAX_LOCK_MINUTES)
            ),
            bridge=env.get("REMOTECACHE_BRIDGE", "auto"),
            log_path=Path(log_path) if log_path else None,
            log_level=env.get("REMOTECACHE_LOG_LEVEL", "INFO"),
            cleanup_hour=int(env.get("REMOTECACHE_CLEANUP_HOUR", DEFAULT_CLEANUP_HOUR)),
        )
