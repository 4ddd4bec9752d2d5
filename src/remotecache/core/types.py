"""Shared value types for remotecache.

This module defines the value objects passed between the HTTP layer,
the CLI and the sync components.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

DEFAULT_SSH_PORT = 22


class SyncPhase(str, Enum):
    """Phase of a sync attempt.

    A successful attempt walks IDLE -> PREFLIGHT -> LOCK_WAIT -> DRY_RUN
    -> TRANSFERRING -> DONE. FAILED is reachable from every phase.
    """

    IDLE = "idle"
    PREFLIGHT = "preflight"
    LOCK_WAIT = "lock_wait"
    DRY_RUN = "dry_run"
    TRANSFERRING = "transferring"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Connection:
    """SSH connection parameters.

    The password is never part of repr(), cache keys or responses.
    """

    host: str
    username: str
    port: int = DEFAULT_SSH_PORT
    password: str | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.host.strip():
            raise ValueError("host must not be empty")
        if not self.username.strip():
            raise ValueError("username must not be empty")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"Invalid SSH port: {self.port}")
        # An empty password means key-based authentication
        if self.password is not None and not self.password.strip():
            object.__setattr__(self, "password", None)

    @property
    def uses_password(self) -> bool:
        """Check if password authentication is requested."""
        return self.password is not None

    @property
    def target(self) -> str:
        """Get the user@host login string."""
        return f"{self.username}@{self.host}"

    def masked(self) -> dict[str, str | int]:
        """Get a representation safe for logs and responses."""
        return {"host": self.host, "port": self.port, "username": self.username}


def _clean(values: Iterable[str] | None) -> tuple[str, ...]:
    """Strip, drop empties, de-duplicate and sort."""
    if not values:
        return ()
    return tuple(sorted({v.strip() for v in values if v and v.strip()}))


@dataclass(frozen=True)
class SyncOptions:
    """Options controlling what gets mirrored.

    Collections are stored sorted and de-duplicated, so two logically
    identical option sets compare (and hash) equal.
    """

    recursive: bool = True
    exclude_extensions: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()
    exclude_directories: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        extensions = _clean(ext.lstrip(".") for ext in self.exclude_extensions)
        directories = _clean(d.strip().strip("/") for d in self.exclude_directories)
        object.__setattr__(self, "exclude_extensions", extensions)
        object.__setattr__(self, "exclude_patterns", _clean(self.exclude_patterns))
        object.__setattr__(self, "exclude_directories", directories)


def normalize_remote_path(path: str) -> str:
    """Normalize a remote POSIX path (strip blanks and trailing slashes)."""
    path = path.strip()
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


@dataclass(frozen=True)
class PathSet:
    """Remote directories and files covered by one cache entry."""

    directories: tuple[str, ...] = ()
    files: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        directories = _clean(normalize_remote_path(p) for p in self.directories)
        files = _clean(normalize_remote_path(p) for p in self.files)
        if not directories and not files:
            raise ValueError("At least one directory, file or remote_path must be given")
        object.__setattr__(self, "directories", directories)
        object.__setattr__(self, "files", files)

    @classmethod
    def from_request(
        cls,
        directories: Iterable[str] | None = None,
        files: Iterable[str] | None = None,
        remote_path: str | None = None,
    ) -> PathSet:
        """Build a PathSet, migrating a legacy remote_path to directories."""
        dirs = [d for d in (directories or []) if d and d.strip()]
        if remote_path and remote_path.strip() and not dirs:
            dirs = [remote_path]
        return cls(directories=tuple(dirs), files=tuple(files or ()))

    @classmethod
    def coerce(cls, paths: PathSet | str) -> PathSet:
        """Accept either a PathSet or a legacy single remote path."""
        if isinstance(paths, PathSet):
            return paths
        return cls.from_request(remote_path=paths)

    @property
    def is_single_directory(self) -> bool:
        """Check if this is the legacy layout (one directory, no files)."""
        return len(self.directories) == 1 and not self.files

    def all_paths(self) -> list[str]:
        """Get directories then files."""
        return [*self.directories, *self.files]
