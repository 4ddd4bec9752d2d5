"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from remotecache.cache.cleanup import CleanupResult
from remotecache.core.config import DEFAULT_TTL_HOURS
from remotecache.core.types import Connection, PathSet, SyncOptions
from remotecache.sync.orchestrator import CacheEntryStatus, ScanResult, SyncResult

# === Request schemas ===


class SSHConnectionModel(BaseModel):
    """SSH connection parameters."""

    host: str = Field(min_length=1, max_length=255)
    port: int = Field(default=22, ge=1, le=65535)
    username: str = Field(min_length=1, max_length=255)
    password: str | None = Field(default=None, repr=False)

    def to_connection(self) -> Connection:
        """Convert to a Connection value object."""
        return Connection(
            host=self.host.strip(),
            port=self.port,
            username=self.username.strip(),
            password=self.password,
        )


class SyncOptionsModel(BaseModel):
    """Sync options (camelCase aliases are accepted)."""

    model_config = ConfigDict(populate_by_name=True)

    recursive: bool = True
    exclude_patterns: list[str] = Field(default_factory=list, alias="excludePatterns")
    exclude_extensions: list[str] = Field(default_factory=list, alias="excludeExtensions")
    exclude_directories: list[str] = Field(default_factory=list, alias="excludeDirectories")

    def to_options(self) -> SyncOptions:
        """Convert to a SyncOptions value object."""
        return SyncOptions(
            recursive=self.recursive,
            exclude_extensions=tuple(self.exclude_extensions),
            exclude_patterns=tuple(self.exclude_patterns),
            exclude_directories=tuple(self.exclude_directories),
        )


class RemoteCacheRequest(BaseModel):
    """Identify a cache entry: connection, remote paths and options.

    A legacy ``remote_path`` is migrated to ``directories`` when no
    directories are given. At least one path is required.
    """

    model_config = ConfigDict(populate_by_name=True)

    ssh_connection: SSHConnectionModel
    directories: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    remote_path: str | None = None
    sync_options: SyncOptionsModel = Field(default_factory=SyncOptionsModel)

    @model_validator(mode="after")
    def _migrate_remote_path(self) -> RemoteCacheRequest:
        self.directories = [d for d in self.directories if d.strip()]
        self.files = [f for f in self.files if f.strip()]
        if self.remote_path and self.remote_path.strip() and not self.directories:
            self.directories = [self.remote_path]
        if not self.directories and not self.files:
            raise ValueError("At least one directory, file or remote_path must be given")
        return self

    def connection(self) -> Connection:
        """Get the connection value object."""
        return self.ssh_connection.to_connection()

    def paths(self) -> PathSet:
        """Get the remote paths."""
        return PathSet.from_request(self.directories, self.files, self.remote_path)

    def options(self) -> SyncOptions:
        """Get the sync options."""
        return self.sync_options.to_options()


class RemoteSyncRequest(RemoteCacheRequest):
    """Request body for a sync."""

    sync_id: str | None = None


class RemoteScanRequest(RemoteCacheRequest):
    """Request body for a scan of cached files."""

    allow_expired: bool = Field(default=False, alias="allowExpired")


class CleanupRequest(BaseModel):
    """Request body for cache cleanup."""

    model_config = ConfigDict(populate_by_name=True)

    max_age_hours: int = Field(default=DEFAULT_TTL_HOURS, ge=1, le=8760, alias="maxAgeHours")


# === Response schemas ===


class ConnectionInfo(BaseModel):
    """Connection without credentials."""

    host: str
    port: int
    username: str


class SyncResponse(BaseModel):
    """Response for a successful sync."""

    success: bool = True
    cache_key: str
    cache_path: str
    sync_id: str
    estimated_files: int
    files_transferred: int
    duration_seconds: float
    connection: ConnectionInfo


class LockResponse(BaseModel):
    """Owner of a held lock."""

    sync_id: str
    acquired_at: str
    pid: int


class CacheStatusResponse(BaseModel):
    """Status of a cache entry."""

    cache_key: str
    cache_path: str
    exists: bool
    last_synced_at: str | None
    is_expired: bool
    size_bytes: int
    file_count: int
    locked: bool
    lock: LockResponse | None = None


class ScannedFileResponse(BaseModel):
    """A cached file under its remote path."""

    path: str
    cache_path: str
    size: int


class ScanResponse(BaseModel):
    """Files available in a cache entry."""

    cache_key: str
    last_synced_at: str | None
    is_expired: bool
    total_matches: int
    total_size: int
    matches: list[ScannedFileResponse]


class RemovedCacheResponse(BaseModel):
    """A cache entry removed by cleanup."""

    cache_key: str
    age_hours: float
    size_bytes: int
    file_count: int


class CleanupErrorResponse(BaseModel):
    """A cache entry cleanup could not remove."""

    entry: str
    error: str


class CleanupResponse(BaseModel):
    """Response for cache cleanup."""

    success: bool = True
    message: str
    removed: list[RemovedCacheResponse]
    skipped_locked: list[str]
    errors: list[CleanupErrorResponse]
    total_size: int
    total_count: int


class UnlockResponse(BaseModel):
    """Response for a forced unlock."""

    success: bool = True
    cache_key: str
    unlocked: bool
    message: str


class RemoveResponse(BaseModel):
    """Response for an explicit cache removal."""

    success: bool = True
    cache_key: str
    removed: bool


class ConnectionTestResponse(BaseModel):
    """Response for an SSH connection test."""

    success: bool
    message: str
    bridge: str | None = None
    rsync_version: str | None = None
    connection: ConnectionInfo


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    cache_root: str
    bridge: str


# === Converters ===


def sync_to_response(result: SyncResult) -> SyncResponse:
    """Convert SyncResult to response model."""
    return SyncResponse(
        cache_key=result.cache_key,
        cache_path=str(result.cache_path),
        sync_id=result.sync_id,
        estimated_files=result.estimated_files,
        files_transferred=result.files_transferred,
        duration_seconds=result.duration_seconds,
        connection=ConnectionInfo(**result.connection),
    )


def status_to_response(entry: CacheEntryStatus) -> CacheStatusResponse:
    """Convert CacheEntryStatus to response model."""
    status = entry.status
    lock = None
    if entry.lock is not None:
        lock = LockResponse(
            sync_id=entry.lock.sync_id,
            acquired_at=datetime.fromtimestamp(entry.lock.acquired_at, tz=UTC).isoformat(),
            pid=entry.lock.pid,
        )
    return CacheStatusResponse(
        cache_key=status.cache_key,
        cache_path=str(status.cache_path),
        exists=status.exists,
        last_synced_at=status.last_synced_at.isoformat() if status.last_synced_at else None,
        is_expired=status.is_expired,
        size_bytes=status.size_bytes,
        file_count=status.file_count,
        locked=entry.locked,
        lock=lock,
    )


def scan_to_response(result: ScanResult) -> ScanResponse:
    """Convert ScanResult to response model."""
    return ScanResponse(
        cache_key=result.cache_key,
        last_synced_at=result.last_synced_at.isoformat() if result.last_synced_at else None,
        is_expired=result.is_expired,
        total_matches=len(result.files),
        total_size=result.total_size,
        matches=[
            ScannedFileResponse(path=f.path, cache_path=str(f.cache_path), size=f.size)
            for f in result.files
        ],
    )


def cleanup_to_response(result: CleanupResult) -> CleanupResponse:
    """Convert CleanupResult to response model."""
    return CleanupResponse(
        message=f"{len(result.removed)} expired caches removed",
        removed=[
            RemovedCacheResponse(
                cache_key=r.cache_key,
                age_hours=r.age_hours,
                size_bytes=r.size_bytes,
                file_count=r.file_count,
            )
            for r in result.removed
        ],
        skipped_locked=result.skipped_locked,
        errors=[CleanupErrorResponse(entry=e.entry, error=e.error) for e in result.errors],
        total_size=result.total_size_reclaimed,
        total_count=result.total_count,
    )
