"""Remote cache API routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from remotecache.core.errors import RemoteCacheError
from remotecache.core.keys import is_valid_cache_key
from remotecache.server.api.deps import get_orchestrator, to_http_exception
from remotecache.server.schemas import (
    CacheStatusResponse,
    CleanupRequest,
    CleanupResponse,
    RemoteCacheRequest,
    RemoteScanRequest,
    RemoteSyncRequest,
    RemoveResponse,
    ScanResponse,
    SyncResponse,
    UnlockResponse,
    cleanup_to_response,
    scan_to_response,
    status_to_response,
    sync_to_response,
)
from remotecache.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/remote", tags=["remote"])


@router.post("/sync", response_model=SyncResponse)
async def sync_remote(
    request: RemoteSyncRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncResponse:
    """Mirror remote directories and files into the local cache."""
    try:
        result = await orchestrator.sync(
            request.connection(),
            request.paths(),
            request.options(),
            sync_id=request.sync_id,
        )
    except RemoteCacheError as e:
        raise to_http_exception(e) from e
    return sync_to_response(result)


@router.post("/cache-status", response_model=CacheStatusResponse)
def cache_status(
    request: RemoteCacheRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> CacheStatusResponse:
    """Get the status of the cache entry of a request."""
    entry = orchestrator.status(request.connection(), request.paths(), request.options())
    logger.debug(
        "Cache status %s: exists=%s, expired=%s, locked=%s",
        entry.status.cache_key,
        entry.status.exists,
        entry.status.is_expired,
        entry.locked,
    )
    return status_to_response(entry)


@router.post("/scan", response_model=ScanResponse)
def scan_remote_cache(
    request: RemoteScanRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> ScanResponse:
    """List cached files under their remote paths."""
    try:
        result = orchestrator.scan(
            request.connection(),
            request.paths(),
            request.options(),
            allow_expired=request.allow_expired,
        )
    except RemoteCacheError as e:
        raise to_http_exception(e) from e
    return scan_to_response(result)


@router.post("/cleanup", response_model=CleanupResponse)
def cleanup_caches(
    request: CleanupRequest | None = None,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> CleanupResponse:
    """Remove cache entries older than max_age_hours."""
    request = request or CleanupRequest()
    result = orchestrator.cleanup(request.max_age_hours)
    return cleanup_to_response(result)


@router.post("/unlock", response_model=UnlockResponse)
def force_unlock(
    request: RemoteCacheRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> UnlockResponse:
    """Delete the lock of a cache entry regardless of its age."""
    cache_key = orchestrator.cache_key(request.connection(), request.paths(), request.options())
    logger.info("Forced unlock requested for cache %s", cache_key)
    unlocked = orchestrator.force_unlock_key(cache_key)
    return UnlockResponse(
        cache_key=cache_key,
        unlocked=unlocked,
        message="Lock removed" if unlocked else "No lock found",
    )


@router.delete("/cache/{cache_key}", response_model=RemoveResponse)
def remove_cache(
    cache_key: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> RemoveResponse:
    """Delete a cache entry."""
    if not is_valid_cache_key(cache_key):
        raise HTTPException(
            status_code=422,
            detail={"error": "invalid_cache_key", "message": f"Invalid cache key: {cache_key}"},
        )
    try:
        removed = orchestrator.remove(cache_key)
    except RemoteCacheError as e:
        raise to_http_exception(e) from e
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "cache_not_found",
                "message": f"No cache for {cache_key}",
                "cache_key": cache_key,
            },
        )
    return RemoveResponse(cache_key=cache_key, removed=True)
