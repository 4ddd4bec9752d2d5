"""FastAPI dependencies for API routes."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from remotecache.core.errors import (
    CacheExpiredError,
    CacheNotFoundError,
    LockContentionError,
    PreflightError,
    RemoteCacheError,
    TransferError,
    TransferTimeoutError,
)
from remotecache.sync.orchestrator import SyncOrchestrator


def get_orchestrator(request: Request) -> SyncOrchestrator:
    """Get the sync orchestrator from app state."""
    orchestrator: SyncOrchestrator = request.app.state.orchestrator
    return orchestrator


def error_status(error: RemoteCacheError) -> int:
    """Map a remote cache error to an HTTP status code."""
    if isinstance(error, PreflightError):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(error, LockContentionError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, TransferTimeoutError):
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(error, TransferError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    if isinstance(error, CacheNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, CacheExpiredError):
        return status.HTTP_410_GONE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http_exception(error: RemoteCacheError) -> HTTPException:
    """Convert a remote cache error to an HTTPException with a structured detail."""
    detail: dict[str, str | None] = {"error": error.kind, "message": error.message}
    if error.phase is not None:
        detail["phase"] = error.phase.value
    if isinstance(error, PreflightError):
        detail["reason"] = error.reason.value
    if isinstance(error, TransferError) and error.stderr:
        detail["stderr"] = error.stderr
    cache_key = getattr(error, "cache_key", None)
    if cache_key is not None:
        detail["cache_key"] = cache_key
    return HTTPException(status_code=error_status(error), detail=detail)
