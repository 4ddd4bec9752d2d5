"""Health check API route."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from remotecache import __version__
from remotecache.server.api.deps import get_orchestrator
from remotecache.server.schemas import HealthResponse
from remotecache.sync.orchestrator import SyncOrchestrator

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> HealthResponse:
    """Check server health."""
    return HealthResponse(
        status="ok",
        version=__version__,
        cache_root=str(orchestrator.store.root),
        bridge=orchestrator.executor.bridge.name,
    )
