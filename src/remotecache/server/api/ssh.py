"""SSH connection test API route."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from remotecache.core.errors import PreflightError
from remotecache.server.api.deps import get_orchestrator, to_http_exception
from remotecache.server.schemas import (
    ConnectionInfo,
    ConnectionTestResponse,
    SSHConnectionModel,
)
from remotecache.sync.orchestrator import SyncOrchestrator

router = APIRouter(prefix="/ssh", tags=["ssh"])


@router.post("/test-connection", response_model=ConnectionTestResponse)
async def test_connection(
    request: SSHConnectionModel,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> ConnectionTestResponse:
    """Check the bridge and the SSH credentials of a connection."""
    connection = request.to_connection()
    preflight = orchestrator.preflight
    try:
        info = await preflight.check_environment(require_sshpass=connection.uses_password)
        await preflight.test_connection(connection)
    except PreflightError as e:
        raise to_http_exception(e) from e
    return ConnectionTestResponse(
        success=True,
        message=f"Connected to {connection.target}",
        bridge=info.bridge,
        rsync_version=info.rsync_version,
        connection=ConnectionInfo(**connection.masked()),
    )
