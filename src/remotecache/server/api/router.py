"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from remotecache.server.api import health, remote, ssh

router = APIRouter(prefix="/api/v1")

# Include all API routers
router.include_router(health.router)
router.include_router(remote.router)
router.include_router(ssh.router)
