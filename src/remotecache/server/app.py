"""FastAPI application for the remotecache server.

This module creates and configures the FastAPI application with:
- REST API for remote sync, cache status, scan, cleanup and unlock
- Daily cleanup of expired caches

Usage:
    uvicorn remotecache.server.app:app_factory --factory --host 127.0.0.1 --port 8000
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from remotecache import __version__
from remotecache.cache.cleanup import CacheCleanupScheduler
from remotecache.core.config import CacheConfig
from remotecache.server.api.router import router as api_router
from remotecache.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_installed_handlers: list[logging.Handler] = []


def setup_logging(log_path: Path | None = None, level: str = "INFO") -> None:
    """Configure logging to output to stdout and optionally to a file.

    Calling it again replaces the handlers installed by a previous call.

    Args:
        log_path: Optional path to the log file.
        level: Level name for the remotecache logger.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    # Root logger for remotecache
    root_logger = logging.getLogger("remotecache")
    root_logger.setLevel(level)
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root_logger.removeHandler(handler)
        for uvicorn_name in UVICORN_LOGGERS:
            logging.getLogger(uvicorn_name).removeHandler(handler)
        handler.close()

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    _installed_handlers.append(stdout_handler)
    root_logger.addHandler(stdout_handler)

    if log_path is None:
        return

    # File handler
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    _installed_handlers.append(file_handler)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in UVICORN_LOGGERS:
        logging.getLogger(uvicorn_name).addHandler(file_handler)


def create_app(
    orchestrator: SyncOrchestrator | None = None,
    config: CacheConfig | None = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        orchestrator: Optional orchestrator (built from config if omitted).
        config: Optional configuration (read from the environment if omitted).

    Returns:
        Configured FastAPI application.
    """
    config = config or CacheConfig.from_env()
    orchestrator = orchestrator or SyncOrchestrator.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info("=" * 60)
        logger.info("remotecache server starting")
        logger.info("=" * 60)
        logger.info("  Cache:   %s", orchestrator.store.location)
        logger.info("  TTL:     %sh", orchestrator.store.ttl_hours)
        logger.info("  Bridge:  %s", orchestrator.executor.bridge.name)
        if config.log_path is not None:
            logger.info("  Logs:    %s", config.log_path.absolute())
        logger.info("=" * 60)

        scheduler: CacheCleanupScheduler | None = None
        if config.cleanup_enabled:
            scheduler = CacheCleanupScheduler(
                orchestrator.store,
                orchestrator.locks,
                max_age_hours=config.ttl_hours,
                hour=config.cleanup_hour,
            )
            scheduler.start()
        app.state.scheduler = scheduler

        yield

        # Shutdown
        if scheduler is not None:
            scheduler.stop()
        logger.info("remotecache server shutting down")

    application = FastAPI(
        title="remotecache",
        description="Local mirror cache of remote directories over SSH",
        version=__version__,
        lifespan=lifespan,
    )

    application.state.orchestrator = orchestrator
    application.state.config = config
    application.state.scheduler = None

    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    config = CacheConfig.from_env()
    setup_logging(config.log_path, config.log_level)
    return create_app(config=config)
