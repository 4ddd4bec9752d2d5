"""Shared pytest fixtures for remotecache tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from remotecache.cache.locks import LockManager
from remotecache.cache.storage import CacheStore
from remotecache.core.types import Connection
from remotecache.sync.bridge import NativeBridge
from remotecache.sync.orchestrator import SyncOrchestrator
from remotecache.sync.preflight import ConnectivityPreflight, EnvironmentInfo
from tests.helpers import Clock, FakeExecutor


@pytest.fixture
def clock() -> Clock:
    """Create a settable clock."""
    return Clock()


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    """Create a cache root directory."""
    root = tmp_path / "cache"
    root.mkdir()
    return root


@pytest.fixture
def store(cache_root: Path, clock: Clock) -> CacheStore:
    """Create a cache store on the test clock."""
    return CacheStore(cache_root, ttl_hours=72, clock=clock)


@pytest.fixture
def locks(cache_root: Path, clock: Clock) -> LockManager:
    """Create a lock manager on the test clock."""
    return LockManager(cache_root, clock=clock)


@pytest.fixture
def connection() -> Connection:
    """Create a key-based connection."""
    return Connection(host="build.example.com", username="deploy", port=22)


@pytest.fixture
def preflight() -> ConnectivityPreflight:
    """Create a preflight whose checks all pass."""
    checks = ConnectivityPreflight(NativeBridge())
    checks.run = AsyncMock(  # type: ignore[method-assign]
        return_value=EnvironmentInfo(available=True, bridge="native")
    )
    return checks


@pytest.fixture
def executor() -> FakeExecutor:
    """Create a fake transfer executor."""
    return FakeExecutor()


@pytest.fixture
def orchestrator(
    store: CacheStore,
    locks: LockManager,
    preflight: ConnectivityPreflight,
    executor: FakeExecutor,
) -> SyncOrchestrator:
    """Create an orchestrator with real storage and locks and fake subprocesses."""
    executor.locks = locks
    return SyncOrchestrator(store, locks, preflight, executor)  # type: ignore[arg-type]
