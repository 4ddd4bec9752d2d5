"""Test doubles shared by the remotecache tests."""

from __future__ import annotations

import sys
from collections.abc import Sequence

from remotecache.cache.locks import LockManager
from remotecache.core.types import Connection, SyncOptions
from remotecache.sync.bridge import BridgeCommand, NativeBridge
from remotecache.sync.transfer import DryRunResult, TransferItem, TransferResult


class Clock:
    """Settable clock returning epoch seconds."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptBridge(NativeBridge):
    """Bridge that runs a Python script instead of the wrapped command.

    The wrapped argv and environment are recorded so tests can inspect
    what would have been run.
    """

    name = "script"

    def __init__(self, script: str) -> None:
        super().__init__()
        self.script = script
        self.wrapped: list[BridgeCommand] = []

    def wrap(self, argv: Sequence[str], env: dict[str, str] | None = None) -> BridgeCommand:
        self.wrapped.append(BridgeCommand(argv=list(argv), env=dict(env or {})))
        return BridgeCommand(argv=[sys.executable, "-c", self.script], env=dict(env or {}))


class FakeExecutor:
    """Transfer executor writing canned files instead of running rsync."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.bridge = NativeBridge()
        self.files = files if files is not None else {"README.md": "hello"}
        self.dry_runs: list[TransferItem] = []
        self.transfers: list[TransferItem] = []
        self.fail_with: Exception | None = None
        self.fail_dry_run_with: Exception | None = None
        self.lock_seen: list[bool] = []
        self.locks: LockManager | None = None

    async def dry_run(
        self,
        connection: Connection,
        item: TransferItem,
        options: SyncOptions,
        sync_id: str = "-",
    ) -> DryRunResult:
        self.dry_runs.append(item)
        if self.fail_dry_run_with is not None:
            raise self.fail_dry_run_with
        return DryRunResult(estimated_files=len(self.files))

    async def transfer(
        self,
        connection: Connection,
        item: TransferItem,
        options: SyncOptions,
        sync_id: str = "-",
        on_progress: object = None,
    ) -> TransferResult:
        self.transfers.append(item)
        if self.locks is not None:
            self.lock_seen.append(any(self.locks.root.glob("*.lock")))
        if self.fail_with is not None:
            raise self.fail_with
        item.local_dest.mkdir(parents=True, exist_ok=True)
        for name, content in self.files.items():
            target = item.local_dest / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return TransferResult(files_transferred=len(self.files))

