"""Sync module - Bridges, preflight checks, rsync transfers and orchestration."""

from remotecache.sync.bridge import (
    Bridge,
    BridgeCommand,
    CommandResult,
    NativeBridge,
    WslBridge,
    create_bridge,
    run_command,
    stream_command,
)
from remotecache.sync.orchestrator import (
    CacheEntryStatus,
    RemoteFile,
    ScanResult,
    SyncOrchestrator,
    SyncResult,
    new_sync_id,
)
from remotecache.sync.preflight import ConnectivityPreflight, EnvironmentInfo
from remotecache.sync.ssh import (
    build_remote_command,
    build_ssh_argv,
    remote_target,
    ssh_command_string,
    ssh_environment,
)
from remotecache.sync.transfer import (
    DryRunResult,
    TransferExecutor,
    TransferItem,
    TransferResult,
)

__all__ = [
    # Bridge
    "Bridge",
    "BridgeCommand",
    "CommandResult",
    "NativeBridge",
    "WslBridge",
    "create_bridge",
    "run_command",
    "stream_command",
    # SSH
    "build_remote_command",
    "build_ssh_argv",
    "remote_target",
    "ssh_command_string",
    "ssh_environment",
    # Preflight
    "ConnectivityPreflight",
    "EnvironmentInfo",
    # Transfer
    "DryRunResult",
    "TransferExecutor",
    "TransferItem",
    "TransferResult",
    # Orchestrator
    "CacheEntryStatus",
    "RemoteFile",
    "ScanResult",
    "SyncOrchestrator",
    "SyncResult",
    "new_sync_id",
]
