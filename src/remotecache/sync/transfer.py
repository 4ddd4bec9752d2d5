"""rsync command construction and execution.

This module provides:
- TransferExecutor: Dry-run and real transfers through a bridge
- TransferItem: One remote directory or file and its local destination
- DryRunResult / TransferResult: Outcomes
- parse_progress / count_listed_files: rsync output parsing

Commands are argv lists run without a shell. ``--protect-args`` keeps
remote paths with spaces intact, and the password (if any) is handed to
sshpass through the environment.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from remotecache.core.config import DRY_RUN_TIMEOUT, TRANSFER_TIMEOUT
from remotecache.core.errors import TransferError, TransferTimeoutError
from remotecache.core.filters import ExclusionRules
from remotecache.core.types import Connection, SyncOptions
from remotecache.sync.bridge import Bridge, BridgeCommand, run_command, stream_command
from remotecache.sync.ssh import remote_target, ssh_command_string, ssh_environment

logger = logging.getLogger(__name__)

_PROGRESS_LINE = re.compile(r"^\s*[\d,.]+[KMGT]?\s+(\d{1,3})%")
_HEADER_LINES = (
    "receiving incremental file list",
    "receiving file list",
    "sending incremental file list",
    "created directory",
)

BASE_ARGS = ["--protect-args", "-z", "--partial", "--no-perms", "--no-owner", "--no-group"]
DIRECTORY_ARGS = ["-a", "--delete-excluded", "--filter=P /.last_sync.json"]
DRY_RUN_ARGS = ["--dry-run", "--out-format=%n"]
TRANSFER_ARGS = ["--info=progress2", "--out-format=%n"]

ProgressCallback = Callable[[int], None]


@dataclass
class TransferItem:
    """One unit of transfer.

    Attributes:
        remote_path: Absolute remote directory or file.
        local_dest: Local directory receiving the content (for a file,
            the directory the file is placed in).
        is_file: Whether remote_path is a single file.
    """

    remote_path: str
    local_dest: Path
    is_file: bool = False


@dataclass
class DryRunResult:
    """Outcome of a dry run."""

    estimated_files: int


@dataclass
class TransferResult:
    """Outcome of a real transfer."""

    files_transferred: int
    exit_code: int = 0


def parse_progress(line: str) -> int | None:
    """Extract the overall percentage from a ``--info=progress2`` line."""
    match = _PROGRESS_LINE.match(line)
    if not match:
        return None
    return min(int(match.group(1)), 100)


def count_listed_files(lines: Iterable[str]) -> int:
    """Count file names printed by ``--out-format=%n``.

    Directories (trailing slash), deletions, progress lines and rsync
    headers are not counted.
    """
    count = 0
    for raw in lines:
        line = raw.strip()
        if not line or line.endswith("/") or line.startswith("deleting "):
            continue
        if parse_progress(line) is not None:
            continue
        if line.lower().startswith(_HEADER_LINES):
            continue
        count += 1
    return count


class TransferExecutor:
    """Build and run rsync commands through a bridge."""

    def __init__(
        self,
        bridge: Bridge,
        dry_run_timeout: float = DRY_RUN_TIMEOUT,
        transfer_timeout: float = TRANSFER_TIMEOUT,
    ) -> None:
        """Initialize the executor.

        Args:
            bridge: Bridge running rsync.
            dry_run_timeout: Dry-run ceiling in seconds.
            transfer_timeout: Transfer ceiling in seconds.
        """
        self.bridge = bridge
        self.dry_run_timeout = dry_run_timeout
        self.transfer_timeout = transfer_timeout

    def build_command(
        self,
        connection: Connection,
        item: TransferItem,
        options: SyncOptions,
        dry_run: bool = False,
    ) -> BridgeCommand:
        """Build the rsync command for one item."""
        argv = ["rsync", *BASE_ARGS]
        if item.is_file:
            source = remote_target(connection, item.remote_path)
        else:
            argv.extend(DIRECTORY_ARGS)
            if not options.recursive:
                argv.extend(["--no-recursive", "--dirs"])
            source = remote_target(connection, item.remote_path.rstrip("/") + "/")
        # Exclusions apply to single files as well
        argv.extend(ExclusionRules.from_options(options).to_rsync_args())

        argv.extend(DRY_RUN_ARGS if dry_run else TRANSFER_ARGS)
        destination = self.bridge.local_path(item.local_dest).rstrip("/") + "/"
        argv.extend(["-e", ssh_command_string(connection), source, destination])
        return self.bridge.wrap(argv, ssh_environment(connection))

    async def dry_run(
        self,
        connection: Connection,
        item: TransferItem,
        options: SyncOptions,
        sync_id: str = "-",
    ) -> DryRunResult:
        """Estimate how many files a transfer would copy.

        Raises:
            TransferError: If rsync fails.
            TransferTimeoutError: If rsync runs longer than the dry-run timeout.
        """
        item.local_dest.mkdir(parents=True, exist_ok=True)
        command = self.build_command(connection, item, options, dry_run=True)
        logger.debug("[%s] Dry run: %s", sync_id, command.display())
        try:
            result = await run_command(command, self.dry_run_timeout)
        except TimeoutError as e:
            raise TransferTimeoutError(
                f"Dry run of {item.remote_path} timed out after {self.dry_run_timeout:.0f}s",
                self.dry_run_timeout,
            ) from e
        except OSError as e:
            raise TransferError(f"Unable to start rsync: {e}") from e

        if not result.ok:
            raise TransferError(
                f"Dry run of {item.remote_path} failed (rsync exit {result.returncode})",
                stderr=result.stderr.strip(),
                exit_code=result.returncode,
            )
        estimated = count_listed_files(result.stdout.splitlines())
        logger.info("[%s] Dry run of %s: %d files to sync", sync_id, item.remote_path, estimated)
        return DryRunResult(estimated_files=estimated)

    async def transfer(
        self,
        connection: Connection,
        item: TransferItem,
        options: SyncOptions,
        sync_id: str = "-",
        on_progress: ProgressCallback | None = None,
    ) -> TransferResult:
        """Mirror one item into its local destination.

        Progress is logged at every 10% checkpoint, once each.

        Raises:
            TransferError: If rsync fails.
            TransferTimeoutError: If rsync runs longer than the transfer
                timeout (the process is killed).
        """
        item.local_dest.mkdir(parents=True, exist_ok=True)
        command = self.build_command(connection, item, options, dry_run=False)
        logger.debug("[%s] Transfer: %s", sync_id, command.display())
        last_checkpoint = -1
        listed: list[str] = []

        def handle_line(line: str) -> None:
            nonlocal last_checkpoint
            percent = parse_progress(line)
            if percent is None:
                listed.append(line)
                return
            checkpoint = percent // 10 * 10
            if checkpoint > last_checkpoint:
                last_checkpoint = checkpoint
                logger.info("[%s] Sync progress %s: %d%%", sync_id, item.remote_path, checkpoint)
            if on_progress is not None:
                on_progress(percent)

        try:
            result = await stream_command(command, self.transfer_timeout, handle_line)
        except TimeoutError as e:
            logger.error(
                "[%s] Transfer of %s killed after %.0fs",
                sync_id,
                item.remote_path,
                self.transfer_timeout,
            )
            raise TransferTimeoutError(
                f"Transfer of {item.remote_path} timed out after {self.transfer_timeout:.0f}s",
                self.transfer_timeout,
            ) from e
        except OSError as e:
            raise TransferError(f"Unable to start rsync: {e}") from e

        if not result.ok:
            raise TransferError(
                f"Transfer of {item.remote_path} failed (rsync exit {result.returncode})",
                stderr=result.stderr.strip(),
                exit_code=result.returncode,
            )
        return TransferResult(files_transferred=count_listed_files(listed), exit_code=0)
