"""Connectivity checks run before any lock is taken.

This module provides:
- ConnectivityPreflight: Bridge, SSH and remote path checks
- EnvironmentInfo: What the bridge check found
- classify_ssh_failure: Map ssh output to a PreflightReason

Every failure is a PreflightError carrying a PreflightReason, so callers
can tell an unreachable host from bad credentials.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from remotecache.core.config import CONNECTION_TIMEOUT, REMOTE_PATH_TIMEOUT
from remotecache.core.errors import PreflightError, PreflightReason
from remotecache.core.types import Connection, PathSet
from remotecache.sync.bridge import Bridge, CommandResult, run_command
from remotecache.sync.ssh import build_remote_command, ssh_environment

logger = logging.getLogger(__name__)

CONNECTION_MARKER = "remotecache-connection-ok"

# sshpass exit status for a rejected password
SSHPASS_WRONG_PASSWORD = 5

_AUTH_MARKERS = (
    "permission denied",
    "authentication failed",
    "too many authentication failures",
    "no supported authentication methods",
)
_UNREACHABLE_MARKERS = (
    "could not resolve hostname",
    "name or service not known",
    "connection refused",
    "no route to host",
    "network is unreachable",
    "host is down",
)
_TIMEOUT_MARKERS = ("timed out", "timeout")

_REQUIRED_PROGRAMS = {"rsync": "rsync", "ssh": "openssh-client"}


@dataclass
class EnvironmentInfo:
    """Result of the bridge check.

    Attributes:
        available: Whether rsync can be run through the bridge.
        bridge: Bridge name ("native" or "wsl").
        bridge_version: Version string of the bridge, if known.
        rsync_version: First line of ``rsync --version``.
    """

    available: bool
    bridge: str
    bridge_version: str | None = None
    rsync_version: str | None = None


def classify_ssh_failure(result: CommandResult) -> PreflightReason:
    """Map a failed ssh invocation to a PreflightReason."""
    stderr = result.stderr.lower()
    if result.returncode == SSHPASS_WRONG_PASSWORD or any(m in stderr for m in _AUTH_MARKERS):
        return PreflightReason.AUTH_FAILED
    if any(m in stderr for m in _UNREACHABLE_MARKERS):
        return PreflightReason.HOST_UNREACHABLE
    if any(m in stderr for m in _TIMEOUT_MARKERS):
        return PreflightReason.TIMEOUT
    return PreflightReason.CONNECTION_FAILED


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""


class ConnectivityPreflight:
    """Checks that a sync can start at all."""

    def __init__(
        self,
        bridge: Bridge,
        connection_timeout: float = CONNECTION_TIMEOUT,
        path_timeout: float = REMOTE_PATH_TIMEOUT,
    ) -> None:
        """Initialize the preflight.

        Args:
            bridge: Bridge used to run ssh and rsync.
            connection_timeout: Ceiling for the connection probe (seconds).
            path_timeout: Ceiling for each remote path check (seconds).
        """
        self.bridge = bridge
        self.connection_timeout = connection_timeout
        self.path_timeout = path_timeout

    async def check_environment(self, require_sshpass: bool = False) -> EnvironmentInfo:
        """Check that the bridge works and has rsync (and sshpass if needed).

        Raises:
            PreflightError: With reason BRIDGE_UNAVAILABLE.
        """
        if not await self.bridge.is_available():
            raise PreflightError(
                f"The {self.bridge.name} bridge is not available. "
                "Install WSL with a Linux distribution (wsl --install) or use the native bridge.",
                PreflightReason.BRIDGE_UNAVAILABLE,
            )
        for program, package in _REQUIRED_PROGRAMS.items():
            if not await self.bridge.which(program):
                raise PreflightError(
                    f"{program} not found in the {self.bridge.name} environment. "
                    f"Install it (e.g. sudo apt install {package}).",
                    PreflightReason.BRIDGE_UNAVAILABLE,
                )
        if require_sshpass and not await self.bridge.which("sshpass"):
            raise PreflightError(
                "sshpass is required for password authentication. "
                "Install it (e.g. sudo apt install sshpass) or use key-based authentication.",
                PreflightReason.BRIDGE_UNAVAILABLE,
            )

        rsync_version = None
        try:
            result = await run_command(
                self.bridge.wrap(["rsync", "--version"]), self.connection_timeout
            )
            if result.ok:
                rsync_version = _first_line(result.stdout) or None
        except (OSError, TimeoutError) as e:
            logger.debug("Unable to read rsync version: %s", e)

        return EnvironmentInfo(
            available=True,
            bridge=self.bridge.name,
            bridge_version=await self.bridge.version(),
            rsync_version=rsync_version,
        )

    async def _run_remote(
        self, connection: Connection, remote_argv: list[str], timeout: float
    ) -> CommandResult:
        command = self.bridge.wrap(
            build_remote_command(connection, remote_argv), ssh_environment(connection)
        )
        try:
            return await run_command(command, timeout)
        except TimeoutError as e:
            raise PreflightError(
                f"Connection to {connection.host}:{connection.port} timed out after {timeout:.0f}s",
                PreflightReason.TIMEOUT,
            ) from e
        except OSError as e:
            raise PreflightError(
                f"Unable to start ssh through the {self.bridge.name} bridge: {e}",
                PreflightReason.BRIDGE_UNAVAILABLE,
            ) from e

    async def test_connection(self, connection: Connection) -> bool:
        """Run a remote echo to check reachability and credentials.

        Raises:
            PreflightError: With reason AUTH_FAILED, HOST_UNREACHABLE,
                TIMEOUT or CONNECTION_FAILED.
        """
        logger.info(
            "Testing SSH connection to %s:%d", connection.target, connection.port
        )
        result = await self._run_remote(
            connection, ["echo", CONNECTION_MARKER], self.connection_timeout
        )
        if result.ok and CONNECTION_MARKER in result.stdout:
            logger.info("SSH connection to %s OK", connection.host)
            return True

        reason = classify_ssh_failure(result)
        detail = _first_line(result.stderr) or f"ssh exited with status {result.returncode}"
        logger.warning(
            "SSH connection to %s failed (%s): %s", connection.host, reason.value, detail
        )
        raise PreflightError(f"SSH connection failed: {detail}", reason)

    async def check_remote_path(self, connection: Connection, path: str) -> bool:
        """Check that a path exists on the remote host.

        Returns:
            False if the path is missing.

        Raises:
            PreflightError: If ssh itself fails.
        """
        result = await self._run_remote(connection, ["test", "-e", path], self.path_timeout)
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        reason = classify_ssh_failure(result)
        detail = _first_line(result.stderr) or f"ssh exited with status {result.returncode}"
        raise PreflightError(f"Unable to check remote path {path}: {detail}", reason)

    async def run(self, connection: Connection, paths: PathSet) -> EnvironmentInfo:
        """Run all checks in sequence.

        Raises:
            PreflightError: On the first failing check; a missing remote
                path gives reason REMOTE_PATH_MISSING.
        """
        info = await self.check_environment(require_sshpass=connection.uses_password)
        await self.test_connection(connection)
        for path in paths.all_paths():
            if not await self.check_remote_path(connection, path):
                raise PreflightError(
                    f"Remote path not found on {connection.host}: {path}",
                    PreflightReason.REMOTE_PATH_MISSING,
                )
        return info
