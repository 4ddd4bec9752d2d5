"""SSH command construction.

This module provides:
- build_ssh_argv: ssh invocation (with sshpass when a password is set)
- ssh_command_string: The same invocation as a string for ``rsync -e``
- ssh_environment: Environment carrying the password for ``sshpass -e``
- remote_target: ``user@host:path`` for rsync sources
- build_remote_command: Run a command on the remote host
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence

from remotecache.core.types import Connection

SSH_OPTIONS = [
    "-o", "ConnectTimeout=10",
    "-o", "ServerAliveInterval=30",
    "-o", "StrictHostKeyChecking=no",
    "-o", "UserKnownHostsFile=/dev/null",
    "-o", "LogLevel=ERROR",
]  # fmt: skip

SSHPASS_ENV = "SSHPASS"


def build_ssh_argv(connection: Connection) -> list[str]:
    """Build the ssh argv for a connection (without the target).

    Without a password, BatchMode makes ssh fail instead of prompting.
    With one, ssh is wrapped by ``sshpass -e``, which reads the password
    from the SSHPASS environment variable.
    """
    argv = ["ssh", *SSH_OPTIONS, "-p", str(connection.port)]
    if connection.uses_password:
        return ["sshpass", "-e", *argv]
    return [*argv, "-o", "BatchMode=yes"]


def ssh_command_string(connection: Connection) -> str:
    """Get the ssh invocation as a single string for ``rsync -e``."""
    return shlex.join(build_ssh_argv(connection))


def ssh_environment(connection: Connection) -> dict[str, str]:
    """Get the environment variables the ssh invocation needs."""
    if connection.password is None:
        return {}
    return {SSHPASS_ENV: connection.password}


def remote_target(connection: Connection, path: str) -> str:
    """Get ``user@host:path``."""
    return f"{connection.target}:{path}"


def build_remote_command(connection: Connection, remote_argv: Sequence[str]) -> list[str]:
    """Build an argv running ``remote_argv`` on the remote host.

    The remote command is quoted for the remote shell.
    """
    return [*build_ssh_argv(connection), connection.target, shlex.join(remote_argv)]
