"""Execution bridges for the external transfer tools.

This module provides:
- Bridge: Where rsync and ssh run (host itself or a WSL distribution)
- NativeBridge: rsync/ssh installed on the host
- WslBridge: rsync/ssh inside WSL, reached through wsl.exe
- BridgeCommand / CommandResult: A wrapped command and its outcome
- run_command / stream_command: asyncio subprocess helpers with timeouts
- create_bridge: Pick a bridge by name ("auto", "native", "wsl")

Extra environment variables travel next to the argv and are never
interpolated into it, so secrets stay off process listings.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
import os
import re
import shlex
import shutil
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from remotecache.core.paths import (
    Environment,
    PathTranslator,
    PosixPathTranslator,
    WslPathTranslator,
)

logger = logging.getLogger(__name__)

_LINE_SPLIT = re.compile(r"\r\n|\r|\n")
_PROBE_TIMEOUT = 10.0  # seconds


@dataclass
class BridgeCommand:
    """A command ready to be spawned.

    Attributes:
        argv: Program and arguments.
        env: Variables added to the inherited environment.
    """

    argv: list[str]
    env: dict[str, str] = field(default_factory=dict)

    def display(self) -> str:
        """Get a shell-like rendering for logs (env values are omitted)."""
        return shlex.join(self.argv)


@dataclass
class CommandResult:
    """Exit status and decoded output of a finished command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """Check if the command exited with status 0."""
        return self.returncode == 0


class Bridge:
    """Base class for execution bridges."""

    name = "base"
    translator: PathTranslator = PosixPathTranslator()

    def wrap(self, argv: Sequence[str], env: dict[str, str] | None = None) -> BridgeCommand:
        """Wrap a command so it runs inside the bridge."""
        raise NotImplementedError

    def local_path(self, path: str | os.PathLike[str]) -> str:
        """Translate a host path for use inside the bridge."""
        return self.translator.translate(os.fspath(path), Environment.BRIDGE)

    async def is_available(self) -> bool:
        """Check if the bridge itself can run commands."""
        raise NotImplementedError

    async def which(self, program: str) -> bool:
        """Check if ``program`` can be run inside the bridge."""
        raise NotImplementedError

    async def version(self) -> str | None:
        """Get a version string describing the bridge, if any."""
        return None


class NativeBridge(Bridge):
    """rsync and ssh run directly on the host."""

    name = "native"

    def __init__(self) -> None:
        self.translator = PosixPathTranslator()

    def wrap(self, argv: Sequence[str], env: dict[str, str] | None = None) -> BridgeCommand:
        return BridgeCommand(argv=list(argv), env=dict(env or {}))

    async def is_available(self) -> bool:
        return True

    async def which(self, program: str) -> bool:
        return shutil.which(program) is not None

    async def version(self) -> str | None:
        return f"{sys.platform} (native)"


class WslBridge(Bridge):
    """rsync and ssh run inside the default WSL distribution.

    Commands go through ``wsl.exe bash -lc`` and environment variables are
    forwarded with WSLENV. Killing a timed out command kills wsl.exe; the
    Linux side may linger until its own connection timeouts fire.
    """

    name = "wsl"
    executable = "wsl.exe"

    def __init__(self) -> None:
        self.translator = WslPathTranslator()

    def wrap(self, argv: Sequence[str], env: dict[str, str] | None = None) -> BridgeCommand:
        wrapped_env = dict(env or {})
        if wrapped_env:
            forwarded = [f"{name}/u" for name in sorted(wrapped_env)]
            existing = os.environ.get("WSLENV")
            if existing:
                forwarded.insert(0, existing)
            wrapped_env["WSLENV"] = ":".join(forwarded)
        return BridgeCommand(
            argv=[self.executable, "bash", "-lc", shlex.join(argv)],
            env=wrapped_env,
        )

    async def is_available(self) -> bool:
        if shutil.which(self.executable) is None:
            logger.debug("%s not found on PATH", self.executable)
            return False
        try:
            result = await run_command(
                BridgeCommand([self.executable, "--list", "--quiet"]), _PROBE_TIMEOUT
            )
        except (OSError, TimeoutError) as e:
            logger.debug("WSL probe failed: %s", e)
            return False
        # wsl.exe writes UTF-16: strip the NUL bytes left by the UTF-8 decode
        distributions = [d for d in result.stdout.replace("\x00", "").split() if d]
        if not result.ok or not distributions:
            logger.debug("No WSL distribution installed")
            return False
        return True

    async def which(self, program: str) -> bool:
        try:
            result = await run_command(self.wrap(["which", program]), _PROBE_TIMEOUT)
        except (OSError, TimeoutError):
            return False
        return result.ok

    async def version(self) -> str | None:
        try:
            result = await run_command(
                BridgeCommand([self.executable, "--version"]), _PROBE_TIMEOUT
            )
        except (OSError, TimeoutError):
            return None
        lines = [line.strip() for line in result.stdout.replace("\x00", "").splitlines()]
        lines = [line for line in lines if line]
        return lines[0] if result.ok and lines else None


def create_bridge(name: str = "auto") -> Bridge:
    """Create a bridge by name.

    "auto" selects WSL on Windows and the native bridge elsewhere.

    Raises:
        ValueError: If the name is unknown.
    """
    name = name.lower()
    if name == "auto":
        name = "wsl" if sys.platform == "win32" else "native"
    if name == "native":
        return NativeBridge()
    if name == "wsl":
        return WslBridge()
    raise ValueError(f"Unknown bridge: {name}")


# === Subprocess helpers ===


async def _spawn(command: BridgeCommand) -> asyncio.subprocess.Process:
    env = {**os.environ, **command.env} if command.env else None
    return await asyncio.create_subprocess_exec(
        *command.argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
    )


async def _kill(process: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError):
        process.kill()
    await process.wait()


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


async def run_command(command: BridgeCommand, timeout: float) -> CommandResult:
    """Run a command to completion and capture its output.

    Raises:
        OSError: If the program cannot be started.
        TimeoutError: If it runs longer than ``timeout`` (it is killed).
    """
    process = await _spawn(command)
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except TimeoutError:
        await _kill(process)
        raise
    return CommandResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=_decode(stdout),
        stderr=_decode(stderr),
    )


async def stream_command(
    command: BridgeCommand,
    timeout: float,
    on_line: Callable[[str], None],
) -> CommandResult:
    """Run a command, handing each stdout line to ``on_line`` as it arrives.

    Lines are split on both carriage returns and newlines, so progress
    meters that redraw a single line are reported on every update. An
    exception raised by ``on_line`` kills the process and propagates.

    Raises:
        OSError: If the program cannot be started.
        TimeoutError: If it runs longer than ``timeout`` (it is killed).
    """
    process = await _spawn(command)
    assert process.stdout is not None
    assert process.stderr is not None
    stderr_task = asyncio.create_task(process.stderr.read())
    lines: list[str] = []

    def emit(line: str) -> None:
        if line.strip():
            lines.append(line)
            on_line(line)

    async def pump() -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        pending = ""
        while chunk := await process.stdout.read(4096):
            pending += decoder.decode(chunk)
            *complete, pending = _LINE_SPLIT.split(pending)
            for line in complete:
                emit(line)
        emit(pending + decoder.decode(b"", final=True))
        await process.wait()

    try:
        await asyncio.wait_for(pump(), timeout)
    except BaseException:
        stderr_task.cancel()
        await _kill(process)
        raise
    stderr = await stderr_task
    return CommandResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout="\n".join(lines),
        stderr=_decode(stderr),
    )
