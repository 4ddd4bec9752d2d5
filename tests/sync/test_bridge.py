"""Tests for execution bridges and subprocess helpers."""

from __future__ import annotations

import asyncio
import sys

import pytest

from remotecache.core.paths import WslPathTranslator
from remotecache.sync import bridge as bridge_module
from remotecache.sync.bridge import (
    BridgeCommand,
    NativeBridge,
    WslBridge,
    create_bridge,
    run_command,
    stream_command,
)


def _python(script: str) -> BridgeCommand:
    return BridgeCommand(argv=[sys.executable, "-c", script])


class TestCreateBridge:
    """Tests for create_bridge."""

    def test_named_bridges(self) -> None:
        """Bridges are selected by name."""
        assert isinstance(create_bridge("native"), NativeBridge)
        assert isinstance(create_bridge("WSL"), WslBridge)

    def test_auto(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """auto picks WSL on Windows only."""
        monkeypatch.setattr("remotecache.sync.bridge.sys.platform", "win32")
        assert isinstance(create_bridge("auto"), WslBridge)
        monkeypatch.setattr("remotecache.sync.bridge.sys.platform", "linux")
        assert isinstance(create_bridge("auto"), NativeBridge)

    def test_unknown(self) -> None:
        """Unknown names are rejected."""
        with pytest.raises(ValueError, match="Unknown bridge"):
            create_bridge("docker")


class TestWslBridge:
    """Tests for WslBridge command wrapping."""

    def test_wrap(self) -> None:
        """Commands run through wsl.exe bash -lc with shell quoting."""
        command = WslBridge().wrap(["rsync", "-e", "ssh -p 22", "/mnt/c/my dir/"])
        assert command.argv[:3] == ["wsl.exe", "bash", "-lc"]
        assert command.argv[3] == "rsync -e 'ssh -p 22' '/mnt/c/my dir/'"

    def test_env_forwarded_with_wslenv(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Extra variables are forwarded to WSL through WSLENV."""
        monkeypatch.delenv("WSLENV", raising=False)
        command = WslBridge().wrap(["true"], {"SSHPASS": "s3cret"})
        assert command.env["SSHPASS"] == "s3cret"
        assert command.env["WSLENV"] == "SSHPASS/u"
        assert "s3cret" not in " ".join(command.argv)

    def test_existing_wslenv_kept(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An existing WSLENV is extended, not replaced."""
        monkeypatch.setenv("WSLENV", "PATH/l")
        command = WslBridge().wrap(["true"], {"SSHPASS": "x"})
        assert command.env["WSLENV"] == "PATH/l:SSHPASS/u"

    def test_local_path_translated(self) -> None:
        """Local destinations are translated to WSL paths."""
        bridge = WslBridge()
        assert isinstance(bridge.translator, WslPathTranslator)
        assert bridge.local_path("C:\\cache\\k1") == "/mnt/c/cache/k1"

    @pytest.mark.asyncio
    async def test_unavailable_without_wsl_exe(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without wsl.exe on PATH the bridge is unavailable."""
        monkeypatch.setattr("remotecache.sync.bridge.shutil.which", lambda name: None)
        assert await WslBridge().is_available() is False


class TestNativeBridge:
    """Tests for NativeBridge."""

    def test_wrap_is_identity(self) -> None:
        """Commands are run as given."""
        command = NativeBridge().wrap(["rsync", "--version"], {"A": "1"})
        assert command.argv == ["rsync", "--version"]
        assert command.env == {"A": "1"}

    @pytest.mark.asyncio
    async def test_which(self) -> None:
        """which() finds programs on PATH."""
        bridge = NativeBridge()
        assert await bridge.which("definitely-not-a-real-program-xyz") is False


class TestRunCommand:
    """Tests for run_command."""

    @pytest.mark.asyncio
    async def test_captures_output(self) -> None:
        """stdout, stderr and the exit status are captured."""
        result = await run_command(
            _python("import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"),
            timeout=30,
        )
        assert result.returncode == 3
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"
        assert not result.ok

    @pytest.mark.asyncio
    async def test_env_passed(self) -> None:
        """Extra environment variables reach the process."""
        command = BridgeCommand(
            argv=[sys.executable, "-c", "import os; print(os.environ['RC_TEST'])"],
            env={"RC_TEST": "value"},
        )
        result = await run_command(command, timeout=30)
        assert result.stdout.strip() == "value"

    @pytest.mark.asyncio
    async def test_timeout_kills(self) -> None:
        """A command exceeding its timeout is killed."""
        with pytest.raises(TimeoutError):
            await run_command(_python("import time; time.sleep(30)"), timeout=0.5)

    @pytest.mark.asyncio
    async def test_missing_program(self) -> None:
        """A missing program raises OSError."""
        with pytest.raises(OSError):
            await run_command(BridgeCommand(argv=["definitely-not-a-real-program-xyz"]), 5)


class TestStreamCommand:
    """Tests for stream_command."""

    @pytest.mark.asyncio
    async def test_splits_on_carriage_returns(self) -> None:
        """Carriage-return redraws are reported as separate lines."""
        script = (
            "import sys; "
            "sys.stdout.write('file.txt\\n  10%\\r  50%\\r 100%\\n'); "
            "sys.stdout.flush()"
        )
        lines: list[str] = []
        result = await stream_command(_python(script), 30, lines.append)
        assert [line.strip() for line in lines] == ["file.txt", "10%", "50%", "100%"]
        assert result.ok

    @pytest.mark.asyncio
    async def test_timeout_kills(self) -> None:
        """A streaming command exceeding its timeout is killed."""
        lines: list[str] = []
        with pytest.raises(TimeoutError):
            await stream_command(
                _python("import time; print('started', flush=True); time.sleep(30)"),
                0.5,
                lines.append,
            )

    @pytest.mark.asyncio
    async def test_callback_error_kills(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An exception from the line callback stops the process and propagates."""
        spawned: list[asyncio.subprocess.Process] = []
        real_spawn = bridge_module._spawn

        async def recording_spawn(command: BridgeCommand) -> asyncio.subprocess.Process:
            process = await real_spawn(command)
            spawned.append(process)
            return process

        def fail(line: str) -> None:
            raise RuntimeError(f"cannot handle {line}")

        monkeypatch.setattr(bridge_module, "_spawn", recording_spawn)
        with pytest.raises(RuntimeError, match="cannot handle started"):
            await stream_command(
                _python("import time; print('started', flush=True); time.sleep(30)"),
                30,
                fail,
            )

        assert spawned[0].returncode is not None
