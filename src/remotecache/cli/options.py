"""Shared CLI options and helpers."""

from __future__ import annotations

import contextlib
import functools
import json
import logging
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import click

from remotecache.core.config import BRIDGE_CHOICES, CacheConfig
from remotecache.core.errors import RemoteCacheError
from remotecache.core.types import Connection, PathSet, SyncOptions
from remotecache.sync.orchestrator import SyncOrchestrator


@contextlib.contextmanager
def cli_logging(level: int = logging.WARNING) -> Iterator[None]:
    """Send remotecache log messages at ``level`` and above to stderr."""
    remotecache_logger = logging.getLogger("remotecache")
    previous_level = remotecache_logger.level
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    handler.setLevel(level)
    remotecache_logger.addHandler(handler)
    remotecache_logger.setLevel(min(level, remotecache_logger.getEffectiveLevel()))
    try:
        yield
    finally:
        remotecache_logger.removeHandler(handler)
        remotecache_logger.setLevel(previous_level)


def load_config(cache_root: str | None = None, bridge: str | None = None) -> CacheConfig:
    """Build configuration from the environment and command line overrides."""
    config = CacheConfig.from_env()
    if cache_root:
        config.cache_root = Path(cache_root).expanduser()
    if bridge:
        config.bridge = bridge
    return config


def build_orchestrator(config: CacheConfig) -> SyncOrchestrator:
    """Wire an orchestrator for a CLI command."""
    return SyncOrchestrator.from_config(config)


def cache_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add --cache-root and --bridge."""
    func = click.option(
        "--bridge",
        type=click.Choice(BRIDGE_CHOICES),
        default=None,
        help="Where rsync/ssh run (default: REMOTECACHE_BRIDGE or auto).",
    )(func)
    func = click.option(
        "--cache-root",
        type=click.Path(file_okay=False),
        default=None,
        help="Cache directory (default: REMOTECACHE_ROOT or <tmp>/remotecache).",
    )(func)
    return func


def request_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add connection, path and exclusion options."""
    decorators = [
        click.option("--host", "-h", required=True, help="Remote host."),
        click.option("--port", "-p", type=int, default=22, show_default=True, help="SSH port."),
        click.option("--user", "-u", "username", required=True, help="SSH username."),
        click.option(
            "--password",
            envvar="REMOTECACHE_SSH_PASSWORD",
            default=None,
            help="SSH password (default: key-based authentication).",
        ),
        click.option(
            "--dir", "-d", "directories", multiple=True, help="Remote directory (repeatable)."
        ),
        click.option("--file", "-f", "files", multiple=True, help="Remote file (repeatable)."),
        click.option("--exclude-ext", multiple=True, help="Extension to exclude (repeatable)."),
        click.option(
            "--exclude-pattern", multiple=True, help="Regex of file names to exclude (repeatable)."
        ),
        click.option("--exclude-dir", multiple=True, help="Directory name to exclude (repeatable)."),
        click.option(
            "--recursive/--no-recursive",
            default=True,
            show_default=True,
            help="Mirror subdirectories.",
        ),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def build_request(
    host: str,
    port: int,
    username: str,
    password: str | None,
    directories: tuple[str, ...],
    files: tuple[str, ...],
    exclude_ext: tuple[str, ...],
    exclude_pattern: tuple[str, ...],
    exclude_dir: tuple[str, ...],
    recursive: bool,
) -> tuple[Connection, PathSet, SyncOptions]:
    """Convert request options into value objects.

    Raises:
        click.BadParameter: If the connection or paths are invalid.
    """
    try:
        connection = Connection(host=host, username=username, port=port, password=password)
        paths = PathSet(directories=directories, files=files)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e
    options = SyncOptions(
        recursive=recursive,
        exclude_extensions=exclude_ext,
        exclude_patterns=exclude_pattern,
        exclude_directories=exclude_dir,
    )
    return connection, paths, options


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Report RemoteCacheError as ``Error: ...`` on stderr and exit 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except RemoteCacheError as e:
            click.echo(f"Error: {e.message}", err=True)
            reason = getattr(e, "reason", None)
            if reason is not None:
                click.echo(f"Reason: {reason.value}", err=True)
            stderr = getattr(e, "stderr", "")
            if stderr:
                click.echo(stderr, err=True)
            sys.exit(1)

    return wrapper


def echo_json(data: Any) -> None:
    """Print data as indented JSON."""
    click.echo(json.dumps(data, indent=2, default=str))


def format_size(size_bytes: int) -> str:
    """Format a byte count for humans."""
    size = float(size_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"
