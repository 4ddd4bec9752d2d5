"""Command-line interface for remotecache.

This module provides the main CLI entry point and assembles all commands.

Commands:
- serve: Start the HTTP server
- sync: Mirror remote paths into the cache
- status: Show the status of a cache entry
- scan: List cached files under their remote paths
- unlock: Force removal of a stuck lock
- remove: Delete a cache entry
- cleanup: Remove expired cache entries
"""

from __future__ import annotations

import click

from remotecache import __version__
from remotecache.cli.cache import cleanup, remove, scan, status, sync, unlock
from remotecache.cli.serve import serve


@click.group()
@click.version_option(__version__)
def cli() -> None:
    """remotecache - Local mirror cache of remote directories over SSH."""


# Server command
cli.add_command(serve)

# Cache commands
cli.add_command(sync)
cli.add_command(status)
cli.add_command(scan)
cli.add_command(unlock)
cli.add_command(remove)
cli.add_command(cleanup)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
]
