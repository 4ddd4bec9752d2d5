"""Cache commands: sync, status, scan, unlock, remove and cleanup."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from remotecache.cli.options import (
    build_orchestrator,
    build_request,
    cache_options,
    cli_logging,
    echo_json,
    format_size,
    handle_errors,
    load_config,
    request_options,
)
from remotecache.core.keys import is_valid_cache_key


@click.command()
@request_options
@cache_options
@click.option("--sync-id", default=None, help="Identifier used in log lines.")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.option("--no-progress", is_flag=True, help="Disable the progress line.")
@click.option("--verbose", "-v", is_flag=True, help="Show informational log messages.")
@handle_errors
def sync(
    cache_root: str | None,
    bridge: str | None,
    sync_id: str | None,
    as_json: bool,
    no_progress: bool,
    verbose: bool,
    **request: object,
) -> None:
    """Mirror remote directories and files into the local cache.

    Examples:

        # Mirror one directory
        remotecache sync -h build.example.com -u deploy -d /srv/app

        # Mirror a directory and a file, skipping logs
        remotecache sync -h build.example.com -u deploy -d /srv/app -f /etc/app.conf \\
            --exclude-ext log
    """
    connection, paths, options = build_request(**request)  # type: ignore[arg-type]
    orchestrator = build_orchestrator(load_config(cache_root, bridge))

    show_progress = not (no_progress or as_json)
    last_percent = -1

    def on_progress(percent: int) -> None:
        nonlocal last_percent
        if percent != last_percent:
            last_percent = percent
            click.echo(f"\rProgress: {percent:3d}%", nl=False)

    if not as_json:
        click.echo(f"Syncing {', '.join(paths.all_paths())} from {connection.target}...")
    try:
        with cli_logging(logging.INFO if verbose else logging.WARNING):
            result = asyncio.run(
                orchestrator.sync(
                    connection,
                    paths,
                    options,
                    sync_id=sync_id,
                    on_progress=on_progress if show_progress else None,
                )
            )
    finally:
        if last_percent >= 0:
            click.echo()

    if as_json:
        echo_json(
            {
                "cache_key": result.cache_key,
                "cache_path": str(result.cache_path),
                "sync_id": result.sync_id,
                "estimated_files": result.estimated_files,
                "files_transferred": result.files_transferred,
                "duration_seconds": result.duration_seconds,
            }
        )
        return
    click.echo(f"Cache key:   {result.cache_key}")
    click.echo(f"Cache path:  {result.cache_path}")
    click.echo(
        f"Transferred: {result.files_transferred} files "
        f"(estimated {result.estimated_files}) in {result.duration_seconds:.1f}s"
    )


@click.command()
@request_options
@cache_options
@click.option("--json", "as_json", is_flag=True, help="Print the status as JSON.")
def status(cache_root: str | None, bridge: str | None, as_json: bool, **request: object) -> None:
    """Show the status of a cache entry."""
    connection, paths, options = build_request(**request)  # type: ignore[arg-type]
    orchestrator = build_orchestrator(load_config(cache_root, bridge))
    entry = orchestrator.status(connection, paths, options)
    cache = entry.status
    last_sync = cache.last_synced_at.isoformat() if cache.last_synced_at else None

    if as_json:
        echo_json(
            {
                "cache_key": cache.cache_key,
                "cache_path": str(cache.cache_path),
                "exists": cache.exists,
                "last_synced_at": last_sync,
                "is_expired": cache.is_expired,
                "size_bytes": cache.size_bytes,
                "file_count": cache.file_count,
                "locked": entry.locked,
            }
        )
        return

    click.echo(f"Cache key:  {cache.cache_key}")
    click.echo(f"Cache path: {cache.cache_path}")
    if not cache.exists:
        click.echo("Status:     not synced yet")
        return
    click.echo(f"Last sync:  {last_sync or 'unknown'}")
    click.echo(f"Expired:    {'yes' if cache.is_expired else 'no'}")
    click.echo(f"Size:       {format_size(cache.size_bytes)} ({cache.file_count} files)")
    if entry.locked and entry.lock is not None:
        click.echo(f"Locked:     yes (sync {entry.lock.sync_id}, pid {entry.lock.pid})")
    else:
        click.echo(f"Locked:     {'yes' if entry.locked else 'no'}")


@click.command()
@request_options
@cache_options
@click.option("--allow-expired", is_flag=True, help="Scan even if the cache is expired.")
@click.option("--json", "as_json", is_flag=True, help="Print the files as JSON.")
@handle_errors
def scan(
    cache_root: str | None,
    bridge: str | None,
    allow_expired: bool,
    as_json: bool,
    **request: object,
) -> None:
    """List cached files under their remote paths."""
    connection, paths, options = build_request(**request)  # type: ignore[arg-type]
    orchestrator = build_orchestrator(load_config(cache_root, bridge))
    result = orchestrator.scan(connection, paths, options, allow_expired=allow_expired)

    if as_json:
        echo_json(
            {
                "cache_key": result.cache_key,
                "is_expired": result.is_expired,
                "total_matches": len(result.files),
                "total_size": result.total_size,
                "matches": [{"path": f.path, "size": f.size} for f in result.files],
            }
        )
        return
    for remote_file in result.files:
        click.echo(f"{remote_file.path}\t{format_size(remote_file.size)}")
    click.echo(f"{len(result.files)} files, {format_size(result.total_size)}", err=True)


@click.command()
@request_options
@cache_options
def unlock(cache_root: str | None, bridge: str | None, **request: object) -> None:
    """Force removal of the lock of a cache entry.

    Use this when a sync crashed and left its lock behind. A running
    sync for the same entry is not stopped.
    """
    connection, paths, options = build_request(**request)  # type: ignore[arg-type]
    orchestrator = build_orchestrator(load_config(cache_root, bridge))
    cache_key = orchestrator.cache_key(connection, paths, options)
    if orchestrator.force_unlock_key(cache_key):
        click.echo(f"Lock removed for cache {cache_key}.")
    else:
        click.echo(f"No lock found for cache {cache_key}.")


@click.command()
@click.argument("cache_key")
@cache_options
@handle_errors
def remove(cache_key: str, cache_root: str | None, bridge: str | None) -> None:
    """Delete a cache entry by its key."""
    if not is_valid_cache_key(cache_key):
        click.echo(f"Error: Invalid cache key: {cache_key}", err=True)
        sys.exit(1)
    orchestrator = build_orchestrator(load_config(cache_root, bridge))
    if orchestrator.remove(cache_key):
        click.echo(f"Cache {cache_key} removed.")
    else:
        click.echo(f"No cache found for {cache_key}.")


@click.command()
@click.option(
    "--max-age-hours",
    type=click.IntRange(1, 8760),
    default=None,
    help="Remove caches older than N hours (default: REMOTECACHE_TTL_HOURS or 72).",
)
@cache_options
def cleanup(max_age_hours: int | None, cache_root: str | None, bridge: str | None) -> None:
    """Remove expired cache entries.

    Entries locked by a running sync are skipped. This command can be run
    manually or via cron.
    """
    config = load_config(cache_root, bridge)
    orchestrator = build_orchestrator(config)
    max_age = max_age_hours if max_age_hours is not None else config.ttl_hours

    click.echo(f"Cache root: {orchestrator.store.root}")
    click.echo(f"Removing caches older than {max_age} hours...")
    result = orchestrator.cleanup(max_age)

    if result.removed:
        click.echo(
            f"Removed {len(result.removed)} caches, "
            f"{format_size(result.total_size_reclaimed)} reclaimed."
        )
    else:
        click.echo("No caches to remove.")
    for cache_key in result.skipped_locked:
        click.echo(f"Skipped locked cache {cache_key}.")
    for error in result.errors:
        click.echo(f"Error: {error.entry}: {error.error}", err=True)
