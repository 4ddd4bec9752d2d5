"""Serve command: run the HTTP API with uvicorn."""

from __future__ import annotations

from pathlib import Path

import click

from remotecache.cli.options import cache_options, load_config


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", type=int, default=8000, show_default=True, help="Bind port.")
@click.option("--log-path", type=click.Path(dir_okay=False), default=None, help="Log file.")
@cache_options
def serve(
    host: str,
    port: int,
    log_path: str | None,
    cache_root: str | None,
    bridge: str | None,
) -> None:
    """Start the remotecache HTTP server."""
    import uvicorn

    from remotecache.server.app import create_app, setup_logging

    config = load_config(cache_root, bridge)
    if log_path:
        config.log_path = Path(log_path)
    setup_logging(config.log_path, config.log_level)

    click.echo(f"Serving remotecache on http://{host}:{port} (cache: {config.cache_root})")
    uvicorn.run(create_app(config=config), host=host, port=port)
