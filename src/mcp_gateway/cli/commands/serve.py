"""Serve command for mcp-gateway CLI.

Runs the gateway in the foreground until Ctrl+C.
"""

from __future__ import annotations

__all__ = ["serve"]

import asyncio
import sys

import click
from pydantic import ValidationError

from mcp_gateway.config import GatewaySettings
from mcp_gateway.server import run_gateway

from ..styling import style_error, style_label


@click.command()
@click.option("--port", "-p", type=int, default=None, help="HTTP port (env PORT, default 3000)")
@click.option("--host", default=None, help="Interface to bind (env HOST, default 0.0.0.0)")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Backend document (env CONFIG_PATH, default ./config.json)",
)
@click.option("--base-url", default=None, help="Public base URL for endpoint strings (env BASE_URL)")
@click.option("--cors-origin", default=None, help="Allowed CORS origin(s), comma-separated (env CORS_ORIGIN)")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="JSONL log file (env LOG_FILE)")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Console log level (env LOG_LEVEL)",
)
def serve(
    port: int | None,
    host: str | None,
    config_path: str | None,
    base_url: str | None,
    cors_origin: str | None,
    log_file: str | None,
    log_level: str | None,
) -> None:
    """Run the gateway in the foreground.

    Options override environment variables. Every configured backend is
    started on boot; a backend that fails to start is reported and left
    in "error" without stopping the gateway.
    """
    try:
        settings = GatewaySettings.from_env(
            port=port,
            host=host,
            config_path=config_path,
            base_url=base_url,
            cors_origin=cors_origin,
            log_file=log_file,
            log_level=log_level,
        )
    except ValidationError as e:
        click.echo(style_error(f"Invalid settings: {e}"), err=True)
        sys.exit(1)

    click.echo(style_label("Starting gateway"))
    click.echo(f"  Listen: {settings.host}:{settings.port}")
    click.echo(f"  Config: {settings.config_path}")
    click.echo(f"  Health: {settings.public_base_url}/health")
    click.echo()
    click.echo("Press Ctrl+C to stop")
    click.echo()

    try:
        asyncio.run(run_gateway(settings))
    except KeyboardInterrupt:
        click.echo()
        click.echo("Gateway stopped.")
    except RuntimeError as e:
        click.echo(style_error(f"Failed to start: {e}"), err=True)
        sys.exit(1)
