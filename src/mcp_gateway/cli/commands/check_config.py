"""check-config command for mcp-gateway CLI.

Validates the backend document without starting anything. Unlike the
gateway itself, which skips bad entries, this reports every problem and
exits non-zero.
"""

from __future__ import annotations

__all__ = ["check_config"]

import os
import sys

import click
from pydantic import ValidationError

from mcp_gateway.config import StdioTransportConfig, parse_server_entry, read_config_document
from mcp_gateway.constants import DEFAULT_CONFIG_PATH
from mcp_gateway.exceptions import ConfigLoadError

from ..styling import style_dim, style_error, style_label, style_success


@click.command("check-config")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Backend document (env CONFIG_PATH, default ./config.json)",
)
def check_config(config_path: str | None) -> None:
    """Validate the backend configuration document."""
    path = config_path or os.environ.get("CONFIG_PATH") or DEFAULT_CONFIG_PATH

    try:
        servers = read_config_document(path)
    except ConfigLoadError as e:
        click.echo(style_error(e.message), err=True)
        sys.exit(1)

    if not servers:
        click.echo(style_dim(f"No servers configured in {path}."))
        return

    click.echo(style_label(f"Servers in {path}"))
    invalid = 0
    for backend_id, entry in servers.items():
        if not isinstance(entry, dict):
            invalid += 1
            click.echo(f"  {backend_id:20} " + style_error("entry must be an object"))
            continue
        try:
            config = parse_server_entry(entry)
        except ValidationError as e:
            invalid += 1
            click.echo(f"  {backend_id:20} " + style_error(f"{e.error_count()} validation error(s)"))
            for err in e.errors():
                loc = ".".join(str(part) for part in err.get("loc", []))
                click.echo(f"      {loc}: {err.get('msg', '')}")
            continue
        if isinstance(config, StdioTransportConfig):
            target = " ".join([config.command, *config.args])
        else:
            target = config.url
        click.echo(f"  {backend_id:20} {config.type:6} {target}")

    click.echo()
    if invalid:
        click.echo(style_error(f"{invalid} of {len(servers)} server(s) invalid"), err=True)
        sys.exit(1)
    click.echo(style_success(f"{len(servers)} server(s) valid"))
