"""Status command for mcp-gateway CLI.

Queries GET /health on a running gateway.
"""

from __future__ import annotations

__all__ = ["status"]

import json
import sys

import click
import httpx

from mcp_gateway.config import GatewaySettings

from ..styling import style_dim, style_error, style_label, style_status, style_warning

# Time conversion constants
MS_PER_SECOND = 1000
SECONDS_PER_HOUR = 3600
SECONDS_PER_MINUTE = 60

STATUS_REQUEST_TIMEOUT_SECONDS = 5.0


def format_uptime(uptime_ms: int) -> str:
    """Format milliseconds as a short human duration.

    Example:
        >>> format_uptime(3_725_000)
        '1h 2m'
    """
    seconds = uptime_ms // MS_PER_SECOND
    if seconds >= SECONDS_PER_HOUR:
        return f"{seconds // SECONDS_PER_HOUR}h {(seconds % SECONDS_PER_HOUR) // SECONDS_PER_MINUTE}m"
    if seconds >= SECONDS_PER_MINUTE:
        return f"{seconds // SECONDS_PER_MINUTE}m {seconds % SECONDS_PER_MINUTE}s"
    return f"{seconds}s"


@click.command()
@click.option("--url", default=None, help="Gateway base URL (default: BASE_URL or http://localhost:PORT)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status(url: str | None, as_json: bool) -> None:
    """Show backend status of a running gateway."""
    base_url = (url or GatewaySettings.from_env().public_base_url).rstrip("/")

    try:
        response = httpx.get(f"{base_url}/health", timeout=STATUS_REQUEST_TIMEOUT_SECONDS)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as e:
        click.echo(style_error(f"Gateway not reachable at {base_url}: {e}"), err=True)
        sys.exit(1)
    except ValueError:
        click.echo(style_error(f"Unexpected response from {base_url}/health"), err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    servers = data.get("servers", [])
    click.echo(style_label("Gateway") + f" {data.get('status', 'unknown')} at {base_url}")
    if not servers:
        click.echo(style_dim("No backends configured."))
        return

    click.echo()
    for server in servers:
        uptime = format_uptime(int(server.get("uptime", 0)))
        click.echo(
            f"  {server.get('id', ''):20} {server.get('type', ''):6} "
            f"{style_status(server.get('status', '')):18} {uptime}"
        )
    running = sum(1 for s in servers if s.get("status") == "running")
    click.echo()
    click.echo(f"{running}/{len(servers)} backends running")
    failed = [s.get("id", "") for s in servers if s.get("status") == "error"]
    if failed:
        click.echo(style_warning(f"Backends in error: {', '.join(failed)}"))
