"""Main CLI entry point for mcp-gateway.

Defines the CLI group and registers all subcommands.

Commands:
    serve         - Run the gateway in the foreground
    check-config  - Validate the backend configuration document
    status        - Show backend status of a running gateway

Subcommand help:
    mcp-gateway COMMAND -h     Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import sys

import click

from mcp_gateway import __version__
from mcp_gateway.config import load_environment

from .commands.check_config import check_config
from .commands.serve import serve
from .commands.status import status


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Quick Start:
  mcp-gateway check-config --config ./config.json
  mcp-gateway serve --config ./config.json --port 3000
  mcp-gateway status

Environment (also read from .env):
  PORT, HOST, BASE_URL, CONFIG_PATH, CORS_ORIGIN, LOG_FILE, LOG_LEVEL
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Environment file to load (default: ./.env if present)",
)
@click.pass_context
def cli(ctx: click.Context, version: bool, env_file: str | None) -> None:
    """mcp-gateway: one HTTP entry point for many MCP servers."""
    load_environment(env_file)
    if version:
        click.echo(f"mcp-gateway {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(check_config)
cli.add_command(serve)
cli.add_command(status)


def main() -> None:
    """CLI entry point."""
    cli()
