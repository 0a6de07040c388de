"""CLI output styling helpers.

- Cyan bold for labels
- Green for success (with checkmark)
- Red for errors (with cross)
- Yellow for warnings
- Dim for empty state
"""

from __future__ import annotations

__all__ = [
    "style_dim",
    "style_error",
    "style_label",
    "style_status",
    "style_success",
    "style_warning",
]

import click

_STATUS_COLORS = {
    "running": "green",
    "starting": "cyan",
    "stopping": "yellow",
    "stopped": "yellow",
    "error": "red",
}


def style_label(label: str) -> str:
    """Style a label, adding a colon.

    Example:
        >>> click.echo(style_label("Backends") + " 3")
        Backends: 3
    """
    return click.style(f"{label}:", fg="cyan", bold=True)


def style_success(message: str) -> str:
    """Style a success message with checkmark."""
    return click.style(f"✓ {message}", fg="green")


def style_error(message: str) -> str:
    """Style an error message with cross mark.

    Example:
        >>> click.echo(style_error("Config file not found"), err=True)
        ✗ Config file not found
    """
    return click.style(f"✗ {message}", fg="red")


def style_warning(message: str) -> str:
    """Style a warning message."""
    return click.style(f"Warning: {message}", fg="yellow", bold=True)


def style_dim(message: str) -> str:
    """Style a neutral/empty state message as dim."""
    return click.style(message, dim=True)


def style_status(status: str) -> str:
    """Color a backend status by its meaning."""
    return click.style(status, fg=_STATUS_COLORS.get(status, "white"))
