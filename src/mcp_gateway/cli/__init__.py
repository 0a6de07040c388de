"""Command-line interface for mcp-gateway.

Provides commands for running the gateway, validating the backend
document and querying a running gateway.
"""

from .main import cli, main

__all__ = ["cli", "main"]
