"""mcp-gateway: one HTTP entry point in front of many MCP tool servers.

Backends are reached over one of three transports:
- stdio: a spawned local process speaking newline-delimited JSON
- http: a reverse-proxied HTTP server
- sse: a Server-Sent-Events upstream with a POST request endpoint
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
