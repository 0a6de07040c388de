"""HTTP client construction for upstream backends."""

from __future__ import annotations

__all__ = ["USER_AGENT", "create_http_client"]

import httpx

from mcp_gateway import __version__
from mcp_gateway.constants import APP_NAME, UPSTREAM_CONNECT_TIMEOUT_SECONDS

# User-Agent header for upstream connections (informational, not security)
USER_AGENT = f"{APP_NAME}/{__version__}"


def create_http_client(
    timeout: float,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an httpx client for one upstream backend.

    Always includes the mcp-gateway User-Agent header. Static backend
    headers are set on the client so every request carries them.

    Args:
        timeout: Read/write/pool timeout in seconds.
        headers: Static headers for every request.
        transport: Optional transport override (tests use httpx.MockTransport).

    Returns:
        Configured httpx.AsyncClient. Redirects are not followed; the
        upstream's redirect response is returned to the caller unchanged.
    """
    merged_headers = {"User-Agent": USER_AGENT}
    if headers:
        merged_headers.update(headers)
    return httpx.AsyncClient(
        headers=merged_headers,
        timeout=httpx.Timeout(timeout, connect=min(timeout, UPSTREAM_CONNECT_TIMEOUT_SECONDS)),
        follow_redirects=False,
        transport=transport,
    )
