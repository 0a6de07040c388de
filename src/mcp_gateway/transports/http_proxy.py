"""HTTP reverse-proxy transport.

Forwards /mcp/{id} and /mcp/{id}/{path} to the backend's target URL with
the /mcp/{id} prefix stripped and the query string preserved. The Host
header is rewritten to the target, hop-by-hop headers are dropped, and the
backend's static headers override inbound values of the same name.
"""

from __future__ import annotations

__all__ = ["HttpProxyAdapter", "build_target_url", "filter_request_headers"]

import logging
import time
from typing import AsyncIterator, Mapping

import httpx
from fastapi import Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from mcp_gateway.config import HttpTransportConfig
from mcp_gateway.constants import APP_NAME
from mcp_gateway.exceptions import UpstreamTimeoutError, UpstreamUnavailableError

from .client import create_http_client

_logger = logging.getLogger(f"{APP_NAME}.transports.http_proxy")

# Hop-by-hop headers (RFC 7230 §6.1) must not cross connection boundaries.
# Host and Content-Length are recomputed by httpx for the target.
_STRIP_REQUEST_HEADERS = frozenset(
    (
        "host",
        "connection",
        "keep-alive",
        "transfer-encoding",
        "te",
        "trailer",
        "upgrade",
        "proxy-authenticate",
        "proxy-authorization",
        "content-length",
    )
)

# Chunks are relayed decoded, so the upstream length and encoding no longer apply
_STRIP_RESPONSE_HEADERS = frozenset(
    (
        "connection",
        "keep-alive",
        "transfer-encoding",
        "te",
        "trailer",
        "upgrade",
        "proxy-authenticate",
        "content-length",
        "content-encoding",
    )
)


def build_target_url(base_url: str, subpath: str, query: str) -> str:
    """Join the target base URL with a forwarded subpath and query.

    Example:
        >>> build_target_url("http://localhost:8080/api/", "tools/list", "a=1")
        'http://localhost:8080/api/tools/list?a=1'
    """
    url = f"{base_url.rstrip('/')}/{subpath.lstrip('/')}" if subpath else base_url
    if query:
        url = f"{url}?{query}"
    return url


def filter_request_headers(
    inbound: Mapping[str, str],
    static_headers: Mapping[str, str],
) -> dict[str, str]:
    """Headers to send upstream: inbound minus hop-by-hop, plus static.

    Static headers replace inbound headers of the same name regardless of
    case.
    """
    overridden = {name.lower() for name in static_headers}
    headers = {
        name: value
        for name, value in inbound.items()
        if name.lower() not in _STRIP_REQUEST_HEADERS and name.lower() not in overridden
    }
    headers.update(static_headers)
    return headers


class HttpProxyAdapter:
    """Adapter forwarding requests to an HTTP target.

    One pooled httpx client is kept per backend for its lifetime.
    """

    def __init__(
        self,
        backend_id: str,
        config: HttpTransportConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.backend_id = backend_id
        self.config = config
        # Static headers are applied per request so they win over inbound ones
        self._client = create_http_client(config.timeout, transport=transport)

    async def forward(self, request: Request, subpath: str = "") -> StreamingResponse:
        """Forward the request and stream the upstream response back unchanged.

        The body is relayed chunk by chunk as it arrives, so event streams
        and long-lived responses reach the client without buffering. A
        request accepting text/event-stream has no read timeout.

        Raises:
            UpstreamTimeoutError: If the target does not answer in time.
            UpstreamUnavailableError: If the target cannot be reached.
        """
        target_url = build_target_url(self.config.url, subpath, request.url.query)
        headers = filter_request_headers(request.headers, self.config.headers)
        body = await request.body()

        upstream_request = self._client.build_request(
            method=request.method,
            url=target_url,
            content=body or None,
            headers=headers,
            timeout=self._timeout_for(request),
        )

        start_time = time.monotonic()
        try:
            upstream = await self._client.send(upstream_request, stream=True)
        except httpx.TimeoutException as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            _logger.warning(
                {
                    "event": "upstream_timeout",
                    "message": f"Timeout forwarding {request.method} to {self.backend_id}",
                    "backend_id": self.backend_id,
                    "target_url": target_url,
                    "duration_ms": duration_ms,
                }
            )
            raise UpstreamTimeoutError(
                "Gateway Timeout",
                {"backend_id": self.backend_id, "timeout_seconds": self.config.timeout},
            ) from e
        except httpx.TransportError as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            _logger.warning(
                {
                    "event": "upstream_connect_failed",
                    "message": f"Failed to reach {self.backend_id} at {target_url}",
                    "backend_id": self.backend_id,
                    "target_url": target_url,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "duration_ms": duration_ms,
                }
            )
            raise UpstreamUnavailableError(
                "Bad Gateway",
                {"backend_id": self.backend_id, "detail": str(e) or type(e).__name__},
            ) from e

        duration_ms = int((time.monotonic() - start_time) * 1000)
        if upstream.status_code >= 400:
            _logger.warning(
                {
                    "event": "upstream_response_error",
                    "message": f"{self.backend_id} returned {upstream.status_code} for {request.method} {target_url}",
                    "backend_id": self.backend_id,
                    "status_code": upstream.status_code,
                    "duration_ms": duration_ms,
                }
            )

        response_headers = {
            name: value
            for name, value in upstream.headers.items()
            if name.lower() not in _STRIP_RESPONSE_HEADERS
        }
        return StreamingResponse(
            self._relay_body(upstream),
            status_code=upstream.status_code,
            headers=response_headers,
            background=BackgroundTask(upstream.aclose),
        )

    def _timeout_for(self, request: Request) -> httpx.Timeout:
        default = self._client.timeout
        if "text/event-stream" in request.headers.get("accept", ""):
            return httpx.Timeout(self.config.timeout, connect=default.connect, read=None)
        return default

    async def _relay_body(self, upstream: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in upstream.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            # Headers are already sent; the client sees a truncated body
            _logger.warning(
                {
                    "event": "upstream_stream_interrupted",
                    "message": f"Response stream from {self.backend_id} ended early",
                    "backend_id": self.backend_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                }
            )
        finally:
            await upstream.aclose()

    async def aclose(self) -> None:
        """Close the pooled client."""
        await self._client.aclose()
