"""HTTP middleware for the gateway app.

GatewayHTTPMiddleware applies, in order:
1. Request size limit (413 above MAX_REQUEST_BODY_BYTES)
2. Security response headers
3. One access log line per request

CORS is handled separately by fastapi's CORSMiddleware.
"""

from __future__ import annotations

__all__ = ["GatewayHTTPMiddleware"]

import logging
import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from mcp_gateway.constants import APP_NAME, MAX_REQUEST_BODY_BYTES
from mcp_gateway.exceptions import ErrorCode

from .errors import error_response

_logger = logging.getLogger(f"{APP_NAME}.access")


class GatewayHTTPMiddleware(BaseHTTPMiddleware):
    """Size limit, security headers and access logging."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request through the checks, then the app."""
        start_time = time.monotonic()

        content_length = request.headers.get("content-length")
        if content_length:
            try:
                too_large = int(content_length) > MAX_REQUEST_BODY_BYTES
            except ValueError:
                return error_response(400, "Invalid content-length header", ErrorCode.INVALID_REQUEST)
            if too_large:
                return error_response(
                    413,
                    "Request too large",
                    ErrorCode.INVALID_REQUEST,
                    max_bytes=MAX_REQUEST_BODY_BYTES,
                )

        response = await call_next(request)
        self._add_security_headers(response)

        duration_ms = int((time.monotonic() - start_time) * 1000)
        _logger.info(
            {
                "event": "http_request",
                "message": f"{request.method} {request.url.path} {response.status_code} {duration_ms}ms",
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "client": request.client.host if request.client else None,
            }
        )
        return response

    def _add_security_headers(self, response: Response) -> None:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cross-Origin-Resource-Policy"] = "same-origin"
        response.headers.setdefault("Cache-Control", "no-store")
