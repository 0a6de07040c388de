"""Error rendering for the gateway HTTP surface.

Every error body has the same shape:
    {"error": "<message>", "code": "<ERROR_CODE>", ...details}

Unknown routes (and known paths hit with an unsupported method) render as
404 with "available_endpoints" listing /mcp/{id} for every known backend,
so clients can discover valid ids.
"""

from __future__ import annotations

__all__ = [
    "error_response",
    "gateway_error_handler",
    "http_exception_handler",
    "validation_error_handler",
]

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mcp_gateway.constants import APP_NAME
from mcp_gateway.exceptions import ErrorCode, GatewayError

_logger = logging.getLogger(f"{APP_NAME}.routes")


def error_response(
    status_code: int,
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    **details: Any,
) -> JSONResponse:
    """Create a JSON error response.

    Args:
        status_code: HTTP status code.
        message: Error message.
        code: Machine-readable error code.
        **details: Extra fields merged into the body.

    Returns:
        JSONResponse with {"error": message, "code": code, ...details}.
    """
    content: dict[str, Any] = {"error": message, "code": code.value}
    content.update(details)
    return JSONResponse(status_code=status_code, content=content)


def _available_endpoints(request: Request) -> list[str]:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        return []
    endpoints: list[str] = gateway.registry.endpoint_paths()
    return endpoints


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Render a GatewayError with its status, code and details."""
    if exc.status_code >= 500:
        _logger.warning(
            {
                "event": "request_failed",
                "message": f"{request.method} {request.url.path} failed: {exc.message}",
                "method": request.method,
                "path": request.url.path,
                "status_code": exc.status_code,
                "error_type": type(exc).__name__,
            }
        )
    return error_response(exc.status_code, exc.message, exc.code, **exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing and framework HTTP errors.

    404 and 405 both mean "no such endpoint" to clients and carry the list
    of backend endpoints.
    """
    if exc.status_code in (404, 405):
        message = "Endpoint not found"
        if exc.status_code == 404 and exc.detail and exc.detail != "Not Found":
            message = str(exc.detail)
        return error_response(
            404,
            message,
            ErrorCode.NOT_FOUND,
            available_endpoints=_available_endpoints(request),
        )

    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"
    code = ErrorCode.INVALID_REQUEST if exc.status_code < 500 else ErrorCode.INTERNAL_ERROR
    return error_response(exc.status_code, message, code)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation errors as 400."""
    errors = exc.errors()
    if len(errors) == 1:
        loc = [str(part) for part in errors[0].get("loc", []) if part != "body"]
        msg = errors[0].get("msg", "Validation error")
        message = f"{'.'.join(loc)}: {msg}" if loc else msg
    else:
        message = f"{len(errors)} validation errors"
    return error_response(400, message, ErrorCode.INVALID_REQUEST)
