"""Request forwarding to backends.

Routes:
- GET  /mcp/{id}/sse          event-stream relay (sse backends; plain
                              subpath forwarding for http backends)
- POST /mcp/{id}              forward through the backend's adapter
- *    /mcp/{id}              other methods, http backends only
- *    /mcp/{id}/{path}       subpath forwarding, http backends only

Management routes (/start, /stop) are registered before this router, so
they take precedence over subpath forwarding. Every forwarded request
requires the backend to be running (503 otherwise).
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter, Request, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from mcp_gateway.config import HttpTransportConfig, SseTransportConfig
from mcp_gateway.gateway import Gateway
from mcp_gateway.transports import SseRelayAdapter

router = APIRouter(prefix="/mcp", tags=["forwarding"])

_PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def _require_http_backend(gateway: Gateway, backend_id: str) -> None:
    """404 unless backend_id is an http-proxy backend."""
    record = gateway.registry.get(backend_id)
    if not isinstance(record.config, HttpTransportConfig):
        raise StarletteHTTPException(status_code=404)


@router.get("/{backend_id}/sse")
async def relay_events(backend_id: str, request: Request) -> Response:
    """Relay the upstream event stream of an sse backend."""
    gateway: Gateway = request.app.state.gateway
    record = gateway.registry.get(backend_id)
    if isinstance(record.config, HttpTransportConfig):
        gateway.require_running(backend_id)
        return await gateway.adapter(backend_id).forward(request, "sse")
    if not isinstance(record.config, SseTransportConfig):
        raise StarletteHTTPException(
            status_code=404,
            detail=f"Backend '{backend_id}' has no event stream",
        )
    gateway.require_running(backend_id)
    adapter = gateway.adapter(backend_id)
    if not isinstance(adapter, SseRelayAdapter):
        raise TypeError(f"Backend '{backend_id}' adapter does not relay events")
    return adapter.stream(request)


@router.post("/{backend_id}")
async def forward_request(backend_id: str, request: Request) -> Response:
    """Forward a request body to the backend and return its reply."""
    gateway: Gateway = request.app.state.gateway
    gateway.require_running(backend_id)
    return await gateway.adapter(backend_id).forward(request)


@router.api_route("/{backend_id}", methods=["PUT", "DELETE", "PATCH"])
async def forward_root_method(backend_id: str, request: Request) -> Response:
    """Forward non-POST methods on the backend root (http backends)."""
    gateway: Gateway = request.app.state.gateway
    _require_http_backend(gateway, backend_id)
    gateway.require_running(backend_id)
    return await gateway.adapter(backend_id).forward(request)


@router.api_route("/{backend_id}/{path:path}", methods=_PROXY_METHODS)
async def forward_subpath(backend_id: str, path: str, request: Request) -> Response:
    """Forward /mcp/{id}/{path} to the http backend's URL + path."""
    gateway: Gateway = request.app.state.gateway
    _require_http_backend(gateway, backend_id)
    gateway.require_running(backend_id)
    return await gateway.adapter(backend_id).forward(request, path)
