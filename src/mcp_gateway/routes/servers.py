"""Backend listing and management endpoints.

Routes:
- GET  /mcp               list every backend with its endpoints
- GET  /mcp/{id}          one backend, secrets redacted
- POST /mcp/{id}/start    start (spawn for stdio, status flip otherwise)
- POST /mcp/{id}/stop     stop; returns before a process has exited
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter, Request

from mcp_gateway.gateway import Gateway
from mcp_gateway.models import (
    ActionResponse,
    ServerDetailResponse,
    ServerListEntry,
    ServerListResponse,
)
from mcp_gateway.status import BackendStatus

router = APIRouter(prefix="/mcp", tags=["servers"])


@router.get("", response_model=ServerListResponse)
async def list_servers(request: Request) -> ServerListResponse:
    """List all configured backends."""
    gateway: Gateway = request.app.state.gateway
    servers = [
        ServerListEntry(
            id=snap.backend_id,
            type=snap.transport,
            status=snap.status.value,
            endpoints=gateway.endpoints(snap.backend_id),
            uptime=snap.uptime_ms,
        )
        for snap in gateway.registry.list()
    ]
    return ServerListResponse(servers=servers, total=len(servers))


@router.get("/{backend_id}", response_model=ServerDetailResponse)
async def get_server(backend_id: str, request: Request) -> ServerDetailResponse:
    """Get one backend's details.

    Environment values and static header values are replaced by "***".
    """
    gateway: Gateway = request.app.state.gateway
    record = gateway.registry.get(backend_id)
    snap = record.snapshot()
    return ServerDetailResponse(
        id=snap.backend_id,
        type=snap.transport,
        status=snap.status.value,
        endpoints=gateway.endpoints(backend_id),
        uptime=snap.uptime_ms,
        config=record.redacted_config(),
        started_at=snap.started_at.isoformat(),
        pid=gateway.supervisor.pid(backend_id),
        exit_code=snap.exit_code,
        last_error=snap.last_error,
    )


@router.post("/{backend_id}/start", response_model=ActionResponse)
async def start_server(backend_id: str, request: Request) -> ActionResponse:
    """Start a backend.

    Errors: 404 unknown id, 409 already running, 500 spawn failure.
    """
    gateway: Gateway = request.app.state.gateway
    record = await gateway.start_backend(backend_id)
    return ActionResponse(message=f"Server {backend_id} started", status=record.status.value)


@router.post("/{backend_id}/stop", response_model=ActionResponse)
async def stop_server(backend_id: str, request: Request) -> ActionResponse:
    """Stop a backend. Idempotent."""
    gateway: Gateway = request.app.state.gateway
    was_running = gateway.stop_backend(backend_id)
    record = gateway.registry.get(backend_id)
    if not was_running:
        message = f"Server {backend_id} was not running"
    elif record.status in (BackendStatus.STOPPING, BackendStatus.STARTING):
        # STARTING means the stop was deferred until the spawn completes
        message = f"Server {backend_id} stopping"
    else:
        message = f"Server {backend_id} stopped"
    return ActionResponse(message=message, status=record.status.value)
