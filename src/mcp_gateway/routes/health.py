"""Gateway health endpoint."""

from __future__ import annotations

__all__ = ["router"]

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from mcp_gateway.gateway import Gateway
from mcp_gateway.models import HealthResponse, ServerHealthEntry

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Report gateway liveness and every backend's status."""
    gateway: Gateway = request.app.state.gateway
    return HealthResponse(
        timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        servers=[
            ServerHealthEntry(
                id=snap.backend_id,
                status=snap.status.value,
                type=snap.transport,
                uptime=snap.uptime_ms,
            )
            for snap in gateway.registry.list()
        ],
    )
