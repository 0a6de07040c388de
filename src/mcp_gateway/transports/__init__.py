"""Backend transports.

Each backend gets exactly one adapter, chosen from its transport config
when it is registered:

- stdio: StdioAdapter (JSON lines over a supervised process's pipes)
- http: HttpProxyAdapter (reverse proxy)
- sse: SseRelayAdapter (event-stream relay plus POST)
"""

from __future__ import annotations

__all__ = [
    "HttpProxyAdapter",
    "SseRelayAdapter",
    "StdioAdapter",
    "TransportAdapter",
    "build_adapter",
]

from typing import TYPE_CHECKING, Protocol

import httpx
from fastapi import Request, Response

from mcp_gateway.config import (
    HttpTransportConfig,
    SseTransportConfig,
    StdioTransportConfig,
    TransportConfig,
)

from .http_proxy import HttpProxyAdapter
from .sse_relay import SseRelayAdapter
from .stdio import StdioAdapter

if TYPE_CHECKING:
    from mcp_gateway.supervisor import ProcessSupervisor


class TransportAdapter(Protocol):
    """Interface shared by all backend adapters."""

    backend_id: str

    async def forward(self, request: Request, subpath: str = "") -> Response:
        """Forward one inbound request to the backend."""
        ...

    async def aclose(self) -> None:
        """Release adapter resources."""
        ...


def build_adapter(
    backend_id: str,
    config: TransportConfig,
    supervisor: "ProcessSupervisor",
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> TransportAdapter:
    """Create the adapter for a backend's transport.

    Args:
        backend_id: Backend id.
        config: Its transport config.
        supervisor: Process supervisor (used by stdio adapters).
        http_transport: Optional httpx transport for http/sse clients.

    Raises:
        TypeError: If config is not a known transport variant.
    """
    if isinstance(config, StdioTransportConfig):
        return StdioAdapter(backend_id, config, supervisor)
    if isinstance(config, HttpTransportConfig):
        return HttpProxyAdapter(backend_id, config, transport=http_transport)
    if isinstance(config, SseTransportConfig):
        return SseRelayAdapter(backend_id, config, transport=http_transport)
    raise TypeError(f"Unsupported transport config: {type(config).__name__}")
