"""Gateway: the explicitly owned store behind the HTTP surface.

The Gateway owns the backend registry, the process supervisor and one
transport adapter per backend. The routes reach it through
app.state.gateway; nothing here is a module-level singleton.

Adapters are built once, at registration, from the backend's transport
config. Start/stop go through the supervisor for stdio backends; for
http and sse backends they only flip the status, since the gateway does
not own those servers.
"""

from __future__ import annotations

__all__ = ["Gateway"]

import logging
from typing import Mapping

import httpx

from mcp_gateway.config import (
    GatewaySettings,
    SseTransportConfig,
    StdioTransportConfig,
    TransportConfig,
    load_gateway_config,
)
from mcp_gateway.constants import APP_NAME
from mcp_gateway.exceptions import (
    BackendAlreadyRunningError,
    BackendUnavailableError,
    GatewayError,
)
from mcp_gateway.registry import BackendRecord, BackendRegistry, endpoint_path
from mcp_gateway.status import BackendStatus
from mcp_gateway.supervisor import ProcessSupervisor
from mcp_gateway.transports import TransportAdapter, build_adapter

_logger = logging.getLogger(f"{APP_NAME}.gateway")


class Gateway:
    """Registry, supervisor and adapters for one gateway process.

    Attributes:
        settings: Process-wide settings.
        registry: Backend registry.
        supervisor: Process supervisor for stdio backends.
    """

    def __init__(
        self,
        settings: GatewaySettings,
        registry: BackendRegistry | None = None,
        supervisor: ProcessSupervisor | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry or BackendRegistry()
        self.supervisor = supervisor or ProcessSupervisor(self.registry)
        self._http_transport = http_transport
        self._adapters: dict[str, TransportAdapter] = {}

    @classmethod
    def from_settings(
        cls,
        settings: GatewaySettings,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> "Gateway":
        """Create a gateway with backends loaded from settings.config_path."""
        gateway = cls(settings, http_transport=http_transport)
        gateway.load_backends(load_gateway_config(settings.config_path))
        return gateway

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_backend(self, backend_id: str, config: TransportConfig) -> BackendRecord:
        """Register a backend and build its adapter.

        Raises:
            DuplicateBackendError: If backend_id is already registered.
        """
        record = self.registry.register(backend_id, config)
        self._adapters[backend_id] = build_adapter(
            backend_id,
            config,
            self.supervisor,
            http_transport=self._http_transport,
        )
        return record

    def load_backends(self, configs: Mapping[str, TransportConfig]) -> None:
        """Register every backend in configs, in order."""
        for backend_id, config in configs.items():
            self.register_backend(backend_id, config)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def adapter(self, backend_id: str) -> TransportAdapter:
        """Adapter of a registered backend.

        Raises:
            BackendNotFoundError: If backend_id is unknown.
        """
        self.registry.get(backend_id)
        return self._adapters[backend_id]

    def require_running(self, backend_id: str) -> BackendRecord:
        """Record of a backend that can serve requests.

        Raises:
            BackendNotFoundError: If backend_id is unknown.
            BackendUnavailableError: If the backend is not running.
        """
        record = self.registry.get(backend_id)
        if record.status != BackendStatus.RUNNING:
            raise BackendUnavailableError(
                f"Backend '{backend_id}' is not running",
                {"backend_id": backend_id, "status": record.status.value},
            )
        return record

    def endpoints(self, backend_id: str) -> list[str]:
        """Absolute URLs clients use to reach a backend.

        Every backend has /mcp/{id}; sse backends also have /mcp/{id}/sse.
        """
        record = self.registry.get(backend_id)
        base = f"{self.settings.public_base_url}{endpoint_path(backend_id)}"
        urls = [base]
        if isinstance(record.config, SseTransportConfig):
            urls.append(f"{base}/sse")
        return urls

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start_backend(self, backend_id: str) -> BackendRecord:
        """Start one backend.

        Raises:
            BackendNotFoundError: If backend_id is unknown.
            BackendAlreadyRunningError: If it is already running.
            BackendSpawnError: If a stdio process failed to launch.
        """
        record = self.registry.get(backend_id)
        if isinstance(record.config, StdioTransportConfig):
            await self.supervisor.start(backend_id, record.config)
            return record

        if record.status == BackendStatus.RUNNING:
            raise BackendAlreadyRunningError(backend_id)
        self.registry.set_status(backend_id, BackendStatus.STARTING)
        self.registry.mark_started(backend_id)
        self.registry.set_status(backend_id, BackendStatus.RUNNING)
        return record

    def stop_backend(self, backend_id: str) -> bool:
        """Stop one backend.

        Returns immediately. A stdio backend moves to "stopping" and
        reaches "stopped" when its process exits.

        Returns:
            True if the backend was running (a signal was sent or the
            status flipped), False if there was nothing to stop.

        Raises:
            BackendNotFoundError: If backend_id is unknown.
        """
        record = self.registry.get(backend_id)
        if isinstance(record.config, StdioTransportConfig):
            return self.supervisor.stop(backend_id)

        was_running = record.status == BackendStatus.RUNNING
        self.registry.set_status(backend_id, BackendStatus.STOPPED)
        return was_running

    async def startup(self) -> None:
        """Start every registered backend.

        A backend that fails to start is left in "error"; the others and
        the gateway itself keep going.
        """
        for backend_id in self.registry.ids():
            try:
                await self.start_backend(backend_id)
            except GatewayError as e:
                _logger.warning(
                    {
                        "event": "backend_startup_failed",
                        "message": f"Backend {backend_id} did not start: {e.message}",
                        "backend_id": backend_id,
                        "error_type": type(e).__name__,
                    }
                )

        _logger.info(
            {
                "event": "backends_started",
                "message": f"{len(self.registry)} backend(s) initialized",
                "details": {
                    "backends": {r.backend_id: r.status.value for r in self.registry},
                },
            }
        )

    async def shutdown(self) -> None:
        """Terminate every stdio process and close upstream clients."""
        await self.supervisor.shutdown()
        for adapter in self._adapters.values():
            await adapter.aclose()
        _logger.info(
            {
                "event": "backends_shut_down",
                "message": "All backends shut down",
            }
        )
