"""Tests for the Gateway store and the listening socket."""

from __future__ import annotations

import json
import socket
from pathlib import Path

import pytest

from mcp_gateway.config import GatewaySettings, HttpTransportConfig, SseTransportConfig, StdioTransportConfig
from mcp_gateway.exceptions import BackendNotFoundError, BackendUnavailableError, DuplicateBackendError
from mcp_gateway.gateway import Gateway
from mcp_gateway.server import bind_socket
from mcp_gateway.status import BackendStatus
from mcp_gateway.transports import HttpProxyAdapter, SseRelayAdapter, StdioAdapter


@pytest.fixture
async def gateway(settings: GatewaySettings):
    gw = Gateway(settings)
    yield gw
    await gw.shutdown()


class TestRegistration:
    """Tests for backend registration."""

    async def test_adapter_matches_transport(self, gateway: Gateway) -> None:
        """Each backend gets the adapter for its transport type."""
        gateway.load_backends(
            {
                "local": StdioTransportConfig(command="node"),
                "api": HttpTransportConfig(url="http://upstream.test"),
                "events": SseTransportConfig(url="http://events.test/sse"),
            }
        )

        assert isinstance(gateway.adapter("local"), StdioAdapter)
        assert isinstance(gateway.adapter("api"), HttpProxyAdapter)
        assert isinstance(gateway.adapter("events"), SseRelayAdapter)

    async def test_duplicate_id_rejected(self, gateway: Gateway) -> None:
        """The same id cannot be registered twice."""
        gateway.register_backend("api", HttpTransportConfig(url="http://a.test"))

        with pytest.raises(DuplicateBackendError):
            gateway.register_backend("api", HttpTransportConfig(url="http://b.test"))

    async def test_unknown_adapter(self, gateway: Gateway) -> None:
        """Looking up an unknown id raises not-found."""
        with pytest.raises(BackendNotFoundError):
            gateway.adapter("ghost")

    async def test_from_settings_loads_document(self, tmp_path: Path) -> None:
        """Backends are loaded from the configured document in order."""
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps(
                {
                    "servers": {
                        "b": {"type": "http", "url": "http://b.test"},
                        "bad": {"type": "http"},
                        "a": {"type": "sse", "url": "http://a.test/sse"},
                    }
                }
            )
        )

        gw = Gateway.from_settings(GatewaySettings(config_path=str(path)))

        assert gw.registry.ids() == ["b", "a"]
        await gw.shutdown()


class TestEndpoints:
    """Tests for endpoint URL composition."""

    async def test_public_base_url_used(self, gateway: Gateway) -> None:
        """Endpoints are absolute URLs under the public base URL."""
        gateway.register_backend("api", HttpTransportConfig(url="http://upstream.test"))
        gateway.register_backend("events", SseTransportConfig(url="http://events.test/sse"))

        assert gateway.endpoints("api") == ["http://gateway.test/mcp/api"]
        assert gateway.endpoints("events") == [
            "http://gateway.test/mcp/events",
            "http://gateway.test/mcp/events/sse",
        ]

    async def test_default_base_url_uses_port(self) -> None:
        """Without BASE_URL the endpoint host is localhost:port."""
        gw = Gateway(GatewaySettings(port=4100))
        gw.register_backend("api", HttpTransportConfig(url="http://upstream.test"))

        assert gw.endpoints("api") == ["http://localhost:4100/mcp/api"]
        await gw.shutdown()


class TestLifecycle:
    """Tests for startup and per-backend lifecycle."""

    async def test_startup_tolerates_failures(self, gateway: Gateway, python_backend) -> None:
        """One backend failing to start does not stop the others."""
        gateway.load_backends(
            {
                "broken": StdioTransportConfig(command="/nonexistent/mcp-backend-binary"),
                "local": python_backend("echo"),
                "api": HttpTransportConfig(url="http://upstream.test"),
            }
        )

        await gateway.startup()

        statuses = {r.backend_id: r.status for r in gateway.registry}
        assert statuses == {
            "broken": BackendStatus.ERROR,
            "local": BackendStatus.RUNNING,
            "api": BackendStatus.RUNNING,
        }

    async def test_require_running(self, gateway: Gateway) -> None:
        """Only running backends may serve requests."""
        gateway.register_backend("api", HttpTransportConfig(url="http://upstream.test"))
        await gateway.start_backend("api")
        gateway.require_running("api")

        gateway.stop_backend("api")

        with pytest.raises(BackendUnavailableError) as exc_info:
            gateway.require_running("api")
        assert exc_info.value.details["status"] == "stopped"

    async def test_stop_reports_whether_running(self, gateway: Gateway) -> None:
        """stop_backend is idempotent and says whether anything stopped."""
        gateway.register_backend("api", HttpTransportConfig(url="http://upstream.test"))
        await gateway.start_backend("api")

        assert gateway.stop_backend("api") is True
        assert gateway.stop_backend("api") is False

    async def test_shutdown_stops_processes(self, gateway: Gateway, python_backend) -> None:
        """Shutdown reaps every stdio process."""
        gateway.register_backend("local", python_backend("echo"))
        await gateway.startup()

        await gateway.shutdown()

        assert gateway.registry.get("local").status == BackendStatus.STOPPED
        assert not gateway.supervisor.has_live_process("local")


class TestBindSocket:
    """Tests for the listening socket."""

    def test_port_in_use(self) -> None:
        """Binding a port that is already taken raises RuntimeError."""
        holder = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        holder.bind(("127.0.0.1", 0))
        holder.listen(1)
        port = holder.getsockname()[1]
        try:
            with pytest.raises(RuntimeError, match=f"Port {port} is already in use"):
                bind_socket("127.0.0.1", port)
        finally:
            holder.close()

    def test_binds_free_port(self) -> None:
        """A free port is bound, listening and non-blocking."""
        sock = bind_socket("127.0.0.1", 0)
        try:
            assert sock.getsockname()[1] > 0
            assert sock.getblocking() is False
        finally:
            sock.close()
