"""Tests for BackendRegistry."""

from __future__ import annotations

import asyncio

import pytest

from mcp_gateway.config import HttpTransportConfig, SseTransportConfig, StdioTransportConfig
from mcp_gateway.exceptions import BackendNotFoundError, DuplicateBackendError
from mcp_gateway.registry import BackendRegistry
from mcp_gateway.status import BackendStatus


@pytest.fixture
def populated(registry: BackendRegistry) -> BackendRegistry:
    """Registry with one backend of each transport."""
    registry.register("files", StdioTransportConfig(command="cat", env={"API_KEY": "secret"}))
    registry.register("search", HttpTransportConfig(url="http://localhost:8080", headers={"Authorization": "Bearer t"}))
    registry.register("events", SseTransportConfig(url="http://localhost:9000/sse"))
    return registry


class TestRegister:
    """Tests for backend registration."""

    def test_register_sets_starting(self, registry: BackendRegistry) -> None:
        """New backends start in status=starting."""
        record = registry.register("files", StdioTransportConfig(command="cat"))

        assert record.status == BackendStatus.STARTING
        assert record.transport == "stdio"
        assert "files" in registry
        assert len(registry) == 1

    def test_duplicate_id_rejected(self, registry: BackendRegistry) -> None:
        """Registering an existing id raises."""
        registry.register("files", StdioTransportConfig(command="cat"))

        with pytest.raises(DuplicateBackendError):
            registry.register("files", HttpTransportConfig(url="http://x"))

    def test_ids_keep_registration_order(self, populated: BackendRegistry) -> None:
        """ids() follows registration order."""
        assert populated.ids() == ["files", "search", "events"]


class TestGet:
    """Tests for lookup."""

    def test_unknown_id_lists_known_endpoints(self, populated: BackendRegistry) -> None:
        """The not-found error lists every known endpoint and not the bogus id."""
        with pytest.raises(BackendNotFoundError) as exc_info:
            populated.get("bogus")

        endpoints = exc_info.value.details["available_endpoints"]
        assert endpoints == ["/mcp/files", "/mcp/search", "/mcp/events"]
        assert "/mcp/bogus" not in endpoints
        assert exc_info.value.status_code == 404


class TestList:
    """Tests for snapshots."""

    def test_snapshot_fields(self, populated: BackendRegistry) -> None:
        """Snapshots carry id, transport, status and uptime."""
        snaps = {s.backend_id: s for s in populated.list()}

        assert snaps["search"].transport == "http"
        assert snaps["events"].status == BackendStatus.STARTING
        assert snaps["files"].uptime_ms >= 0

    async def test_uptime_is_non_decreasing(self, populated: BackendRegistry) -> None:
        """Uptime grows between snapshots."""
        first = populated.get("files").uptime_ms()
        await asyncio.sleep(0.02)
        second = populated.get("files").uptime_ms()

        assert second >= first
        assert second >= 10

    def test_mark_started_resets_uptime_and_outcome(self, populated: BackendRegistry) -> None:
        """Restarting clears the previous exit code and error."""
        record = populated.get("files")
        record.start_time -= 60
        populated.record_exit("files", 1)
        populated.record_error("files", "boom")

        populated.mark_started("files")

        assert record.uptime_ms() < 60_000
        assert record.exit_code is None
        assert record.last_error is None


class TestSetStatus:
    """Tests for status updates through the registry."""

    def test_applies_legal_transition(self, populated: BackendRegistry) -> None:
        """Legal transitions change the status."""
        populated.set_status("files", BackendStatus.RUNNING)

        assert populated.get("files").status == BackendStatus.RUNNING

    def test_refuses_illegal_transition(self, populated: BackendRegistry) -> None:
        """Illegal transitions leave the status unchanged."""
        populated.set_status("files", BackendStatus.STOPPED)
        populated.set_status("files", BackendStatus.RUNNING)

        assert populated.get("files").status == BackendStatus.STOPPED

    def test_idempotent(self, populated: BackendRegistry) -> None:
        """Repeating a status is harmless."""
        populated.set_status("files", BackendStatus.STOPPED)
        populated.set_status("files", BackendStatus.STOPPED)

        assert populated.get("files").status == BackendStatus.STOPPED

    def test_unknown_id_is_noop(self, populated: BackendRegistry) -> None:
        """Unknown ids are ignored."""
        populated.set_status("ghost", BackendStatus.RUNNING)

        assert "ghost" not in populated

    async def test_wait_for_status_returns_immediately_when_current(self, populated: BackendRegistry) -> None:
        """No waiting when the backend is already in a wanted status."""
        status = await populated.wait_for_status("files", BackendStatus.STARTING, timeout=0.01)

        assert status == BackendStatus.STARTING


class TestRedaction:
    """Tests for secret masking in detail views."""

    def test_env_values_redacted(self, populated: BackendRegistry) -> None:
        """stdio env values are masked, names kept."""
        config = populated.get("files").redacted_config()

        assert config["env"] == {"API_KEY": "***"}
        assert config["command"] == "cat"

    def test_header_values_redacted(self, populated: BackendRegistry) -> None:
        """Static header values are masked, names kept."""
        config = populated.get("search").redacted_config()

        assert config["headers"] == {"Authorization": "***"}
        assert config["url"] == "http://localhost:8080"
