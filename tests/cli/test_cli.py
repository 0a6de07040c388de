"""Tests for the mcp-gateway CLI.

Uses click's CliRunner; network and server calls are patched.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from click.testing import CliRunner

from mcp_gateway import __version__
from mcp_gateway.cli import cli
from mcp_gateway.cli.commands.status import format_uptime


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _write_config(path: Path, servers: object) -> Path:
    path.write_text(json.dumps({"servers": servers}))
    return path


class TestGroup:
    """Tests for the top-level group."""

    def test_version(self, runner: CliRunner) -> None:
        """--version prints the package version."""
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert f"mcp-gateway {__version__}" in result.output

    def test_no_command_shows_help(self, runner: CliRunner) -> None:
        """Without a command the help and quick start are shown."""
        result = runner.invoke(cli, [])

        assert result.exit_code == 0
        assert "check-config" in result.output
        assert "Quick Start" in result.output


class TestCheckConfig:
    """Tests for the check-config command."""

    def test_valid_document(self, runner: CliRunner, tmp_path: Path) -> None:
        """Every entry is listed and the command succeeds."""
        path = _write_config(
            tmp_path / "config.json",
            {
                "fs": {"command": "npx", "args": ["-y", "server-filesystem"]},
                "search": {"type": "http", "url": "http://localhost:8080"},
            },
        )

        result = runner.invoke(cli, ["check-config", "--config", str(path)])

        assert result.exit_code == 0
        assert "npx -y server-filesystem" in result.output
        assert "http://localhost:8080" in result.output
        assert "2 server(s) valid" in result.output

    def test_invalid_entry_fails(self, runner: CliRunner, tmp_path: Path) -> None:
        """An invalid entry is reported with its field and exits 1."""
        path = _write_config(
            tmp_path / "config.json",
            {
                "ok": {"command": "node"},
                "bad": {"type": "http"},
            },
        )

        result = runner.invoke(cli, ["check-config", "-c", str(path)])

        assert result.exit_code == 1
        assert "url" in result.output
        assert "1 of 2 server(s) invalid" in result.output

    def test_missing_file_fails(self, runner: CliRunner, tmp_path: Path) -> None:
        """A missing document exits 1."""
        result = runner.invoke(cli, ["check-config", "--config", str(tmp_path / "absent.json")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_empty_document(self, runner: CliRunner, tmp_path: Path) -> None:
        """A document without servers is reported, not failed."""
        path = _write_config(tmp_path / "config.json", {})

        result = runner.invoke(cli, ["check-config", "--config", str(path)])

        assert result.exit_code == 0
        assert "No servers configured" in result.output

    def test_config_path_from_env_file(
        self,
        runner: CliRunner,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """--env-file supplies CONFIG_PATH."""
        # Registers CONFIG_PATH for restoration, then clears it
        monkeypatch.setenv("CONFIG_PATH", "unused")
        monkeypatch.delenv("CONFIG_PATH")
        path = _write_config(tmp_path / "from-env.json", {"fs": {"command": "npx"}})
        env_file = tmp_path / "gateway.env"
        env_file.write_text(f"CONFIG_PATH={path}\n")

        result = runner.invoke(cli, ["--env-file", str(env_file), "check-config"])

        assert result.exit_code == 0
        assert str(path) in result.output


class TestStatus:
    """Tests for the status command."""

    HEALTH = {
        "status": "healthy",
        "timestamp": "2025-01-01T00:00:00.000Z",
        "servers": [
            {"id": "fs", "status": "running", "type": "stdio", "uptime": 125_000},
            {"id": "search", "status": "stopped", "type": "http", "uptime": 0},
        ],
    }

    def _response(self, url: str, **kwargs: object) -> httpx.Response:
        return httpx.Response(200, json=self.HEALTH, request=httpx.Request("GET", url))

    def test_table(self, runner: CliRunner) -> None:
        """Backends are listed with status and uptime."""
        with patch("mcp_gateway.cli.commands.status.httpx.get", side_effect=self._response) as mock_get:
            result = runner.invoke(cli, ["status", "--url", "http://gw.test:3000/"])

        assert result.exit_code == 0
        mock_get.assert_called_once()
        assert mock_get.call_args.args[0] == "http://gw.test:3000/health"
        assert "2m 5s" in result.output
        assert "1/2 backends running" in result.output

    def test_json_output(self, runner: CliRunner) -> None:
        """--json prints the health body."""
        with patch("mcp_gateway.cli.commands.status.httpx.get", side_effect=self._response):
            result = runner.invoke(cli, ["status", "--url", "http://gw.test", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output) == self.HEALTH

    def test_errors_highlighted(self, runner: CliRunner) -> None:
        """Backends in error are called out after the table."""
        health = {"status": "healthy", "servers": [{"id": "fs", "status": "error", "type": "stdio", "uptime": 0}]}
        response = httpx.Response(200, json=health, request=httpx.Request("GET", "http://gw.test/health"))

        with patch("mcp_gateway.cli.commands.status.httpx.get", return_value=response):
            result = runner.invoke(cli, ["status", "--url", "http://gw.test"])

        assert result.exit_code == 0
        assert "Backends in error: fs" in result.output

    def test_unreachable(self, runner: CliRunner) -> None:
        """An unreachable gateway exits 1."""
        with patch(
            "mcp_gateway.cli.commands.status.httpx.get",
            side_effect=httpx.ConnectError("connection refused"),
        ):
            result = runner.invoke(cli, ["status", "--url", "http://gw.test"])

        assert result.exit_code == 1
        assert "not reachable" in result.output


class TestFormatUptime:
    """Tests for uptime formatting."""

    @pytest.mark.parametrize(
        ("uptime_ms", "expected"),
        [(0, "0s"), (59_999, "59s"), (60_000, "1m 0s"), (3_725_000, "1h 2m")],
    )
    def test_format(self, uptime_ms: int, expected: str) -> None:
        assert format_uptime(uptime_ms) == expected


class TestServe:
    """Tests for the serve command."""

    def test_options_reach_settings(self, runner: CliRunner) -> None:
        """CLI options override the environment."""
        with patch("mcp_gateway.cli.commands.serve.run_gateway", new=AsyncMock()) as mock_run:
            result = runner.invoke(cli, ["serve", "--port", "4100", "--base-url", "https://gw.example"])

        assert result.exit_code == 0
        settings = mock_run.call_args.args[0]
        assert settings.port == 4100
        assert settings.public_base_url == "https://gw.example"
        assert "https://gw.example/health" in result.output

    def test_start_failure_exits(self, runner: CliRunner) -> None:
        """A bind failure is reported and exits 1."""
        with patch(
            "mcp_gateway.cli.commands.serve.run_gateway",
            new=AsyncMock(side_effect=RuntimeError("Port 4100 is already in use")),
        ):
            result = runner.invoke(cli, ["serve", "--port", "4100"])

        assert result.exit_code == 1
        assert "Failed to start: Port 4100 is already in use" in result.output

    def test_invalid_port(self, runner: CliRunner) -> None:
        """An out-of-range port is rejected before starting."""
        with patch("mcp_gateway.cli.commands.serve.run_gateway", new=AsyncMock()) as mock_run:
            result = runner.invoke(cli, ["serve", "--port", "70000"])

        assert result.exit_code == 1
        assert "Invalid settings" in result.output
        mock_run.assert_not_called()
