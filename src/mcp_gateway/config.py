"""Configuration for mcp-gateway.

Two kinds of configuration, both read once at startup and immutable after:

- The backend document (JSON) enumerating tool servers under "servers",
  each carrying a transport type and transport-specific fields.
- Process-wide settings (port, public base URL, config path, CORS origin,
  logging), read from the environment and overridable from the CLI.

Example document:
    {
      "servers": {
        "filesystem": {"type": "stdio", "command": "npx",
                       "args": ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"]},
        "search": {"type": "http", "url": "http://localhost:8080",
                   "headers": {"Authorization": "Bearer ..."}},
        "events": {"type": "sse", "url": "http://localhost:9000/sse"}
      }
    }

Example usage:
    settings = GatewaySettings.from_env()
    servers = load_gateway_config(settings.config_path)
"""

from __future__ import annotations

__all__ = [
    "GatewaySettings",
    "HttpTransportConfig",
    "SseTransportConfig",
    "StdioTransportConfig",
    "TransportConfig",
    "load_environment",
    "load_gateway_config",
    "parse_server_entry",
    "read_config_document",
]

import json
import logging
import os
from pathlib import Path
from typing import Annotated, Any, Literal, Mapping, Union

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from mcp_gateway.constants import (
    APP_NAME,
    DEFAULT_CONFIG_PATH,
    DEFAULT_CORS_ORIGIN,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    MAX_REQUEST_TIMEOUT_SECONDS,
    MIN_REQUEST_TIMEOUT_SECONDS,
)
from mcp_gateway.exceptions import ConfigLoadError

_logger = logging.getLogger(f"{APP_NAME}.config")


# =============================================================================
# Transport Configuration (tagged variant)
# =============================================================================


class _TransportModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class StdioTransportConfig(_TransportModel):
    """STDIO transport configuration.

    Attributes:
        command: Command to launch the backend server.
        args: Arguments to pass to the backend command.
        env: Environment overrides merged over the gateway's environment.
        cwd: Working directory (defaults to the gateway's own).
        timeout: Seconds to wait for a reply to one request.
    """

    type: Literal["stdio"] = "stdio"
    command: str = Field(min_length=1)
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    cwd: str | None = None
    timeout: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
        ge=MIN_REQUEST_TIMEOUT_SECONDS,
        le=MAX_REQUEST_TIMEOUT_SECONDS,
    )


class HttpTransportConfig(_TransportModel):
    """HTTP reverse-proxy transport configuration.

    Attributes:
        url: Target base URL (e.g., "http://localhost:3010").
        headers: Static headers injected into every forwarded request.
        timeout: Upstream timeout in seconds.
    """

    type: Literal["http"] = "http"
    url: str = Field(min_length=1, pattern=r"^https?://")
    headers: dict[str, str] = Field(default_factory=dict)
    timeout: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
        ge=MIN_REQUEST_TIMEOUT_SECONDS,
        le=MAX_REQUEST_TIMEOUT_SECONDS,
    )


class SseTransportConfig(_TransportModel):
    """SSE relay transport configuration.

    The same URL serves the upstream event stream (GET) and the
    request/response endpoint (POST).

    Attributes:
        url: Upstream URL.
        headers: Static headers sent on both the stream and POST requests.
        timeout: Timeout in seconds for POST requests and stream connect.
    """

    type: Literal["sse"] = "sse"
    url: str = Field(min_length=1, pattern=r"^https?://")
    headers: dict[str, str] = Field(default_factory=dict)
    timeout: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
        ge=MIN_REQUEST_TIMEOUT_SECONDS,
        le=MAX_REQUEST_TIMEOUT_SECONDS,
    )


TransportConfig = Annotated[
    Union[StdioTransportConfig, HttpTransportConfig, SseTransportConfig],
    Field(discriminator="type"),
]

_transport_adapter: TypeAdapter[TransportConfig] = TypeAdapter(TransportConfig)


def parse_server_entry(entry: Mapping[str, Any]) -> TransportConfig:
    """Validate one server entry into its transport variant.

    Entries without a "type" are treated as stdio.

    Raises:
        ValidationError: If the entry is invalid for its transport type.
    """
    data = dict(entry)
    data.setdefault("type", "stdio")
    return _transport_adapter.validate_python(data)


# =============================================================================
# Backend Document Loading
# =============================================================================


def read_config_document(path: str | Path) -> dict[str, Any]:
    """Read and decode the backend document.

    Args:
        path: Path to the JSON document.

    Returns:
        The "servers" mapping (may be empty).

    Raises:
        ConfigLoadError: If the file is missing, unreadable, not JSON,
            or "servers" is not an object.
    """
    config_path = Path(path).expanduser()
    try:
        with config_path.open(encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigLoadError(f"Config file not found: {config_path}") from e
    except json.JSONDecodeError as e:
        raise ConfigLoadError(f"Invalid JSON in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigLoadError(f"Cannot read {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigLoadError(f"Config root must be an object in {config_path}")

    servers = data.get("servers") or {}
    if not isinstance(servers, dict):
        raise ConfigLoadError(f"'servers' must be an object in {config_path}")
    return servers


def load_gateway_config(path: str | Path) -> dict[str, TransportConfig]:
    """Load backend configurations from the document at path.

    A missing or malformed document degrades to an empty backend set.
    A single malformed server entry is skipped; the rest still load.

    Args:
        path: Path to the JSON document.

    Returns:
        Mapping of backend id to validated transport config, in document order.
    """
    try:
        servers = read_config_document(path)
    except ConfigLoadError as e:
        _logger.warning(
            {
                "event": "config_load_failed",
                "message": f"Failed to load configuration, starting with no backends: {e.message}",
                "error_type": type(e).__name__,
                "details": {"config_path": str(path)},
            }
        )
        return {}

    result: dict[str, TransportConfig] = {}
    for backend_id, entry in servers.items():
        if not isinstance(entry, dict):
            _logger.warning(
                {
                    "event": "config_entry_invalid",
                    "message": f"Skipping backend '{backend_id}': entry must be an object",
                    "backend_id": backend_id,
                }
            )
            continue
        try:
            result[backend_id] = parse_server_entry(entry)
        except ValidationError as e:
            _logger.warning(
                {
                    "event": "config_entry_invalid",
                    "message": f"Skipping backend '{backend_id}': {e.error_count()} validation error(s)",
                    "backend_id": backend_id,
                    "error_message": str(e),
                }
            )

    _logger.info(
        {
            "event": "config_loaded",
            "message": f"Configuration loaded: {list(result)}",
            "details": {"config_path": str(path), "backend_count": len(result)},
        }
    )
    return result


# =============================================================================
# Process-wide Settings
# =============================================================================


class GatewaySettings(BaseModel):
    """Process-wide gateway settings.

    Attributes:
        port: HTTP listening port.
        host: Interface to bind.
        base_url: Public base URL used in endpoint strings.
            Defaults to http://localhost:{port}.
        config_path: Path to the backend document.
        cors_origin: Permitted cross-origin request source.
        log_file: Optional JSONL log file (WARNING and above).
        log_level: Console log level name.
    """

    model_config = ConfigDict(frozen=True)

    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    host: str = DEFAULT_HOST
    base_url: str | None = None
    config_path: str = DEFAULT_CONFIG_PATH
    cors_origin: str = DEFAULT_CORS_ORIGIN
    log_file: str | None = None
    log_level: str = "INFO"

    @property
    def public_base_url(self) -> str:
        """Base URL for composing endpoint strings, without trailing slash."""
        if self.base_url:
            return self.base_url.rstrip("/")
        return f"http://localhost:{self.port}"

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> "GatewaySettings":
        """Build settings from environment variables.

        Reads PORT, HOST, BASE_URL, CONFIG_PATH, CORS_ORIGIN, LOG_FILE and
        LOG_LEVEL. Keyword overrides that are not None take precedence.

        Args:
            environ: Environment mapping (defaults to os.environ).
            **overrides: Explicit values (e.g., from CLI options).

        Returns:
            Validated settings.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for field_name, var in (
            ("port", "PORT"),
            ("host", "HOST"),
            ("base_url", "BASE_URL"),
            ("config_path", "CONFIG_PATH"),
            ("cors_origin", "CORS_ORIGIN"),
            ("log_file", "LOG_FILE"),
            ("log_level", "LOG_LEVEL"),
        ):
            if env.get(var):
                values[field_name] = env[var]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)


def load_environment(env_file: str | Path | None = None) -> Path | None:
    """Load a .env file into os.environ without overriding set variables.

    Precedence:
      1) env_file (explicit path)
      2) ./.env in the working directory

    Returns:
        The file that was loaded, or None if there was none.
    """
    candidates = [Path(env_file).expanduser()] if env_file else [Path.cwd() / ".env"]
    for path in candidates:
        if path.is_file():
            load_dotenv(dotenv_path=str(path), override=False)
            return path
    return None
