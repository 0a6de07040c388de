"""Custom exceptions for mcp-gateway.

This module contains all custom exceptions used throughout the package.
None of them is fatal to the gateway: each one is raised where a single
request or management call fails, and the routes layer renders it as a
structured JSON error response.

Configuration:
    - ConfigLoadError: Backend document missing or unparsable

Registry / lifecycle:
    - DuplicateBackendError: Backend id already registered
    - BackendNotFoundError: Unknown backend id
    - BackendSpawnError: Process failed to launch
    - BackendAlreadyRunningError: Start requested while a process is live
    - BackendUnavailableError: Backend not running, or exited mid-request

Request:
    - InvalidRequestError: Request body is not valid JSON

Transport:
    - UpstreamUnavailableError: HTTP/SSE target unreachable
    - UpstreamTimeoutError: HTTP/SSE target did not answer in time
    - RequestTimeoutError: stdio reply not observed within the bound

Usage:
    from mcp_gateway.exceptions import BackendNotFoundError, RequestTimeoutError
"""

from __future__ import annotations

__all__ = [
    "BackendAlreadyRunningError",
    "BackendNotFoundError",
    "BackendSpawnError",
    "BackendUnavailableError",
    "ConfigLoadError",
    "DuplicateBackendError",
    "ErrorCode",
    "GatewayError",
    "InvalidRequestError",
    "RequestTimeoutError",
    "UpstreamTimeoutError",
    "UpstreamUnavailableError",
]

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for programmatic handling.

    Codes are namespaced by domain:
    - BACKEND_*: Registry and lifecycle errors
    - UPSTREAM_*: HTTP/SSE target errors
    - CONFIG_*: Configuration errors
    """

    # Registry / lifecycle
    BACKEND_NOT_FOUND = "BACKEND_NOT_FOUND"
    BACKEND_EXISTS = "BACKEND_EXISTS"
    BACKEND_SPAWN_FAILED = "BACKEND_SPAWN_FAILED"
    BACKEND_ALREADY_RUNNING = "BACKEND_ALREADY_RUNNING"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"

    # Upstream targets
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"

    # Configuration
    CONFIG_INVALID = "CONFIG_INVALID"

    # Request
    INVALID_REQUEST = "INVALID_REQUEST"

    # Generic
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class GatewayError(Exception):
    """Base class for recoverable gateway errors.

    Attributes:
        status_code: HTTP status the routes layer responds with.
        code: Error code from ErrorCode enum.
        message: Human-readable error message.
        details: Extra fields merged into the JSON error body.
    """

    status_code: int = 500
    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigLoadError(GatewayError):
    """Raised when the backend configuration document cannot be loaded.

    The loader catches this and degrades to an empty backend set.
    """

    code = ErrorCode.CONFIG_INVALID


class DuplicateBackendError(GatewayError):
    """Raised when registering an id that is already present."""

    status_code = 409
    code = ErrorCode.BACKEND_EXISTS

    def __init__(self, backend_id: str) -> None:
        super().__init__(
            f"Backend '{backend_id}' is already registered",
            {"backend_id": backend_id},
        )
        self.backend_id = backend_id


class BackendNotFoundError(GatewayError):
    """Raised when a backend id is not in the registry.

    Carries the list of known endpoints so callers can discover valid ids.
    """

    status_code = 404
    code = ErrorCode.BACKEND_NOT_FOUND

    def __init__(self, backend_id: str, available_endpoints: list[str] | None = None) -> None:
        super().__init__(
            f"Backend '{backend_id}' not found",
            {"available_endpoints": available_endpoints or []},
        )
        self.backend_id = backend_id


class BackendSpawnError(GatewayError):
    """Raised when a stdio backend process fails to launch."""

    status_code = 500
    code = ErrorCode.BACKEND_SPAWN_FAILED

    def __init__(self, backend_id: str, reason: str) -> None:
        super().__init__(
            f"Failed to start backend '{backend_id}': {reason}",
            {"backend_id": backend_id},
        )
        self.backend_id = backend_id


class BackendAlreadyRunningError(GatewayError):
    """Raised when start is requested for a backend with a live process."""

    status_code = 409
    code = ErrorCode.BACKEND_ALREADY_RUNNING

    def __init__(self, backend_id: str, pid: int | None = None) -> None:
        details: dict[str, Any] = {"backend_id": backend_id}
        if pid is not None:
            details["pid"] = pid
        super().__init__(
            f"Backend '{backend_id}' already has a live process; stop it first",
            details,
        )
        self.backend_id = backend_id


class BackendUnavailableError(GatewayError):
    """Raised when a backend cannot serve requests right now."""

    status_code = 503
    code = ErrorCode.BACKEND_UNAVAILABLE


class UpstreamUnavailableError(GatewayError):
    """Raised when an HTTP or SSE target cannot be reached."""

    status_code = 502
    code = ErrorCode.UPSTREAM_UNAVAILABLE


class UpstreamTimeoutError(GatewayError):
    """Raised when an HTTP or SSE target does not answer in time."""

    status_code = 504
    code = ErrorCode.UPSTREAM_TIMEOUT


class RequestTimeoutError(GatewayError):
    """Raised when a stdio backend does not reply within the request timeout.

    The backend process is left running.
    """

    status_code = 408
    code = ErrorCode.REQUEST_TIMEOUT

    def __init__(self, backend_id: str, timeout: float) -> None:
        super().__init__(
            "Request timeout",
            {"backend_id": backend_id, "timeout_seconds": timeout},
        )
        self.backend_id = backend_id
        self.timeout = timeout


class InvalidRequestError(GatewayError):
    """Raised when a forwarded request body cannot be decoded."""

    status_code = 400
    code = ErrorCode.INVALID_REQUEST
