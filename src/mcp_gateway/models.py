"""Pydantic models for the gateway.

This module contains two categories of models:

API Response Models (FrozenModel-based):
- FrozenModel: Base class for immutable models
- HealthResponse / ServerHealthEntry: /health body
- ServerListResponse / ServerListEntry: /mcp body
- ServerDetailResponse: /mcp/{id} body
- ActionResponse: start/stop result

Logging Models:
- GatewaySystemEvent: System log entries for the gateway
"""

from __future__ import annotations

__all__ = [
    # API Response Models
    "ActionResponse",
    "FrozenModel",
    "HealthResponse",
    "ServerDetailResponse",
    "ServerHealthEntry",
    "ServerListEntry",
    "ServerListResponse",
    # Logging Models
    "GatewaySystemEvent",
]

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# API Response Models
# =============================================================================


class FrozenModel(BaseModel):
    """Base class for immutable Pydantic models.

    All models in this module inherit from this class to ensure
    immutability after creation.
    """

    model_config = ConfigDict(frozen=True)


class ServerHealthEntry(FrozenModel):
    """One backend in the health report.

    Attributes:
        id: Backend id.
        status: Current status.
        type: Transport type.
        uptime: Milliseconds since last start.
    """

    id: str
    status: str
    type: str
    uptime: int


class HealthResponse(FrozenModel):
    """Response model for GET /health.

    Attributes:
        status: Always "healthy" while the gateway is serving.
        timestamp: ISO 8601 UTC time of the report.
        servers: Per-backend status.
    """

    status: str = "healthy"
    timestamp: str
    servers: List[ServerHealthEntry]


class ServerListEntry(FrozenModel):
    """One backend in the /mcp listing.

    Attributes:
        id: Backend id.
        type: Transport type.
        status: Current status.
        endpoints: Absolute URLs clients can call for this backend.
        uptime: Milliseconds since last start.
    """

    id: str
    type: str
    status: str
    endpoints: List[str]
    uptime: int


class ServerListResponse(FrozenModel):
    """Response model for GET /mcp."""

    servers: List[ServerListEntry]
    total: int


class ServerDetailResponse(ServerListEntry):
    """Response model for GET /mcp/{id}.

    Attributes:
        config: Transport configuration with secret values redacted.
        started_at: ISO 8601 time of the last start.
        pid: Process id (stdio backends with a live process only).
        exit_code: Exit code of the last process run, if any.
        last_error: Last spawn error message, if any.
    """

    config: Dict[str, Any]
    started_at: str
    pid: Optional[int] = None
    exit_code: Optional[int] = None
    last_error: Optional[str] = None


class ActionResponse(FrozenModel):
    """Response model for start/stop management endpoints.

    Attributes:
        message: Human-readable result.
        status: Backend status after the action was issued.
    """

    message: str
    status: str


# =============================================================================
# Logging Models
# =============================================================================


class GatewaySystemEvent(BaseModel):
    """One gateway system log entry (console, and the JSONL file if configured).

    Used for lifecycle events of the gateway process itself. Module loggers
    log plain dicts with the same keys.

    Note: 'time' is None when created, populated by ISO8601Formatter during logging.
    """

    # --- core ---
    time: Optional[str] = Field(
        None,
        description="ISO 8601 timestamp (UTC), added by formatter during serialization",
    )
    event: Optional[str] = Field(
        None,
        description="Machine-friendly event name, e.g. 'gateway_started', 'backend_exited'",
    )
    message: str = Field(description="Human-readable log message")

    # --- backend context ---
    backend_id: Optional[str] = Field(
        None,
        description="Id of affected backend, e.g. 'filesystem'",
    )
    transport: Optional[str] = Field(
        None,
        description="Transport type of affected backend",
    )
    pid: Optional[int] = Field(
        None,
        description="OS process id of a stdio backend",
    )

    # --- HTTP context ---
    method: Optional[str] = Field(
        None,
        description="HTTP request method",
    )
    path: Optional[str] = Field(
        None,
        description="HTTP request path, e.g. '/mcp/filesystem'",
    )
    status_code: Optional[int] = Field(
        None,
        description="HTTP response status code",
    )
    duration_ms: Optional[float] = Field(
        None,
        description="Request duration in milliseconds",
    )

    # --- error details ---
    error_type: Optional[str] = Field(
        None,
        description="Exception class name, e.g. 'FileNotFoundError'",
    )
    error_message: Optional[str] = Field(
        None,
        description="Short error text from exception",
    )

    # --- additional structured details ---
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional context as key-value pairs",
    )

    model_config = ConfigDict(extra="allow")
