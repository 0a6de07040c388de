"""Backend registry for tracking configured tool servers.

Pure in-memory data store of backend descriptors and their runtime status.
The registry is owned by the Gateway and passed by reference to the
supervisor and the routes; there is no module-level singleton.

Records are never removed. A stopped backend keeps its descriptor so it
can be started again; only the transient process handle (owned by the
supervisor) is discarded when a process exits.
"""

from __future__ import annotations

__all__ = [
    "BackendRecord",
    "BackendRegistry",
    "BackendSnapshot",
]

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator

from mcp_gateway.config import StdioTransportConfig, TransportConfig
from mcp_gateway.constants import APP_NAME, REDACTED_VALUE
from mcp_gateway.exceptions import BackendNotFoundError, DuplicateBackendError
from mcp_gateway.status import BackendStatus, StatusTracker

_logger = logging.getLogger(f"{APP_NAME}.registry")


def endpoint_path(backend_id: str) -> str:
    """Relative request path for a backend."""
    return f"/mcp/{backend_id}"


@dataclass(frozen=True)
class BackendSnapshot:
    """Point-in-time view of a backend for listings.

    Attributes:
        backend_id: Backend id.
        transport: Transport type ("stdio", "http", "sse").
        status: Status at snapshot time.
        uptime_ms: Milliseconds since the backend was last started.
        started_at: Wall-clock time of the last start.
        exit_code: Exit code of the last process run, if any.
        last_error: Last spawn/runtime error message, if any.
    """

    backend_id: str
    transport: str
    status: BackendStatus
    uptime_ms: int
    started_at: datetime
    exit_code: int | None = None
    last_error: str | None = None


@dataclass
class BackendRecord:
    """A configured backend and its runtime state.

    Attributes:
        backend_id: Unique id, also the /mcp/{id} path segment.
        config: Immutable transport configuration.
        status: Current lifecycle status.
        start_time: Monotonic timestamp of the last start (for uptime).
        started_at: Wall-clock time of the last start (for display).
        exit_code: Exit code of the last process run (stdio only).
        last_error: Message of the last spawn/runtime error.
    """

    backend_id: str
    config: TransportConfig
    status: BackendStatus = BackendStatus.STARTING
    start_time: float = field(default_factory=time.monotonic)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    exit_code: int | None = None
    last_error: str | None = None

    @property
    def transport(self) -> str:
        """Transport type tag of the configuration."""
        return self.config.type

    def uptime_ms(self, now: float | None = None) -> int:
        """Milliseconds elapsed since the last start."""
        current = time.monotonic() if now is None else now
        return max(0, int((current - self.start_time) * 1000))

    def snapshot(self, now: float | None = None) -> BackendSnapshot:
        """Return an immutable view of this record."""
        return BackendSnapshot(
            backend_id=self.backend_id,
            transport=self.transport,
            status=self.status,
            uptime_ms=self.uptime_ms(now),
            started_at=self.started_at,
            exit_code=self.exit_code,
            last_error=self.last_error,
        )

    def redacted_config(self) -> dict[str, Any]:
        """Configuration with secret values masked.

        Environment override values and static header values may carry
        credentials; only their names are shown.
        """
        data = self.config.model_dump()
        if isinstance(self.config, StdioTransportConfig):
            data["env"] = {key: REDACTED_VALUE for key in self.config.env}
        else:
            data["headers"] = {key: REDACTED_VALUE for key in self.config.headers}
        return data


class BackendRegistry:
    """Registry of configured backends.

    All mutations run on the event loop thread between suspension points,
    so no lock is needed.
    """

    def __init__(self, tracker: StatusTracker | None = None) -> None:
        self._records: dict[str, BackendRecord] = {}
        self._tracker = tracker or StatusTracker()

    def __contains__(self, backend_id: object) -> bool:
        return backend_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[BackendRecord]:
        return iter(list(self._records.values()))

    @property
    def tracker(self) -> StatusTracker:
        """The status state machine used for transitions."""
        return self._tracker

    def register(self, backend_id: str, config: TransportConfig) -> BackendRecord:
        """Insert a backend with status=starting.

        Args:
            backend_id: Unique backend id.
            config: Transport configuration.

        Returns:
            The new record.

        Raises:
            DuplicateBackendError: If backend_id is already registered.
        """
        if backend_id in self._records:
            raise DuplicateBackendError(backend_id)

        record = BackendRecord(backend_id=backend_id, config=config)
        self._records[backend_id] = record

        _logger.info(
            {
                "event": "backend_registered",
                "message": f"Backend registered: {backend_id} ({config.type})",
                "backend_id": backend_id,
                "transport": config.type,
            }
        )
        return record

    def get(self, backend_id: str) -> BackendRecord:
        """Get a backend record by id.

        Raises:
            BackendNotFoundError: If backend_id is unknown. The error lists
                the endpoints of every known backend.
        """
        record = self._records.get(backend_id)
        if record is None:
            raise BackendNotFoundError(backend_id, self.endpoint_paths())
        return record

    def ids(self) -> list[str]:
        """Backend ids in registration order."""
        return list(self._records)

    def endpoint_paths(self) -> list[str]:
        """Relative /mcp/{id} path for every known backend."""
        return [endpoint_path(backend_id) for backend_id in self._records]

    def list(self) -> list[BackendSnapshot]:
        """Snapshot every backend, with uptime computed at one instant."""
        now = time.monotonic()
        return [record.snapshot(now) for record in self._records.values()]

    def set_status(self, backend_id: str, status: BackendStatus) -> None:
        """Move a backend to status.

        Idempotent: setting the current status is a no-op. Unknown ids are
        ignored, since exit callbacks may outlive their caller's lookup.
        Illegal transitions are refused by the tracker and logged.
        """
        record = self._records.get(backend_id)
        if record is None:
            _logger.debug(
                {
                    "event": "status_unknown_backend",
                    "message": f"Ignoring status {status.value} for unknown backend {backend_id}",
                    "backend_id": backend_id,
                }
            )
            return
        if self._tracker.transition(backend_id, record.status, status):
            record.status = status

    def mark_started(self, backend_id: str) -> None:
        """Reset the start timestamp and clear the last run's outcome."""
        record = self.get(backend_id)
        record.start_time = time.monotonic()
        record.started_at = datetime.now(timezone.utc)
        record.exit_code = None
        record.last_error = None

    def record_exit(self, backend_id: str, exit_code: int | None) -> None:
        """Store the exit code of the backend's last process."""
        record = self._records.get(backend_id)
        if record is not None:
            record.exit_code = exit_code

    def record_error(self, backend_id: str, message: str) -> None:
        """Store the backend's last error message."""
        record = self._records.get(backend_id)
        if record is not None:
            record.last_error = message

    async def wait_for_status(
        self,
        backend_id: str,
        *statuses: BackendStatus,
        timeout: float | None = None,
    ) -> BackendStatus:
        """Wait until the backend is in one of statuses.

        Returns immediately if it already is.

        Raises:
            BackendNotFoundError: If backend_id is unknown.
            asyncio.TimeoutError: If the status is not reached in time.
        """
        record = self.get(backend_id)
        wanted = frozenset(statuses)
        if record.status in wanted:
            return record.status
        return await self._tracker.wait_for(backend_id, wanted, timeout=timeout)
