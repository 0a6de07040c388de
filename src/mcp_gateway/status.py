"""Backend lifecycle state machine.

Every backend moves through the same states regardless of transport:

    starting ──► running ──► stopping ──► stopped
        │           │            │           │
        └──► error ◄┴────────────┘           │
              │                              │
              └──► starting ◄────────────────┘

Transitions are requested by the Process Supervisor (stdio backends) and by
the management routes (all backends). Termination is asynchronous: stop
moves a process backend to "stopping", and the exit watcher later completes
it to "stopped". Callers that need the terminal state await it through
StatusTracker.wait_for instead of assuming it is immediate.
"""

from __future__ import annotations

__all__ = [
    "ALLOWED_TRANSITIONS",
    "BackendStatus",
    "StatusTracker",
]

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from mcp_gateway.constants import APP_NAME

_logger = logging.getLogger(f"{APP_NAME}.status")


class BackendStatus(str, Enum):
    """Runtime status of a backend."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


ALLOWED_TRANSITIONS: dict[BackendStatus, frozenset[BackendStatus]] = {
    BackendStatus.STARTING: frozenset({BackendStatus.RUNNING, BackendStatus.STOPPED, BackendStatus.ERROR}),
    BackendStatus.RUNNING: frozenset({BackendStatus.STOPPING, BackendStatus.STOPPED, BackendStatus.ERROR}),
    BackendStatus.STOPPING: frozenset({BackendStatus.STOPPED, BackendStatus.ERROR}),
    BackendStatus.STOPPED: frozenset({BackendStatus.STARTING}),
    BackendStatus.ERROR: frozenset({BackendStatus.STARTING, BackendStatus.STOPPED}),
}


@dataclass
class _Waiter:
    backend_id: str
    statuses: frozenset[BackendStatus]
    future: asyncio.Future[BackendStatus]


class StatusTracker:
    """Validates status transitions and wakes tasks waiting for a status.

    The tracker does not store statuses itself; the registry owns the
    records and asks the tracker whether each change is legal.
    """

    def __init__(self) -> None:
        self._waiters: list[_Waiter] = []

    def transition(
        self,
        backend_id: str,
        current: BackendStatus,
        new: BackendStatus,
    ) -> bool:
        """Check and announce a transition.

        Args:
            backend_id: Backend being updated.
            current: Its current status.
            new: Requested status.

        Returns:
            True if the caller should apply the change, False for a same-state
            no-op or a refused transition.
        """
        if current == new:
            return False

        if new not in ALLOWED_TRANSITIONS[current]:
            _logger.warning(
                {
                    "event": "status_transition_refused",
                    "message": f"Backend {backend_id}: refusing transition {current.value} -> {new.value}",
                    "backend_id": backend_id,
                    "details": {"from": current.value, "to": new.value},
                }
            )
            return False

        _logger.info(
            {
                "event": "status_changed",
                "message": f"Backend {backend_id} status: {new.value}",
                "backend_id": backend_id,
                "details": {"from": current.value, "to": new.value},
            }
        )
        self._notify(backend_id, new)
        return True

    async def wait_for(
        self,
        backend_id: str,
        statuses: frozenset[BackendStatus],
        timeout: float | None = None,
    ) -> BackendStatus:
        """Wait until backend_id transitions into one of statuses.

        Only future transitions are observed; check the current status
        before calling.

        Raises:
            asyncio.TimeoutError: If no matching transition happens in time.
        """
        future: asyncio.Future[BackendStatus] = asyncio.get_running_loop().create_future()
        waiter = _Waiter(backend_id=backend_id, statuses=statuses, future=future)
        self._waiters.append(waiter)
        try:
            return await asyncio.wait_for(future, timeout=timeout)
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def _notify(self, backend_id: str, status: BackendStatus) -> None:
        for waiter in list(self._waiters):
            if waiter.backend_id != backend_id or status not in waiter.statuses:
                continue
            if not waiter.future.done():
                waiter.future.set_result(status)
            self._waiters.remove(waiter)
