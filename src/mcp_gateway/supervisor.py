"""Process supervisor for stdio backends.

Owns the live process handle of every running stdio backend:
- Spawns the configured command with piped stdin/stdout/stderr
- Attaches a StdioChannel for request/response correlation
- Drains stderr into the log so the child never blocks on a full pipe
- Watches for exit and records it in the registry

Termination is asynchronous. stop() sends SIGTERM and moves the backend to
"stopping"; the exit watcher completes the move to "stopped" once the
process is gone. Processes are never restarted automatically.
"""

from __future__ import annotations

__all__ = [
    "ProcessHandle",
    "ProcessSupervisor",
]

import asyncio
import logging
import os
from dataclasses import dataclass, field

from mcp_gateway.config import StdioTransportConfig
from mcp_gateway.constants import (
    APP_NAME,
    PROCESS_EOF_DRAIN_SECONDS,
    PROCESS_SHUTDOWN_GRACE_SECONDS,
    STDIO_STREAM_LIMIT_BYTES,
)
from mcp_gateway.exceptions import (
    BackendAlreadyRunningError,
    BackendSpawnError,
    BackendUnavailableError,
)
from mcp_gateway.registry import BackendRegistry
from mcp_gateway.status import BackendStatus
from mcp_gateway.transports.stdio import StdioChannel

_logger = logging.getLogger(f"{APP_NAME}.supervisor")


@dataclass
class ProcessHandle:
    """A live backend process and the tasks attached to it.

    Attributes:
        backend_id: Backend the process belongs to.
        process: The asyncio subprocess.
        channel: Request/response channel over its pipes.
        exit_task: Task awaiting process exit.
        stderr_task: Task draining stderr into the log.
    """

    backend_id: str
    process: asyncio.subprocess.Process
    channel: StdioChannel
    exit_task: asyncio.Task[None] | None = field(default=None, repr=False)
    stderr_task: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def pid(self) -> int:
        """OS process id."""
        return self.process.pid


class ProcessSupervisor:
    """Spawns, terminates and observes stdio backend processes.

    Holds at most one handle per backend id. A handle is dropped by the
    exit watcher as soon as its process exits.
    """

    def __init__(self, registry: BackendRegistry) -> None:
        self._registry = registry
        self._handles: dict[str, ProcessHandle] = {}
        # Ids whose spawn is in flight, and those asked to stop meanwhile
        self._starting: set[str] = set()
        self._stop_requested: set[str] = set()

    def has_live_process(self, backend_id: str) -> bool:
        """True if backend_id has a process that has not been reaped yet."""
        return backend_id in self._handles

    def pid(self, backend_id: str) -> int | None:
        """Process id of the backend's live process, if any."""
        handle = self._handles.get(backend_id)
        return handle.pid if handle is not None else None

    def channel(self, backend_id: str) -> StdioChannel:
        """Channel of the backend's live process.

        Raises:
            BackendUnavailableError: If there is no live process.
        """
        handle = self._handles.get(backend_id)
        if handle is None or handle.channel.closed:
            raise BackendUnavailableError(
                f"Backend '{backend_id}' is not running",
                {"backend_id": backend_id},
            )
        return handle.channel

    async def start(self, backend_id: str, config: StdioTransportConfig) -> ProcessHandle:
        """Spawn the backend's process.

        Args:
            backend_id: Registered backend id.
            config: Its stdio configuration.

        Returns:
            The new process handle.

        Raises:
            BackendNotFoundError: If backend_id is not registered.
            BackendAlreadyRunningError: If a live process exists or one is
                already being spawned.
            BackendSpawnError: If the command could not be launched.
        """
        record = self._registry.get(backend_id)
        existing = self._handles.get(backend_id)
        if existing is not None:
            raise BackendAlreadyRunningError(backend_id, existing.pid)
        if backend_id in self._starting:
            raise BackendAlreadyRunningError(backend_id)

        # The slot is held from here until the handle is stored
        self._starting.add(backend_id)
        try:
            handle = await self._spawn(backend_id, config)
        finally:
            self._starting.discard(backend_id)
            stop_requested = backend_id in self._stop_requested
            self._stop_requested.discard(backend_id)

        _logger.info(
            {
                "event": "backend_started",
                "message": f"Backend {backend_id} started (pid {handle.pid})",
                "backend_id": backend_id,
                "pid": handle.pid,
                "transport": record.transport,
            }
        )
        if stop_requested:
            self.stop(backend_id)
        return handle

    def is_starting(self, backend_id: str) -> bool:
        """True while backend_id's process is being spawned."""
        return backend_id in self._starting

    async def _spawn(self, backend_id: str, config: StdioTransportConfig) -> ProcessHandle:
        self._registry.set_status(backend_id, BackendStatus.STARTING)
        self._registry.mark_started(backend_id)

        env = {**os.environ, **config.env}
        cwd = config.cwd or os.getcwd()

        _logger.info(
            {
                "event": "backend_spawning",
                "message": f"Starting {backend_id}: {config.command} {' '.join(config.args)}".rstrip(),
                "backend_id": backend_id,
                "details": {"command": config.command, "args": config.args, "cwd": cwd},
            }
        )

        try:
            process = await asyncio.create_subprocess_exec(
                config.command,
                *config.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                cwd=cwd,
                limit=STDIO_STREAM_LIMIT_BYTES,
            )
        except (OSError, ValueError) as e:
            reason = str(e) or type(e).__name__
            self._registry.record_error(backend_id, reason)
            self._registry.set_status(backend_id, BackendStatus.ERROR)
            _logger.error(
                {
                    "event": "backend_spawn_failed",
                    "message": f"Failed to start {backend_id}: {reason}",
                    "backend_id": backend_id,
                    "error_type": type(e).__name__,
                    "error_message": reason,
                }
            )
            raise BackendSpawnError(backend_id, reason) from e

        assert process.stdin is not None and process.stdout is not None and process.stderr is not None

        channel = StdioChannel(backend_id, process.stdin, process.stdout)
        channel.start()
        handle = ProcessHandle(backend_id=backend_id, process=process, channel=channel)
        handle.stderr_task = asyncio.create_task(
            self._drain_stderr(backend_id, process.stderr),
            name=f"stdio-stderr-{backend_id}",
        )
        handle.exit_task = asyncio.create_task(
            self._watch_exit(handle),
            name=f"stdio-exit-{backend_id}",
        )
        self._handles[backend_id] = handle
        self._registry.set_status(backend_id, BackendStatus.RUNNING)
        return handle

    def stop(self, backend_id: str) -> bool:
        """Request termination of the backend's process.

        Sends SIGTERM and returns immediately; the exit watcher records the
        stopped status. A process still being spawned is terminated as soon
        as the spawn completes. Without any process the backend is simply
        marked stopped.

        Returns:
            True if a signal was sent or deferred, False if there was no
            process.

        Raises:
            BackendNotFoundError: If backend_id is not registered.
        """
        self._registry.get(backend_id)
        handle = self._handles.get(backend_id)
        if handle is None and backend_id in self._starting:
            self._stop_requested.add(backend_id)
            _logger.info(
                {
                    "event": "backend_stop_deferred",
                    "message": f"Backend {backend_id} is starting; it will be stopped once spawned",
                    "backend_id": backend_id,
                }
            )
            return True
        if handle is None:
            self._registry.set_status(backend_id, BackendStatus.STOPPED)
            return False

        try:
            handle.process.terminate()
        except ProcessLookupError:
            # Already exited; the watcher will catch up
            pass
        self._registry.set_status(backend_id, BackendStatus.STOPPING)

        _logger.info(
            {
                "event": "backend_stop_requested",
                "message": f"Sent SIGTERM to {backend_id} (pid {handle.pid})",
                "backend_id": backend_id,
                "pid": handle.pid,
            }
        )
        return True

    async def shutdown(self, grace: float = PROCESS_SHUTDOWN_GRACE_SECONDS) -> None:
        """Terminate every live process, killing those that outlive grace."""
        # Spawns still in flight are terminated when they complete
        self._stop_requested.update(self._starting)

        handles = list(self._handles.values())
        if not handles:
            return

        for handle in handles:
            self.stop(handle.backend_id)

        exit_tasks = [h.exit_task for h in handles if h.exit_task is not None]
        _, pending = await asyncio.wait(exit_tasks, timeout=grace)
        if not pending:
            return

        for handle in handles:
            if handle.exit_task in pending:
                _logger.warning(
                    {
                        "event": "backend_killed",
                        "message": f"Backend {handle.backend_id} ignored SIGTERM for {grace}s, killing",
                        "backend_id": handle.backend_id,
                        "pid": handle.pid,
                    }
                )
                try:
                    handle.process.kill()
                except ProcessLookupError:
                    pass
        await asyncio.wait(pending, timeout=grace)

    async def _watch_exit(self, handle: ProcessHandle) -> None:
        backend_id = handle.backend_id
        exit_code = await handle.process.wait()

        await handle.channel.wait_eof(PROCESS_EOF_DRAIN_SECONDS)
        await handle.channel.close()
        if handle.stderr_task is not None and not handle.stderr_task.done():
            handle.stderr_task.cancel()
        if self._handles.get(backend_id) is handle:
            del self._handles[backend_id]

        self._registry.record_exit(backend_id, exit_code)
        self._registry.set_status(backend_id, BackendStatus.STOPPED)

        if exit_code is not None and exit_code < 0:
            how = f"signal {-exit_code}"
        else:
            how = f"code {exit_code}"
        _logger.info(
            {
                "event": "backend_exited",
                "message": f"Backend {backend_id} exited with {how}",
                "backend_id": backend_id,
                "pid": handle.pid,
                "details": {"exit_code": exit_code},
            }
        )

    async def _drain_stderr(self, backend_id: str, stderr: asyncio.StreamReader) -> None:
        while True:
            try:
                line = await stderr.readline()
            except ValueError:
                continue
            if not line:
                return
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                _logger.info(
                    {
                        "event": "backend_stderr",
                        "message": f"[{backend_id}] {text}",
                        "backend_id": backend_id,
                    }
                )
