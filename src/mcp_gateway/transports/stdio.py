"""STDIO transport: request/response correlation over process pipes.

Wire format (same framing as NDJSON):
- Each request is one compact JSON document followed by a newline,
  written to the backend's stdin.
- Each line the backend writes to stdout is decoded as one message.
  Lines that fail to decode are dropped, never accumulated.

Correlation rules:
- At most one request is in flight per backend. Calls wait on a FIFO
  lock, so concurrent callers are served in arrival order.
- Before a request is written, any decoded output already queued is
  flushed. That output is stale (a late reply to a timed-out call) or
  unsolicited.
- A JSON-RPC request carrying an "id" only accepts a reply with the same
  "id" and no "method". Notifications and mismatched replies are dropped.
  Requests without an "id" take the first decodable message that is not
  a late reply to a timed-out call.
- A timed-out call is remembered until its late reply shows up. A reply
  carrying a timed-out call's "id" is dropped wherever it arrives. An
  id-less timed-out call leaves one id-less reply to be dropped.
- A timer races the reply. On expiry the caller gets RequestTimeoutError,
  the lock is released, and the process is left running.
"""

from __future__ import annotations

__all__ = [
    "StdioAdapter",
    "StdioChannel",
    "decode_message",
    "encode_message",
]

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from mcp_gateway.config import StdioTransportConfig
from mcp_gateway.constants import APP_NAME
from mcp_gateway.exceptions import BackendUnavailableError, RequestTimeoutError

from .body import read_json_body

if TYPE_CHECKING:
    from mcp_gateway.supervisor import ProcessSupervisor

_logger = logging.getLogger(f"{APP_NAME}.transports.stdio")

# Placed on the reply queue when stdout reaches EOF
_EOF = object()


def encode_message(msg: Any) -> bytes:
    """Encode a message as one newline-terminated JSON line.

    Example:
        >>> encode_message({"jsonrpc": "2.0", "id": 1, "method": "ping"})
        b'{"jsonrpc":"2.0","id":1,"method":"ping"}\\n'
    """
    return (json.dumps(msg, separators=(",", ":")) + "\n").encode("utf-8")


def decode_message(line: bytes) -> dict[str, Any] | list[Any] | None:
    """Decode one output line as a structured message.

    Returns:
        The decoded object or array, or None if the line is blank, not
        valid JSON, or a bare scalar.

    Example:
        >>> decode_message(b'{"id": 1}\\n')
        {'id': 1}
        >>> decode_message(b'Server listening on stdio') is None
        True
    """
    text = line.strip()
    if not text:
        return None
    try:
        result = json.loads(text.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if isinstance(result, (dict, list)):
        return result
    return None


def _request_id(payload: Any) -> Any:
    """JSON-RPC id of payload, or None if it carries none."""
    if isinstance(payload, dict):
        return payload.get("id")
    return None


def _is_reply(msg: Any) -> bool:
    return isinstance(msg, list) or (isinstance(msg, dict) and "method" not in msg)


def _is_reply_to(msg: Any, request_id: Any) -> bool:
    return isinstance(msg, dict) and "method" not in msg and msg.get("id") == request_id


class StdioChannel:
    """Serialized request/response exchange with one backend process.

    The channel owns a reader task that decodes stdout lines into a queue.
    call() holds the channel's lock for the full write-and-await cycle.

    Attributes:
        backend_id: Backend this channel talks to.
    """

    def __init__(
        self,
        backend_id: str,
        stdin: asyncio.StreamWriter,
        stdout: asyncio.StreamReader,
    ) -> None:
        self.backend_id = backend_id
        self._stdin = stdin
        self._stdout = stdout
        self._replies: asyncio.Queue[Any] = asyncio.Queue()
        self._lock = asyncio.Lock()
        self._reader_task: asyncio.Task[None] | None = None
        self._closed = False
        # Calls that timed out and whose replies may still arrive
        self._abandoned_ids: set[Any] = set()
        self._abandoned_anonymous = 0

    @property
    def closed(self) -> bool:
        """True once stdout hit EOF or the channel was closed."""
        return self._closed

    @property
    def busy(self) -> bool:
        """True while a request is in flight."""
        return self._lock.locked()

    def start(self) -> None:
        """Start decoding the backend's stdout."""
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(
                self._pump_stdout(), name=f"stdio-reader-{self.backend_id}"
            )

    async def close(self) -> None:
        """Stop the reader and fail any pending call."""
        self._closed = True
        self._replies.put_nowait(_EOF)
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass

    async def wait_eof(self, timeout: float) -> None:
        """Wait up to timeout for the reader to consume stdout to EOF.

        Lets replies written just before exit reach a pending call.
        """
        if self._reader_task is None or self._reader_task.done():
            return
        try:
            await asyncio.wait_for(asyncio.shield(self._reader_task), timeout=timeout)
        except asyncio.TimeoutError:
            pass

    async def call(self, payload: Any, timeout: float) -> Any:
        """Send payload and wait for its reply.

        Args:
            payload: JSON-serializable request.
            timeout: Seconds to wait for the reply, measured from when this
                call acquires the channel.

        Returns:
            The decoded reply.

        Raises:
            RequestTimeoutError: If no reply arrives within timeout.
            BackendUnavailableError: If the process has exited or its stdin
                is broken.
        """
        async with self._lock:
            stale = self._flush()
            if self._closed:
                raise BackendUnavailableError(
                    f"Backend '{self.backend_id}' process is not running",
                    {"backend_id": self.backend_id},
                )
            if stale:
                _logger.debug(
                    {
                        "event": "stdio_stale_output_flushed",
                        "message": f"Discarded {stale} stale message(s) from {self.backend_id}",
                        "backend_id": self.backend_id,
                        "details": {"count": stale},
                    }
                )
            try:
                return await asyncio.wait_for(self._exchange(payload), timeout=timeout)
            except asyncio.TimeoutError:
                self._abandon(payload)
                _logger.warning(
                    {
                        "event": "stdio_request_timeout",
                        "message": f"No reply from {self.backend_id} within {timeout}s",
                        "backend_id": self.backend_id,
                        "details": {"timeout_seconds": timeout},
                    }
                )
                raise RequestTimeoutError(self.backend_id, timeout) from None

    async def _exchange(self, payload: Any) -> Any:
        request_id = _request_id(payload)
        try:
            self._stdin.write(encode_message(payload))
            await self._stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise BackendUnavailableError(
                f"Backend '{self.backend_id}' stdin is closed",
                {"backend_id": self.backend_id},
            ) from e

        while True:
            msg = await self._replies.get()
            if msg is _EOF:
                raise BackendUnavailableError(
                    f"Backend '{self.backend_id}' exited before replying",
                    {"backend_id": self.backend_id},
                )
            if self._retire_late_reply(msg):
                _logger.debug(
                    {
                        "event": "stdio_late_reply_dropped",
                        "message": f"Dropped late reply from {self.backend_id} to a timed-out request",
                        "backend_id": self.backend_id,
                    }
                )
                continue
            if request_id is None or _is_reply_to(msg, request_id):
                return msg
            _logger.debug(
                {
                    "event": "stdio_message_skipped",
                    "message": f"Skipping message from {self.backend_id} not addressed to request {request_id!r}",
                    "backend_id": self.backend_id,
                }
            )

    def _flush(self) -> int:
        count = 0
        while not self._replies.empty():
            msg = self._replies.get_nowait()
            if msg is _EOF:
                self._closed = True
            else:
                self._retire_late_reply(msg)
            count += 1
        return count

    def _abandon(self, payload: Any) -> None:
        request_id = _request_id(payload)
        if request_id is None:
            self._abandoned_anonymous += 1
        elif isinstance(request_id, (str, int, float)):
            self._abandoned_ids.add(request_id)

    def _retire_late_reply(self, msg: Any) -> bool:
        """True if msg answers a timed-out call; that call is then forgotten."""
        if not _is_reply(msg):
            return False
        msg_id = msg.get("id") if isinstance(msg, dict) else None
        if msg_id is not None:
            if isinstance(msg_id, (str, int, float)) and msg_id in self._abandoned_ids:
                self._abandoned_ids.discard(msg_id)
                return True
            return False
        if self._abandoned_anonymous:
            self._abandoned_anonymous -= 1
            return True
        return False

    async def _pump_stdout(self) -> None:
        try:
            while True:
                try:
                    line = await self._stdout.readline()
                except ValueError:
                    # Line exceeded the stream limit; asyncio discards it
                    _logger.warning(
                        {
                            "event": "stdio_line_too_long",
                            "message": f"Dropped oversized output line from {self.backend_id}",
                            "backend_id": self.backend_id,
                        }
                    )
                    continue
                if not line:
                    break
                msg = decode_message(line)
                if msg is None:
                    _logger.debug(
                        {
                            "event": "stdio_output_ignored",
                            "message": f"Ignoring non-JSON output from {self.backend_id}",
                            "backend_id": self.backend_id,
                        }
                    )
                    continue
                self._replies.put_nowait(msg)
        finally:
            self._closed = True
            self._replies.put_nowait(_EOF)


class StdioAdapter:
    """Adapter forwarding HTTP requests to a stdio backend's channel."""

    def __init__(
        self,
        backend_id: str,
        config: StdioTransportConfig,
        supervisor: "ProcessSupervisor",
    ) -> None:
        self.backend_id = backend_id
        self.config = config
        self._supervisor = supervisor

    async def forward(self, request: Request, subpath: str = "") -> Response:
        """Write the request body to the process and return its reply."""
        payload = await read_json_body(request)
        channel = self._supervisor.channel(self.backend_id)
        reply = await channel.call(payload, timeout=self.config.timeout)
        return JSONResponse(content=reply)

    async def aclose(self) -> None:
        """Nothing to release; the supervisor owns the process."""
