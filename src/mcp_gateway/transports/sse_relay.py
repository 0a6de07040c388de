"""SSE relay transport.

Two paths share the backend's URL:

- GET /mcp/{id}/sse opens one upstream event stream per client and relays
  every upstream event (name, data, id, retry) as an outbound SSE event.
  The upstream response is closed as soon as the client goes away.
- POST /mcp/{id} sends the JSON body upstream and returns the reply.

Upstream failure on the stream produces a single "error" event carrying
{"error": "SSE connection error"} and ends the stream. There is no
reconnect.
"""

from __future__ import annotations

__all__ = [
    "SSE_ERROR_PAYLOAD",
    "SseEvent",
    "SseRelayAdapter",
    "iter_sse_events",
]

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator

import httpx
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from mcp_gateway.config import SseTransportConfig
from mcp_gateway.constants import APP_NAME
from mcp_gateway.exceptions import UpstreamTimeoutError, UpstreamUnavailableError

from .body import read_json_body
from .client import create_http_client

_logger = logging.getLogger(f"{APP_NAME}.transports.sse_relay")

SSE_ERROR_PAYLOAD: dict[str, str] = {"error": "SSE connection error"}


@dataclass
class SseEvent:
    """One parsed Server-Sent Event.

    Attributes:
        event: Event name ("message" when the upstream sent none).
        data: Data lines joined with newlines.
        event_id: Optional event id.
        retry: Optional reconnection delay in milliseconds.
    """

    event: str = "message"
    data: str = ""
    event_id: str | None = None
    retry: int | None = None

    def to_message(self) -> dict[str, Any]:
        """Render as an EventSourceResponse item."""
        message: dict[str, Any] = {"event": self.event, "data": self.data}
        if self.event_id is not None:
            message["id"] = self.event_id
        if self.retry is not None:
            message["retry"] = self.retry
        return message


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[SseEvent]:
    """Parse an event stream into events.

    Comment lines are skipped. A blank line dispatches the pending event if
    it carries data; events without data are discarded.

    Args:
        lines: Stream lines without terminators (httpx aiter_lines()).

    Yields:
        Complete events in upstream order.
    """
    current: SseEvent | None = None
    data_lines: list[str] = []

    async for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if current is not None and data_lines:
                current.data = "\n".join(data_lines)
                yield current
            current = None
            data_lines = []
            continue
        if line.startswith(":"):
            continue

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if current is None:
            current = SseEvent()

        if field == "event":
            current.event = value or "message"
        elif field == "data":
            data_lines.append(value)
        elif field == "id":
            current.event_id = value
        elif field == "retry":
            try:
                current.retry = int(value)
            except ValueError:
                pass

    # A final event is only complete once its blank line arrives
    if current is not None and data_lines:
        _logger.debug(
            {
                "event": "sse_trailing_event_dropped",
                "message": "Upstream stream ended mid-event",
            }
        )


class SseRelayAdapter:
    """Adapter relaying an upstream SSE server."""

    def __init__(
        self,
        backend_id: str,
        config: SseTransportConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.backend_id = backend_id
        self.config = config
        self._client = create_http_client(config.timeout, config.headers, transport=transport)

    async def forward(self, request: Request, subpath: str = "") -> Response:
        """POST the JSON body upstream and return the decoded reply.

        Upstream error statuses are passed through with {"error": message}.

        Raises:
            InvalidRequestError: If the inbound body is not JSON.
            UpstreamTimeoutError: If the upstream does not answer in time.
            UpstreamUnavailableError: If the upstream cannot be reached.
        """
        payload = await read_json_body(request)

        start_time = time.monotonic()
        try:
            upstream = await self._client.post(
                self.config.url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.TimeoutException as e:
            _logger.warning(
                {
                    "event": "upstream_timeout",
                    "message": f"Timeout posting to {self.backend_id}",
                    "backend_id": self.backend_id,
                    "duration_ms": int((time.monotonic() - start_time) * 1000),
                }
            )
            raise UpstreamTimeoutError(
                "Gateway Timeout",
                {"backend_id": self.backend_id, "timeout_seconds": self.config.timeout},
            ) from e
        except httpx.TransportError as e:
            _logger.warning(
                {
                    "event": "upstream_connect_failed",
                    "message": f"Failed to reach {self.backend_id} at {self.config.url}",
                    "backend_id": self.backend_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                }
            )
            raise UpstreamUnavailableError(
                "Bad Gateway",
                {"backend_id": self.backend_id, "detail": str(e) or type(e).__name__},
            ) from e

        if upstream.status_code >= 400:
            message = f"Request failed with status code {upstream.status_code}"
            _logger.warning(
                {
                    "event": "upstream_response_error",
                    "message": f"{self.backend_id}: {message}",
                    "backend_id": self.backend_id,
                    "status_code": upstream.status_code,
                    "duration_ms": int((time.monotonic() - start_time) * 1000),
                }
            )
            return JSONResponse(status_code=upstream.status_code, content={"error": message})

        try:
            return JSONResponse(status_code=upstream.status_code, content=upstream.json())
        except ValueError:
            # Accepted-style replies carry no JSON body
            return Response(
                content=upstream.content,
                status_code=upstream.status_code,
                media_type=upstream.headers.get("content-type"),
            )

    def stream(self, request: Request) -> EventSourceResponse:
        """Open an event-stream response relaying the upstream."""
        return EventSourceResponse(self.relay_events(request))

    async def relay_events(self, request: Request) -> AsyncIterator[dict[str, Any]]:
        """Relay upstream events until either side goes away.

        Closing this generator (client disconnect) closes the upstream
        response.
        """
        _logger.info(
            {
                "event": "sse_client_connected",
                "message": f"SSE client connected to {self.backend_id}",
                "backend_id": self.backend_id,
            }
        )
        failed = False
        try:
            async with self._client.stream(
                "GET",
                self.config.url,
                headers={"Accept": "text/event-stream"},
                # Idle streams are normal; only connect and write are bounded
                timeout=httpx.Timeout(self.config.timeout, read=None),
            ) as upstream:
                if upstream.status_code != 200:
                    _logger.warning(
                        {
                            "event": "sse_upstream_rejected",
                            "message": f"{self.backend_id} event stream returned {upstream.status_code}",
                            "backend_id": self.backend_id,
                            "status_code": upstream.status_code,
                        }
                    )
                    failed = True
                else:
                    async for event in iter_sse_events(upstream.aiter_lines()):
                        if await request.is_disconnected():
                            break
                        yield event.to_message()
        except httpx.HTTPError as e:
            _logger.warning(
                {
                    "event": "sse_upstream_error",
                    "message": f"{self.backend_id} event stream failed: {e}",
                    "backend_id": self.backend_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                }
            )
            failed = True
        finally:
            _logger.info(
                {
                    "event": "sse_client_disconnected",
                    "message": f"SSE relay for {self.backend_id} closed",
                    "backend_id": self.backend_id,
                }
            )

        if failed:
            yield {"event": "error", "data": json.dumps(SSE_ERROR_PAYLOAD)}

    async def aclose(self) -> None:
        """Close the pooled client."""
        await self._client.aclose()
