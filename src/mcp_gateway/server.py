"""Gateway daemon (run_gateway entry point).

Binds the listening socket, builds the app around a Gateway loaded from
settings, and runs uvicorn until a shutdown signal. Backend startup and
shutdown run in the app lifespan.

Failure to bind the socket is the only fatal error.
"""

from __future__ import annotations

__all__ = ["bind_socket", "run_gateway"]

import errno
import logging
import os
import socket

import uvicorn

from mcp_gateway.config import GatewaySettings
from mcp_gateway.constants import HTTP_LISTEN_BACKLOG
from mcp_gateway.gateway import Gateway
from mcp_gateway.log_config import configure_logging, log_event
from mcp_gateway.models import GatewaySystemEvent
from mcp_gateway.routes import create_gateway_app


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind and listen on host:port.

    Raises:
        RuntimeError: If the address cannot be bound.
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    http_socket = socket.socket(family, socket.SOCK_STREAM)
    http_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        http_socket.bind((host, port))
    except OSError as e:
        http_socket.close()
        if e.errno == errno.EADDRINUSE:
            raise RuntimeError(
                f"Port {port} is already in use.\n"
                f"Another process is using this port. "
                f"Use --port to specify a different port."
            ) from e
        raise RuntimeError(f"Cannot bind {host}:{port}: {e}") from e
    http_socket.listen(HTTP_LISTEN_BACKLOG)
    http_socket.setblocking(False)
    return http_socket


async def run_gateway(settings: GatewaySettings) -> None:
    """Run the gateway until interrupted.

    Args:
        settings: Process-wide settings.

    Raises:
        RuntimeError: If the listening socket cannot be bound.
    """
    configure_logging(settings)

    # Suppress uvicorn's logging (we use our own)
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)

    http_socket = bind_socket(settings.host, settings.port)

    gateway = Gateway.from_settings(settings)
    app = create_gateway_app(gateway)

    log_event(
        logging.INFO,
        GatewaySystemEvent(
            event="gateway_starting",
            message=f"Gateway starting: {settings.host}:{settings.port}, pid={os.getpid()}",
            details={
                "host": settings.host,
                "port": settings.port,
                "base_url": settings.public_base_url,
                "config_path": settings.config_path,
                "pid": os.getpid(),
            },
        ),
    )

    http_config = uvicorn.Config(
        app,
        log_config=None,
        ws="none",  # SSE only, no WebSockets
        lifespan="on",
    )
    http_server = uvicorn.Server(http_config)

    try:
        await http_server.serve(sockets=[http_socket])
    finally:
        try:
            http_socket.close()
        except OSError:
            pass  # Non-critical cleanup

        log_event(
            logging.INFO,
            GatewaySystemEvent(
                event="gateway_stopped",
                message="Gateway shutdown complete",
            ),
        )
