"""Gateway routes package.

Builds the FastAPI application around an owned Gateway:
- errors: structured error rendering
- middleware: size limit, security headers, access log
- health: GET /health
- servers: listing, detail and start/stop management
- forwarding: request forwarding and SSE relay
"""

from __future__ import annotations

__all__ = [
    "create_gateway_app",
    "error_response",
]

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from mcp_gateway import __version__
from mcp_gateway.constants import CORS_ALLOWED_HEADERS, CORS_ALLOWED_METHODS
from mcp_gateway.exceptions import GatewayError
from mcp_gateway.gateway import Gateway
from mcp_gateway.log_config import log_event
from mcp_gateway.models import GatewaySystemEvent

from .errors import (
    error_response,
    gateway_error_handler,
    http_exception_handler,
    validation_error_handler,
)
from .middleware import GatewayHTTPMiddleware

# Import routers
from . import forwarding
from . import health
from . import servers


def create_gateway_app(gateway: Gateway, manage_lifecycle: bool = True) -> FastAPI:
    """Create the FastAPI application for a gateway.

    Args:
        gateway: The gateway whose registry and adapters back the routes.
        manage_lifecycle: If True, backends are started when the app starts
            and shut down when it stops.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            await gateway.startup()
        log_event(
            logging.INFO,
            GatewaySystemEvent(
                event="gateway_ready",
                message=f"Gateway ready at {gateway.settings.public_base_url} with {len(gateway.registry)} backend(s)",
                details={"backends": gateway.registry.ids()},
            ),
        )
        try:
            yield
        finally:
            if manage_lifecycle:
                await gateway.shutdown()

    app = FastAPI(
        title="MCP Gateway",
        description="Single HTTP entry point for stdio, HTTP and SSE MCP servers",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    app.state.gateway = gateway

    # Exception handlers for structured error responses
    app.add_exception_handler(GatewayError, gateway_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]

    # Added last runs first: CORS wraps everything, including error responses
    app.add_middleware(GatewayHTTPMiddleware)
    origins = [o.strip() for o in gateway.settings.cors_origin.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=list(CORS_ALLOWED_METHODS),
        allow_headers=list(CORS_ALLOWED_HEADERS),
        max_age=3600,  # Cache preflight for 1 hour
    )

    # Order matters: management routes before the subpath catch-all
    app.include_router(health.router)
    app.include_router(servers.router)
    app.include_router(forwarding.router)

    return app
