"""Shared fixtures for mcp-gateway tests.

Stdio backends are real Python child processes (sys.executable -u -c ...)
so the tests exercise actual pipes, exits and signals.
"""

from __future__ import annotations

import sys
import textwrap
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from mcp_gateway.config import GatewaySettings, StdioTransportConfig, TransportConfig
from mcp_gateway.gateway import Gateway
from mcp_gateway.registry import BackendRegistry
from mcp_gateway.routes import create_gateway_app
from mcp_gateway.supervisor import ProcessSupervisor


# ---------------------------------------------------------------------------
# Backend scripts
# ---------------------------------------------------------------------------

# Replies to every JSON-RPC request with its params, keeping the id
ECHO_SERVER = textwrap.dedent(
    """
    import json, sys
    while True:
        line = sys.stdin.readline()
        if not line:
            break
        if not line.strip():
            continue
        msg = json.loads(line)
        reply = {"jsonrpc": "2.0", "id": msg.get("id"), "result": {"echo": msg.get("params")}}
        sys.stdout.write(json.dumps(reply) + "\\n")
        sys.stdout.flush()
    """
)

# Prints a banner and a notification before each reply
CHATTY_SERVER = textwrap.dedent(
    """
    import json, sys
    sys.stdout.write("Server listening on stdio\\n")
    sys.stdout.flush()
    while True:
        line = sys.stdin.readline()
        if not line:
            break
        msg = json.loads(line)
        sys.stdout.write(json.dumps({"jsonrpc": "2.0", "method": "notifications/progress"}) + "\\n")
        sys.stdout.write("debug: handling request\\n")
        sys.stdout.write(json.dumps({"jsonrpc": "2.0", "id": msg.get("id"), "result": "ok"}) + "\\n")
        sys.stdout.flush()
    """
)

# Reads requests and never answers
SILENT_SERVER = textwrap.dedent(
    """
    import sys
    while sys.stdin.readline():
        pass
    """
)

# Answers the first request late, every later request immediately
SLOW_FIRST_SERVER = textwrap.dedent(
    """
    import json, sys, time
    first = True
    while True:
        line = sys.stdin.readline()
        if not line:
            break
        msg = json.loads(line)
        if first:
            time.sleep(0.5)
            first = False
        sys.stdout.write(json.dumps({"jsonrpc": "2.0", "id": msg.get("id"), "result": msg.get("id")}) + "\\n")
        sys.stdout.flush()
    """
)

# Reads one request, then exits without answering
EXIT_ON_REQUEST_SERVER = textwrap.dedent(
    """
    import sys
    sys.stdin.readline()
    sys.exit(7)
    """
)

# Replies with the named environment variable and the working directory
ENV_SERVER = textwrap.dedent(
    """
    import json, os, sys
    while True:
        line = sys.stdin.readline()
        if not line:
            break
        msg = json.loads(line)
        name = msg.get("params", {}).get("name", "")
        result = {"value": os.environ.get(name), "cwd": os.getcwd()}
        sys.stdout.write(json.dumps({"jsonrpc": "2.0", "id": msg.get("id"), "result": result}) + "\\n")
        sys.stdout.flush()
    """
)

# Ignores SIGTERM; only SIGKILL ends it
STUBBORN_SERVER = textwrap.dedent(
    """
    import signal, sys, time
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
    sys.stdout.write("ready\\n")
    sys.stdout.flush()
    while True:
        time.sleep(0.1)
    """
)


BACKEND_SCRIPTS: dict[str, str] = {
    "echo": ECHO_SERVER,
    "chatty": CHATTY_SERVER,
    "silent": SILENT_SERVER,
    "slow_first": SLOW_FIRST_SERVER,
    "exit_on_request": EXIT_ON_REQUEST_SERVER,
    "env": ENV_SERVER,
    "stubborn": STUBBORN_SERVER,
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def python_backend() -> Callable[..., StdioTransportConfig]:
    """Factory for stdio configs running a Python script.

    Accepts a BACKEND_SCRIPTS name ("echo", "silent", ...) or inline source.
    """

    def factory(script: str, timeout: float = 5.0, **kwargs: Any) -> StdioTransportConfig:
        return StdioTransportConfig(
            command=sys.executable,
            args=["-u", "-c", BACKEND_SCRIPTS.get(script, script)],
            timeout=timeout,
            **kwargs,
        )

    return factory


@pytest.fixture
def registry() -> BackendRegistry:
    """Create a fresh registry for each test."""
    return BackendRegistry()


@pytest.fixture
async def supervisor(registry: BackendRegistry):
    """Supervisor whose processes are reaped after the test."""
    sup = ProcessSupervisor(registry)
    yield sup
    await sup.shutdown(grace=1.0)


@pytest.fixture
def settings() -> GatewaySettings:
    """Settings with a fixed public base URL."""
    return GatewaySettings(port=3000, base_url="http://gateway.test")


@pytest.fixture
def make_client(settings: GatewaySettings):
    """Factory for a TestClient around a gateway with the given backends.

    The client is entered immediately, so backends are started by the app
    lifespan, and exited (backends shut down) after the test.

    Usage:
        client = make_client({"api": HttpTransportConfig(url=...)}, upstream_handler)
        gateway = client.app.state.gateway
    """
    clients: list[TestClient] = []

    def factory(
        configs: dict[str, TransportConfig],
        http_handler: Callable[[httpx.Request], httpx.Response] | None = None,
    ) -> TestClient:
        transport = httpx.MockTransport(http_handler) if http_handler is not None else None
        gateway = Gateway(settings, http_transport=transport)
        gateway.load_backends(configs)
        client = TestClient(create_gateway_app(gateway))
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)
