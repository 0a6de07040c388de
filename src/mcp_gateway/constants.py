"""Application-wide constants for mcp-gateway.

Constants that define application behavior.
For user-configurable settings per deployment, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    # HTTP surface
    "DEFAULT_PORT",
    "DEFAULT_HOST",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_CORS_ORIGIN",
    "CORS_ALLOWED_METHODS",
    "CORS_ALLOWED_HEADERS",
    "HTTP_LISTEN_BACKLOG",
    "MAX_REQUEST_BODY_BYTES",
    # Transport timeouts
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
    "MIN_REQUEST_TIMEOUT_SECONDS",
    "MAX_REQUEST_TIMEOUT_SECONDS",
    "UPSTREAM_CONNECT_TIMEOUT_SECONDS",
    # Process supervision
    "STDIO_STREAM_LIMIT_BYTES",
    "PROCESS_SHUTDOWN_GRACE_SECONDS",
    "PROCESS_EOF_DRAIN_SECONDS",
    # Redaction
    "REDACTED_VALUE",
]

# ============================================================================
# Application Identity
# ============================================================================

# Used for logger names and the User-Agent sent to upstream servers
APP_NAME: str = "mcp-gateway"

# ============================================================================
# HTTP Surface
# ============================================================================

DEFAULT_PORT: int = 3000
DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_CONFIG_PATH: str = "./config.json"
DEFAULT_CORS_ORIGIN: str = "*"

CORS_ALLOWED_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "OPTIONS")
CORS_ALLOWED_HEADERS: tuple[str, ...] = ("Content-Type", "Authorization", "X-MCP-Server")

HTTP_LISTEN_BACKLOG: int = 100

# Largest request body accepted for forwarding (10mb)
MAX_REQUEST_BODY_BYTES: int = 10 * 1024 * 1024

# ============================================================================
# Transport Timeouts
# ============================================================================

# Bound on a single backend round trip (stdio reply, upstream POST)
DEFAULT_REQUEST_TIMEOUT_SECONDS: float = 30.0
MIN_REQUEST_TIMEOUT_SECONDS: float = 0.01
MAX_REQUEST_TIMEOUT_SECONDS: float = 600.0

UPSTREAM_CONNECT_TIMEOUT_SECONDS: float = 10.0

# ============================================================================
# Process Supervision
# ============================================================================

# Max size of one stdout line from a stdio backend (matches MAX_REQUEST_BODY_BYTES)
STDIO_STREAM_LIMIT_BYTES: int = 10 * 1024 * 1024

# How long shutdown waits for SIGTERM before sending SIGKILL
PROCESS_SHUTDOWN_GRACE_SECONDS: float = 5.0

# How long the exit watcher lets the stdout reader catch up after exit
PROCESS_EOF_DRAIN_SECONDS: float = 1.0

# ============================================================================
# Redaction
# ============================================================================

REDACTED_VALUE: str = "***"
