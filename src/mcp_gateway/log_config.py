"""Gateway logging configuration.

Owns the handlers and formatters of the "mcp-gateway" logger. Other
modules get their own child logger via:
    _logger = logging.getLogger(f"{APP_NAME}.registry")

Python loggers are singletons by name, so every child propagates to the
handlers installed here. Messages are dicts with at least "event" and
"message" keys; the console shows the message, the JSONL file keeps the
whole dict.
"""

from __future__ import annotations

__all__ = [
    "ISO8601Formatter",
    "configure_logging",
    "log_event",
]

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from mcp_gateway.config import GatewaySettings
from mcp_gateway.constants import APP_NAME
from mcp_gateway.models import GatewaySystemEvent

_logger = logging.getLogger(APP_NAME)
_logger.setLevel(logging.INFO)
_logger.propagate = False


class ISO8601Formatter(logging.Formatter):
    """JSONL formatter with ISO 8601 timestamps (UTC).

    Format: YYYY-MM-DDTHH:MM:SS.sssZ
    Example: 2025-12-04T10:48:37.123Z
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as one JSON line with the timestamp first."""
        timestamp = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

        if isinstance(record.msg, dict):
            log_data = record.msg
        else:
            log_data = {"message": record.getMessage()}

        log_entry = {"time": timestamp, "level": record.levelname, **log_data}
        return json.dumps(log_entry, default=str)


class _ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        # Use getMessage() to substitute %s placeholders with args
        return f"{record.levelname}: {record.getMessage()}"


# Initialize with stderr-only until settings are loaded
if not _logger.handlers:
    _stderr_handler = logging.StreamHandler()
    _stderr_handler.setFormatter(_ConsoleFormatter())
    _logger.addHandler(_stderr_handler)


def configure_logging(settings: GatewaySettings) -> None:
    """Configure gateway logging from settings.

    Sets up:
    - stderr handler at settings.log_level for operator visibility
    - file handler (if settings.log_file): WARNING+ as JSONL

    Calling it again replaces the previous handlers.

    Args:
        settings: Gateway settings.
    """
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    # Close and clear any existing handlers to avoid resource leaks
    for handler in _logger.handlers:
        handler.close()
    _logger.handlers.clear()
    _logger.setLevel(min(level, logging.WARNING))

    stderr_handler = logging.StreamHandler()
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(_ConsoleFormatter())
    _logger.addHandler(stderr_handler)

    if not settings.log_file:
        return

    log_path = Path(settings.log_file).expanduser()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        # WARNING+ only - no operational noise in persistent logs
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.WARNING)
        file_handler.setFormatter(ISO8601Formatter())
        _logger.addHandler(file_handler)
    except OSError as e:
        log_event(
            logging.WARNING,
            GatewaySystemEvent(
                event="file_logging_failed",
                message=f"Failed to configure file logging at {log_path}",
                error_type=type(e).__name__,
                error_message=str(e),
            ),
        )


def log_event(level: int, event: GatewaySystemEvent) -> None:
    """Log a GatewaySystemEvent at the specified level.

    Serializes the event to a dict (excluding None values) and logs it.
    The ISO8601Formatter adds the timestamp during serialization.

    Args:
        level: Logging level (e.g., logging.INFO, logging.WARNING).
        event: The event to log.
    """
    _logger.log(level, event.model_dump(exclude_none=True))
