"""
Structured logging configuration for the Outlook MCP server.

stdout carries the MCP stdio protocol, so every log line goes to stderr.
Bearer tokens and client secrets pass through tool arguments and auth
results; redact_secrets masks them before any renderer sees the event.
"""

import logging
import sys
from typing import Any, Optional

import structlog

# Keys whose values never reach the logs, at any nesting depth
SECRET_KEYS = frozenset({
    "access_token",
    "accessToken",
    "refresh_token",
    "client_secret",
    "clientSecret",
    "authorization",
    "Authorization",
})
MASK = "***"


def _mask(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: MASK if k in SECRET_KEYS else _mask(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_mask(v) for v in value)
    return value


def redact_secrets(logger: Any, method_name: str, event_dict: dict) -> dict:
    """structlog processor masking SECRET_KEYS values in the event."""
    return _mask(event_dict)


def configure_logging(log_level: str = "INFO", enable_json: bool = False) -> None:
    """
    Route structlog and stdlib logging to stderr.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_json: Whether to use JSON output (True) or console output (False)
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
        force=True
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if enable_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        # No ANSI codes: stderr is usually captured by the MCP host's log file
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger; ``name`` is usually the module's __name__."""
    return structlog.get_logger(name)
