"""
Helper for registering MCP tools.

Every tool is logged on entry and never raises into the MCP layer: any
exception becomes an ``Error: ...`` text response.
"""

import functools
from typing import Any, Awaitable, Callable

import httpx
from fastmcp import Context, FastMCP

from .context import AppContext
from .logging_config import get_logger

logger = get_logger(__name__)


def get_app_context(ctx: Context) -> AppContext:
    """Extract the AppContext from the MCP lifespan context."""
    return ctx.request_context.lifespan_context


def describe_error(exc: Exception) -> str:
    """User-facing text for an exception raised by a tool handler."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in (401, 403):
            return (
                f"Microsoft Graph rejected the request ({status}). The access token may have "
                "expired, been revoked, or lack the required permissions."
            )
        return f"Microsoft Graph request failed ({status}): {exc.response.text or exc}"
    return str(exc) or type(exc).__name__


def _loggable_params(kwargs: dict) -> dict:
    # Secret values are masked by the redact_secrets log processor
    return {key: value for key, value in kwargs.items() if not isinstance(value, Context)}


def register_tool(
    mcp: FastMCP, name: str, description: str
) -> Callable[[Callable[..., Awaitable[str]]], Callable[..., Awaitable[str]]]:
    """Decorator registering an async tool with shared logging and error handling."""

    def decorator(fn: Callable[..., Awaitable[str]]) -> Callable[..., Awaitable[str]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> str:
            logger.info(f"Executing {name} tool", extra={"data": {"params": _loggable_params(kwargs)}})
            try:
                return await fn(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in {name}", exc_info=True)
                return f"Error: {describe_error(e)}"

        mcp.tool(name=name, description=description)(wrapper)
        return wrapper

    return decorator
