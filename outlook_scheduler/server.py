#!/usr/bin/env python3
"""
Outlook Meetings Scheduler MCP Server.

Exposes Microsoft Graph calendar and people operations as MCP tools over
stdio. A single AppContext is created in the lifespan and shared by every
tool invocation; authentication happens on the first tool call.
"""

import argparse
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastmcp import FastMCP

from . import __version__
from .context import AppContext
from .logging_config import configure_logging, get_logger
from .tools import register_all_tools

logger = get_logger(__name__)


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Create the shared application context for the server lifetime."""
    app = AppContext()
    try:
        yield app
    finally:
        await app.aclose()


def create_server() -> FastMCP:
    mcp = FastMCP(name="outlook-meetings-scheduler", lifespan=app_lifespan)
    register_all_tools(mcp)
    return mcp


def main():
    """Entry point: run the MCP server over stdio."""
    load_dotenv()

    parser = argparse.ArgumentParser(description="Outlook Meetings Scheduler MCP server (stdio)")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"), help="Logging level")
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes"),
        help="Emit JSON log lines on stderr",
    )
    args = parser.parse_args()

    configure_logging(log_level=args.log_level, enable_json=args.json_logs)

    mcp = create_server()
    logger.info(f"outlook-meetings-scheduler {__version__} MCP server running on stdio")
    mcp.run()


if __name__ == "__main__":
    main()
