"""MCP tool handlers, grouped by the Graph resource they act on."""

from fastmcp import FastMCP

from .auth import register_auth_tools
from .event_create import register_event_create_tools
from .event_delete import register_event_delete_tools
from .event_read import register_event_read_tools
from .event_update import register_event_update_tools
from .people import register_people_tools


def register_all_tools(mcp: FastMCP) -> None:
    register_people_tools(mcp)
    register_event_create_tools(mcp)
    register_event_read_tools(mcp)
    register_event_update_tools(mcp)
    register_event_delete_tools(mcp)
    register_auth_tools(mcp)
