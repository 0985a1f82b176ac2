"""Calendar event deletion tool."""

from typing import Annotated

from fastmcp import Context, FastMCP
from pydantic import Field

from ..context import AppContext
from ..tool_registration import get_app_context, register_tool
from .common import auth_required_text


async def delete_event(app: AppContext, event_id: str) -> str:
    config = await app.get_graph_config()
    if config.auth_error:
        return auth_required_text(config.auth_error)

    # Confirm the event exists before deleting it
    event = await config.graph.get_event(event_id, config.user_email)
    if not event:
        return "Could not find the event to delete. Please check the event ID."

    await config.graph.delete_event(event_id, config.user_email)
    return f"Calendar event deleted successfully! Event ID: {event_id}"


def register_event_delete_tools(mcp: FastMCP) -> None:
    @register_tool(mcp, "delete-event", "Delete a calendar event")
    async def delete_event_tool(
        eventId: Annotated[str, Field(description="ID of the event to delete")],
        ctx: Context,
    ) -> str:
        return await delete_event(get_app_context(ctx), eventId)
