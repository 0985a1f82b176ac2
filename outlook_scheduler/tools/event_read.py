"""Calendar event retrieval tools."""

from typing import Annotated, Optional

from fastmcp import Context, FastMCP
from pydantic import Field

from ..context import AppContext
from ..tool_registration import get_app_context, register_tool
from .common import auth_required_text, describe_attendee


async def get_event(app: AppContext, event_id: str) -> str:
    config = await app.get_graph_config()
    if config.auth_error:
        return auth_required_text(config.auth_error)

    event = await config.graph.get_event(event_id, config.user_email)
    if not event:
        return "Failed to retrieve the event. The event might not exist. Please check the event ID."

    start = event.get("start") or {}
    end = event.get("end") or {}
    attendees = event.get("attendees") or []

    lines = [
        "Calendar event details:",
        "",
        f"Event ID: {event_id}",
        f"Subject: {event.get('subject') or 'No subject'}",
        f"Start: {start.get('dateTime') or 'No start time available'}",
        f"End: {end.get('dateTime') or 'No end time available'}",
        f"Time Zone: {start.get('timeZone') or 'No time zone information'}",
        f"Location: {(event.get('location') or {}).get('displayName') or 'No location specified'}",
        f"User: {config.user_email or 'me'}",
        "Attendees:",
    ]
    lines.extend([describe_attendee(a) for a in attendees] or ["None"])
    lines.append(f"Event URL: {event.get('webLink') or 'No event URL available'}")
    return "\n".join(lines)


async def list_events(
    app: AppContext,
    subject: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    max_results: Optional[int] = None,
) -> str:
    config = await app.get_graph_config()
    if config.auth_error:
        return auth_required_text(config.auth_error)

    events = await config.graph.list_events(
        config.user_email, subject=subject, start=start_date, end=end_date, top=max_results
    )
    if not events:
        return "No events found matching your criteria."

    entries = []
    for index, event in enumerate(events, start=1):
        start = (event.get("start") or {}).get("dateTime") or "No start time"
        end = (event.get("end") or {}).get("dateTime") or "No end time"
        location = (event.get("location") or {}).get("displayName") or "No location"
        entries.append(
            f"{index}. ID: {event.get('id')}\n"
            f"   Subject: {event.get('subject')}\n"
            f"   Time: {start} to {end}\n"
            f"   Location: {location}\n"
            f"   Attendees: {len(event.get('attendees') or [])}"
        )

    return (
        f"Found {len(events)} calendar events:\n\n"
        + "\n\n".join(entries)
        + "\n\nYou can use the event IDs above to get details, update, or delete specific events."
    )


def register_event_read_tools(mcp: FastMCP) -> None:
    @register_tool(mcp, "get-event", "Get details of a calendar event by its ID")
    async def get_event_tool(
        eventId: Annotated[str, Field(description="ID of the event to retrieve")],
        ctx: Context,
    ) -> str:
        return await get_event(get_app_context(ctx), eventId)

    @register_tool(mcp, "list-events", "List calendar events with optional filtering")
    async def list_events_tool(
        ctx: Context,
        subject: Annotated[Optional[str], Field(
            description="Filter events by subject containing this text"
        )] = None,
        startDate: Annotated[Optional[str], Field(
            description="Start date in ISO format (e.g. 2025-04-20T00:00:00) to filter events from"
        )] = None,
        endDate: Annotated[Optional[str], Field(
            description="End date in ISO format (e.g. 2025-04-20T23:59:59) to filter events until"
        )] = None,
        maxResults: Annotated[Optional[int], Field(description="Maximum number of events to return")] = None,
    ) -> str:
        return await list_events(get_app_context(ctx), subject, startDate, endDate, maxResults)
