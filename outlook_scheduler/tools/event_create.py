"""Calendar event creation tools."""

from typing import Annotated, Any, Dict, List, Literal, Optional

from fastmcp import Context, FastMCP
from pydantic import BaseModel, Field

from ..context import AppContext
from ..tool_registration import get_app_context, register_tool
from .common import (
    DEFAULT_TIME_ZONE,
    auth_required_text,
    default_window,
    describe_attendee,
    format_attendees,
    timestamp_now,
)


class Attendee(BaseModel):
    email: str = Field(description="Email address of the attendee")
    name: Optional[str] = Field(default=None, description="Name of the attendee")
    type: Optional[Literal["required", "optional"]] = Field(
        default=None, description="Type of attendee: required or optional"
    )


def build_event(
    subject: str,
    body: str,
    start: str,
    end: str,
    time_zone: str,
    location: Optional[str] = None,
    attendees: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    event: Dict[str, Any] = {
        "subject": subject,
        "body": {
            "contentType": "html",
            "content": f"{body}<br/>Request submitted around {timestamp_now()}",
        },
        "start": {"dateTime": start, "timeZone": time_zone},
        "end": {"dateTime": end, "timeZone": time_zone},
    }
    if location:
        event["location"] = {"displayName": location}
    if attendees is not None:
        event["attendees"] = attendees
    return event


async def create_event(
    app: AppContext,
    subject: str,
    body: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    time_zone: Optional[str] = None,
    location: Optional[str] = None,
    attendees: Optional[List[Dict[str, Any]]] = None,
) -> str:
    """Create an event; ``attendees`` are caller dicts with email/name/type."""
    config = await app.get_graph_config()
    if config.auth_error:
        return auth_required_text(config.auth_error)

    time_zone = time_zone or DEFAULT_TIME_ZONE
    start, end = default_window(start, end)
    graph_attendees = format_attendees(attendees) if attendees is not None else None

    result = await config.graph.create_event(
        build_event(subject, body, start, end, time_zone, location, graph_attendees),
        config.user_email,
    )

    lines = [
        "Calendar event created successfully!",
        "",
        f"Subject: {subject}",
        f"Start: {start}",
        f"End: {end}",
        f"Time Zone: {time_zone}",
    ]
    if location:
        lines.append(f"Location: {location}")
    lines.append(f"User: {config.user_email or 'me'}")
    if graph_attendees is not None:
        lines.append("Attendees:")
        lines.extend(describe_attendee(a) for a in graph_attendees)
    lines.append(f"Event ID: {result.get('id') or 'No event ID available'}")
    lines.append(f"Event URL: {result.get('webLink') or 'No event URL available'}")
    return "\n".join(lines)


def register_event_create_tools(mcp: FastMCP) -> None:
    @register_tool(mcp, "create-event", "Create a calendar event using Microsoft Graph API")
    async def create_event_tool(
        subject: Annotated[str, Field(description="Subject of the calendar event")],
        body: Annotated[str, Field(description="Content/body of the calendar event")],
        ctx: Context,
        start: Annotated[Optional[str], Field(
            description="Start time in ISO format (e.g. 2025-04-20T12:00:00). Defaults to next business day at noon"
        )] = None,
        end: Annotated[Optional[str], Field(
            description="End time in ISO format (e.g. 2025-04-20T13:00:00). Defaults to next business day at 1PM"
        )] = None,
        timeZone: Annotated[Optional[str], Field(
            description="Time zone for the event. Defaults to GMT Standard Time"
        )] = None,
    ) -> str:
        return await create_event(get_app_context(ctx), subject, body, start, end, timeZone)

    @register_tool(
        mcp, "create-event-with-attendees", "Create a calendar event with attendees using Microsoft Graph API"
    )
    async def create_event_with_attendees_tool(
        subject: Annotated[str, Field(description="Subject of the calendar event")],
        body: Annotated[str, Field(description="Content/body of the calendar event")],
        attendees: Annotated[List[Attendee], Field(description="List of attendees for the event")],
        ctx: Context,
        start: Annotated[Optional[str], Field(
            description="Start time in ISO format (e.g. 2025-04-20T12:00:00). Defaults to next business day at noon"
        )] = None,
        end: Annotated[Optional[str], Field(
            description="End time in ISO format (e.g. 2025-04-20T13:00:00). Defaults to next business day at 1PM"
        )] = None,
        timeZone: Annotated[Optional[str], Field(
            description="Time zone for the event. Defaults to GMT Standard Time"
        )] = None,
        location: Annotated[Optional[str], Field(description="Location of the event")] = None,
    ) -> str:
        return await create_event(
            get_app_context(ctx),
            subject,
            body,
            start,
            end,
            timeZone,
            location,
            [a.model_dump(exclude_none=True) for a in attendees],
        )
