"""Calendar event update tools."""

from typing import Annotated, Any, Dict, List, Optional

from fastmcp import Context, FastMCP
from pydantic import Field

from ..context import AppContext
from ..tool_registration import get_app_context, register_tool
from .common import attendee_email, auth_required_text, format_attendees, merge_attendees, timestamp_now
from .event_create import Attendee


async def update_event(
    app: AppContext,
    event_id: str,
    subject: Optional[str] = None,
    body: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    time_zone: Optional[str] = None,
    location: Optional[str] = None,
    attendees: Optional[List[Dict[str, Any]]] = None,
) -> str:
    """Patch the given fields; new attendees are merged with the existing ones."""
    config = await app.get_graph_config()
    if config.auth_error:
        return auth_required_text(config.auth_error)

    current = await config.graph.get_event(event_id, config.user_email)
    if not current:
        return "Could not find the event to update. Please check the event ID."

    updates: Dict[str, Any] = {}
    if subject:
        updates["subject"] = subject
    if body:
        updates["body"] = {
            "contentType": "html",
            "content": f"{body}<br/>Updated around {timestamp_now()}",
        }
    if start:
        updates["start"] = {"dateTime": start, "timeZone": time_zone or (current.get("start") or {}).get("timeZone")}
    if end:
        updates["end"] = {"dateTime": end, "timeZone": time_zone or (current.get("end") or {}).get("timeZone")}
    if location:
        updates["location"] = {"displayName": location}
    if attendees:
        updates["attendees"] = merge_attendees(current.get("attendees") or [], format_attendees(attendees))

    if not updates:
        return "No changes were specified for the event."

    result = await config.graph.update_event(event_id, updates, config.user_email)

    lines = ["Calendar event updated successfully!", "", f"Event ID: {event_id}"]
    if subject:
        lines += [f"New Subject: {subject}", f"Previous: {current.get('subject') or 'No subject'}"]
    if start:
        lines += [f"New Start: {start}", f"Previous: {(current.get('start') or {}).get('dateTime') or 'No start time'}"]
    if end:
        lines += [f"New End: {end}", f"Previous: {(current.get('end') or {}).get('dateTime') or 'No end time'}"]
    if location:
        previous = (current.get("location") or {}).get("displayName") or "No location"
        lines += [f"New Location: {location}", f"Previous: {previous}"]
    lines.append(f"Event URL: {result.get('webLink') or 'No event URL available'}")
    return "\n".join(lines)


async def update_event_attendees(
    app: AppContext,
    event_id: str,
    add_attendees: Optional[List[Dict[str, Any]]] = None,
    remove_attendees: Optional[List[str]] = None,
) -> str:
    config = await app.get_graph_config()
    if config.auth_error:
        return auth_required_text(config.auth_error)

    if not add_attendees and not remove_attendees:
        return "No changes to attendees were specified."

    current = await config.graph.get_event(event_id, config.user_email)
    if not current:
        return "Could not find the event to update. Please check the event ID."

    attendees = list(current.get("attendees") or [])

    removed = []
    if remove_attendees:
        to_remove = {email.lower() for email in remove_attendees}
        kept = []
        for attendee in attendees:
            if attendee_email(attendee) in to_remove:
                removed.append((attendee.get("emailAddress") or {}).get("address"))
            else:
                kept.append(attendee)
        attendees = kept

    added = []
    if add_attendees:
        before = {attendee_email(a) for a in attendees}
        attendees = merge_attendees(attendees, format_attendees(add_attendees))
        added = [a["emailAddress"]["address"] for a in attendees if attendee_email(a) not in before]

    result = await config.graph.update_event(event_id, {"attendees": attendees}, config.user_email)

    text = "Calendar event attendees updated successfully!\n\n"
    text += f"Event: {current.get('subject') or 'No subject'}\n"
    if added:
        text += "\nAdded attendees:\n" + "\n".join(added) + "\n"
    if removed:
        text += "\nRemoved attendees:\n" + "\n".join(removed) + "\n"
    text += f"\nEvent URL: {result.get('webLink') or 'No event URL available'}"
    return text


def register_event_update_tools(mcp: FastMCP) -> None:
    @register_tool(mcp, "update-event", "Update an existing calendar event")
    async def update_event_tool(
        eventId: Annotated[str, Field(description="ID of the event to update")],
        ctx: Context,
        subject: Annotated[Optional[str], Field(description="New subject for the calendar event")] = None,
        body: Annotated[Optional[str], Field(description="New content/body for the calendar event")] = None,
        start: Annotated[Optional[str], Field(
            description="New start time in ISO format (e.g. 2025-04-20T12:00:00)"
        )] = None,
        end: Annotated[Optional[str], Field(
            description="New end time in ISO format (e.g. 2025-04-20T13:00:00)"
        )] = None,
        timeZone: Annotated[Optional[str], Field(description="New time zone for the event")] = None,
        location: Annotated[Optional[str], Field(description="New location for the event")] = None,
        attendees: Annotated[Optional[List[Attendee]], Field(
            description="List of attendees to add or update for the event"
        )] = None,
    ) -> str:
        return await update_event(
            get_app_context(ctx),
            eventId,
            subject,
            body,
            start,
            end,
            timeZone,
            location,
            [a.model_dump(exclude_none=True) for a in attendees] if attendees else None,
        )

    @register_tool(mcp, "update-event-attendees", "Add or remove attendees from a calendar event")
    async def update_event_attendees_tool(
        eventId: Annotated[str, Field(description="ID of the event to update")],
        ctx: Context,
        addAttendees: Annotated[Optional[List[Attendee]], Field(
            description="List of attendees to add to the event"
        )] = None,
        removeAttendees: Annotated[Optional[List[str]], Field(
            description="List of email addresses to remove from the event"
        )] = None,
    ) -> str:
        return await update_event_attendees(
            get_app_context(ctx),
            eventId,
            [a.model_dump(exclude_none=True) for a in addAttendees] if addAttendees else None,
            removeAttendees,
        )
