"""Formatting helpers shared by the calendar tools."""

from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, TypedDict

from dateutil.rrule import DAILY, FR, MO, TH, TU, WE, rrule

DEFAULT_TIME_ZONE = "GMT Standard Time"


class AttendeeInput(TypedDict, total=False):
    """An attendee as passed in by the caller."""
    email: str
    name: str
    type: str


def auth_required_text(auth_error: str) -> str:
    return f"Authentication Required\n\n{auth_error}\n\nPlease complete the authentication and try again."


def next_business_day(today: Optional[date] = None) -> date:
    """The first weekday after ``today``."""
    today = today or date.today()
    start = datetime.combine(today + timedelta(days=1), datetime.min.time())
    return rrule(DAILY, dtstart=start, byweekday=(MO, TU, WE, TH, FR), count=1)[0].date()


def default_window(start: Optional[str], end: Optional[str], today: Optional[date] = None) -> tuple:
    """Fill missing start/end with noon to 1 PM on the next business day."""
    day = next_business_day(today).isoformat()
    return start or f"{day}T12:00:00", end or f"{day}T13:00:00"


def timestamp_now() -> str:
    return datetime.now().strftime("%d-%b-%Y %H:%M")


def format_attendees(attendees: Iterable[AttendeeInput]) -> List[Dict[str, Any]]:
    """Convert caller attendees into Graph attendee objects."""
    return [
        {
            "emailAddress": {
                "address": attendee["email"],
                "name": attendee.get("name") or attendee["email"],
            },
            "type": attendee.get("type") or "required",
        }
        for attendee in attendees
    ]


def attendee_email(attendee: Dict[str, Any]) -> str:
    return ((attendee.get("emailAddress") or {}).get("address") or "").lower()


def merge_attendees(existing: List[Dict[str, Any]], new: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Append attendees not already present, comparing e-mails case-insensitively."""
    seen = {attendee_email(a) for a in existing if attendee_email(a)}
    merged = list(existing)
    for attendee in new:
        email = attendee_email(attendee)
        if email in seen:
            continue
        seen.add(email)
        merged.append(attendee)
    return merged


def describe_attendee(attendee: Dict[str, Any]) -> str:
    email_address = attendee.get("emailAddress") or {}
    name = email_address.get("name") or "No name"
    email = email_address.get("address") or "No email"
    return f"{name} ({email}) - {attendee.get('type') or 'required'}"
