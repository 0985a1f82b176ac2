"""
Microsoft Graph client for calendar events and people.

Thin wrapper over httpx. Bearer tokens are attached per request by the
GraphAuthProvider passed in as the httpx auth hook, so a rotated or
refreshed token is picked up without rebuilding the client.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from .constants import GRAPH_API_BASE
from .logging_config import get_logger

logger = get_logger(__name__)

EVENT_FIELDS = "id,subject,body,start,end,location,attendees,organizer,isAllDay,webLink"


def _quote_odata(value: str) -> str:
    """Escape a value for use inside a single-quoted OData string literal."""
    return value.replace("'", "''")


class GraphClient:
    """Calendar and people operations against Microsoft Graph v1.0."""

    def __init__(
        self,
        auth: httpx.Auth,
        base_url: str = GRAPH_API_BASE,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            auth=auth,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def user_path(user_email: Optional[str]) -> str:
        """Resource path for a mailbox; the signed-in user when no e-mail is known."""
        if not user_email:
            return "/me"
        return f"/users/{quote(user_email, safe='@')}"

    async def get_me(self) -> Dict[str, Any]:
        """Get the signed-in user's profile."""
        response = await self._client.get("/me", params={"$select": "id,displayName,mail,userPrincipalName"})
        response.raise_for_status()
        return response.json()

    async def create_event(self, event: Dict[str, Any], user_email: Optional[str]) -> Dict[str, Any]:
        logger.info("Creating event", extra={"data": {"subject": event.get("subject")}})
        response = await self._client.post(f"{self.user_path(user_email)}/calendar/events", json=event)
        response.raise_for_status()
        logger.info("Event created")
        return response.json()

    async def get_event(self, event_id: str, user_email: Optional[str]) -> Optional[Dict[str, Any]]:
        """Fetch an event by id. Returns None if it does not exist."""
        response = await self._client.get(
            f"{self.user_path(user_email)}/events/{quote(event_id, safe='')}",
            params={"$select": EVENT_FIELDS},
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def list_events(
        self,
        user_email: Optional[str],
        subject: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        top: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        List events, optionally filtered by subject text and time range.

        With both bounds the calendar view is used so recurring series are
        expanded into occurrences; otherwise events are filtered directly.
        """
        params: Dict[str, Any] = {
            "$select": "id,subject,start,end,location,attendees",
            "$orderby": "start/dateTime",
        }
        filters = []
        if subject:
            filters.append(f"contains(subject,'{_quote_odata(subject)}')")

        if start and end:
            endpoint = f"{self.user_path(user_email)}/calendarView"
            params["startDateTime"] = start
            params["endDateTime"] = end
        else:
            endpoint = f"{self.user_path(user_email)}/events"
            if start:
                filters.append(f"start/dateTime ge '{_quote_odata(start)}'")
            if end:
                filters.append(f"end/dateTime le '{_quote_odata(end)}'")

        if filters:
            params["$filter"] = " and ".join(filters)
        if top:
            params["$top"] = top

        response = await self._client.get(endpoint, params=params)
        response.raise_for_status()
        return response.json().get("value", [])

    async def update_event(
        self, event_id: str, updates: Dict[str, Any], user_email: Optional[str]
    ) -> Dict[str, Any]:
        logger.info("Updating event", extra={"data": {"event_id": event_id, "fields": list(updates)}})
        response = await self._client.patch(
            f"{self.user_path(user_email)}/events/{quote(event_id, safe='')}", json=updates
        )
        response.raise_for_status()
        return response.json()

    async def delete_event(self, event_id: str, user_email: Optional[str]) -> None:
        logger.info("Deleting event", extra={"data": {"event_id": event_id}})
        response = await self._client.delete(f"{self.user_path(user_email)}/events/{quote(event_id, safe='')}")
        response.raise_for_status()

    async def search_people(self, search_term: str, user_email: Optional[str]) -> List[Dict[str, Any]]:
        """
        Find people matching a name.

        The people API ranks recent contacts first; the directory is only
        searched when it has no match.
        """
        response = await self._client.get(
            f"{self.user_path(user_email)}/people",
            params={"$search": f'"{search_term}"'},
        )
        response.raise_for_status()
        people = response.json().get("value", [])
        if people:
            logger.info("Found matching contacts from people API", extra={"data": {"count": len(people)}})
            return people

        logger.info("No results from people API, searching directory")
        response = await self._client.get(
            "/users",
            params={
                "$filter": f"startswith(displayName,'{_quote_odata(search_term)}')",
                "$select": "displayName,mail,userPrincipalName",
                "$top": 5,
            },
        )
        response.raise_for_status()
        return response.json().get("value", [])

    async def close(self) -> None:
        await self._client.aclose()
