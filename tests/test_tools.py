"""
Tests for the MCP tool handlers.

Handlers are called directly with a stub application context whose Graph
client talks to a mock transport.
"""

import json
from datetime import date

import httpx
import pytest
from fastmcp import FastMCP

from outlook_scheduler.config import Settings
from outlook_scheduler.context import AppContext, GraphConfig
from outlook_scheduler.graph import GraphClient
from outlook_scheduler.server import create_server
from outlook_scheduler.tool_registration import describe_error, register_tool
from outlook_scheduler.tools import auth as auth_tools
from outlook_scheduler.tools.common import (
    default_window,
    merge_attendees,
    next_business_day,
)
from outlook_scheduler.tools.event_create import create_event
from outlook_scheduler.tools.event_delete import delete_event
from outlook_scheduler.tools.event_read import get_event, list_events
from outlook_scheduler.tools.event_update import update_event, update_event_attendees
from outlook_scheduler.tools.people import find_person

EVENT = {
    "id": "evt-1",
    "subject": "Design review",
    "start": {"dateTime": "2025-04-22T12:00:00.0000000", "timeZone": "GMT Standard Time"},
    "end": {"dateTime": "2025-04-22T13:00:00.0000000", "timeZone": "GMT Standard Time"},
    "location": {"displayName": "Room 4"},
    "attendees": [
        {"emailAddress": {"address": "Bob@Contoso.com", "name": "Bob"}, "type": "required"},
    ],
    "webLink": "https://outlook.office365.com/owa/?itemid=evt-1",
}


class StubApp:
    """Application context returning a fixed GraphConfig."""

    def __init__(self, config: GraphConfig):
        self.config = config

    async def get_graph_config(self) -> GraphConfig:
        return self.config


@pytest.fixture
def graph_app(recording_transport):
    def factory(handler, user_email="jane@contoso.com"):
        transport = recording_transport(handler)
        graph = GraphClient(httpx.Auth(), transport=transport)
        return StubApp(GraphConfig(graph=graph, user_email=user_email)), transport

    return factory


def _event_handler(request):
    if request.method == "GET":
        return httpx.Response(200, json=EVENT, request=request)
    body = json.loads(request.content)
    return httpx.Response(200, json={**EVENT, **body}, request=request)


# -- Authentication required --


@pytest.mark.parametrize(
    "call",
    [
        lambda app: find_person(app, "Jane"),
        lambda app: create_event(app, "Sync", "Agenda"),
        lambda app: get_event(app, "evt-1"),
        lambda app: list_events(app),
        lambda app: update_event(app, "evt-1", subject="New"),
        lambda app: update_event_attendees(app, "evt-1", remove_attendees=["bob@contoso.com"]),
        lambda app: delete_event(app, "evt-1"),
    ],
)
async def test_tools_report_missing_authentication(call):
    app = StubApp(GraphConfig(graph=None, user_email=None, auth_error="Open the link and enter ABC"))

    result = await call(app)

    assert result.startswith("Authentication Required")
    assert "Open the link and enter ABC" in result


# -- People --


class TestFindPerson:

    async def test_lists_matches(self, graph_app):
        people = [
            {"displayName": "Jane Doe", "scoredEmailAddresses": [{"address": "jane@contoso.com"}]},
            {"displayName": "Jane Roe", "userPrincipalName": "jroe@contoso.com"},
        ]
        app, _ = graph_app(lambda r: httpx.Response(200, json={"value": people}, request=r))

        result = await find_person(app, "Jane")

        assert 'Found 2 people matching "Jane"' in result
        assert "1. Jane Doe (jane@contoso.com)" in result
        assert "2. Jane Roe (jroe@contoso.com)" in result

    async def test_no_matches(self, graph_app):
        app, _ = graph_app(lambda r: httpx.Response(200, json={"value": []}, request=r))

        result = await find_person(app, "Nobody")

        assert result == 'No people found matching "Nobody". Please provide the full email address.'


# -- Create --


class TestCreateEvent:

    async def test_defaults_to_next_business_day_at_noon(self, graph_app, monkeypatch):
        app, transport = graph_app(
            lambda r: httpx.Response(201, json={"id": "evt-9", "webLink": "https://outlook/evt-9"}, request=r)
        )
        monkeypatch.setattr(
            "outlook_scheduler.tools.event_create.default_window",
            lambda start, end: default_window(start, end, today=date(2025, 4, 18)),
        )

        result = await create_event(app, "Sync", "Agenda")

        sent = json.loads(transport.requests[0].content)
        assert sent["start"] == {"dateTime": "2025-04-21T12:00:00", "timeZone": "GMT Standard Time"}
        assert sent["end"] == {"dateTime": "2025-04-21T13:00:00", "timeZone": "GMT Standard Time"}
        assert sent["body"]["contentType"] == "html"
        assert sent["body"]["content"].startswith("Agenda<br/>Request submitted around ")
        assert "attendees" not in sent
        assert "Calendar event created successfully!" in result
        assert "Event ID: evt-9" in result
        assert "User: jane@contoso.com" in result

    async def test_with_attendees_and_location(self, graph_app):
        app, transport = graph_app(lambda r: httpx.Response(201, json={"id": "evt-9"}, request=r))

        result = await create_event(
            app,
            "Sync",
            "Agenda",
            start="2025-04-20T09:00:00",
            end="2025-04-20T09:30:00",
            time_zone="Pacific Standard Time",
            location="Room 1",
            attendees=[{"email": "bob@contoso.com"}, {"email": "amy@contoso.com", "name": "Amy", "type": "optional"}],
        )

        sent = json.loads(transport.requests[0].content)
        assert sent["location"] == {"displayName": "Room 1"}
        assert sent["attendees"] == [
            {"emailAddress": {"address": "bob@contoso.com", "name": "bob@contoso.com"}, "type": "required"},
            {"emailAddress": {"address": "amy@contoso.com", "name": "Amy"}, "type": "optional"},
        ]
        assert "Amy (amy@contoso.com) - optional" in result
        assert "Event URL: No event URL available" in result


# -- Read --


class TestReadEvents:

    async def test_get_event_details(self, graph_app):
        app, _ = graph_app(_event_handler)

        result = await get_event(app, "evt-1")

        assert "Subject: Design review" in result
        assert "Location: Room 4" in result
        assert "Bob (Bob@Contoso.com) - required" in result

    async def test_get_missing_event(self, graph_app):
        app, _ = graph_app(lambda r: httpx.Response(404, json={}, request=r))

        result = await get_event(app, "evt-x")

        assert result.startswith("Failed to retrieve the event")

    async def test_list_events(self, graph_app):
        app, _ = graph_app(lambda r: httpx.Response(200, json={"value": [EVENT]}, request=r))

        result = await list_events(app, subject="Design")

        assert result.startswith("Found 1 calendar events:")
        assert "1. ID: evt-1" in result
        assert "Attendees: 1" in result

    async def test_list_events_empty(self, graph_app):
        app, _ = graph_app(lambda r: httpx.Response(200, json={"value": []}, request=r))

        assert await list_events(app) == "No events found matching your criteria."


# -- Update --


class TestUpdateEvent:

    async def test_merges_new_attendees(self, graph_app):
        app, transport = graph_app(_event_handler)

        result = await update_event(
            app,
            "evt-1",
            subject="Design review v2",
            attendees=[{"email": "bob@contoso.com"}, {"email": "carol@contoso.com"}],
        )

        patch = json.loads(transport.requests[1].content)
        assert [a["emailAddress"]["address"] for a in patch["attendees"]] == [
            "Bob@Contoso.com",
            "carol@contoso.com",
        ]
        assert "New Subject: Design review v2" in result
        assert "Previous: Design review" in result

    async def test_start_keeps_existing_time_zone(self, graph_app):
        app, transport = graph_app(_event_handler)

        await update_event(app, "evt-1", start="2025-04-22T14:00:00")

        patch = json.loads(transport.requests[1].content)
        assert patch == {"start": {"dateTime": "2025-04-22T14:00:00", "timeZone": "GMT Standard Time"}}

    async def test_nothing_to_change(self, graph_app):
        app, transport = graph_app(_event_handler)

        result = await update_event(app, "evt-1")

        assert result == "No changes were specified for the event."
        assert [r.method for r in transport.requests] == ["GET"]

    async def test_add_and_remove_attendees(self, graph_app):
        app, transport = graph_app(_event_handler)

        result = await update_event_attendees(
            app,
            "evt-1",
            add_attendees=[{"email": "carol@contoso.com", "name": "Carol"}],
            remove_attendees=["bob@contoso.com"],
        )

        patch = json.loads(transport.requests[1].content)
        assert [a["emailAddress"]["address"] for a in patch["attendees"]] == ["carol@contoso.com"]
        assert "Added attendees:\ncarol@contoso.com" in result
        assert "Removed attendees:\nBob@Contoso.com" in result

    async def test_attendee_update_without_changes(self, graph_app):
        app, transport = graph_app(_event_handler)

        assert await update_event_attendees(app, "evt-1") == "No changes to attendees were specified."
        assert transport.requests == []


# -- Delete --


class TestDeleteEvent:

    async def test_deletes_existing_event(self, graph_app):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json=EVENT, request=request)
            return httpx.Response(204, request=request)

        app, transport = graph_app(handler)

        result = await delete_event(app, "evt-1")

        assert result == "Calendar event deleted successfully! Event ID: evt-1"
        assert [r.method for r in transport.requests] == ["GET", "DELETE"]

    async def test_missing_event_is_not_deleted(self, graph_app):
        app, transport = graph_app(lambda r: httpx.Response(404, json={}, request=r))

        result = await delete_event(app, "evt-x")

        assert result == "Could not find the event to delete. Please check the event ID."
        assert [r.method for r in transport.requests] == ["GET"]


# -- Auth tools --


class TestAuthTools:

    async def test_status_for_supplied_token(self, make_jwt):
        app = AppContext(
            settings_factory=lambda: Settings(
                _env_file=None,
                ACCESS_TOKEN=make_jwt({"scp": "Calendars.ReadWrite People.Read"}),
                USER_EMAIL="jane@contoso.com",
            )
        )

        result = await auth_tools.get_auth_status(app)

        assert "Mode: client_provided_token" in result
        assert "Ready: yes" in result
        assert "User: jane@contoso.com" in result
        assert "Token expired: no" in result
        assert "Scopes: Calendars.ReadWrite, People.Read" in result
        await app.aclose()

    async def test_status_reports_configuration_error(self):
        app = AppContext(
            settings_factory=lambda: Settings(_env_file=None, CLIENT_SECRET="s", TENANT_ID="t", CLIENT_ID="c")
        )

        result = await auth_tools.get_auth_status(app)

        assert "Mode: client_credentials" in result
        assert "Ready: no" in result
        assert "Error: USER_EMAIL is required" in result

    async def test_update_token_with_expiry(self, make_jwt):
        app = AppContext(settings_factory=lambda: Settings(_env_file=None, AUTH_MODE="client_provided_token"))

        result = await auth_tools.update_access_token(
            app, make_jwt({"scp": "User.Read"}), "2099-01-01T00:00:00Z"
        )

        assert result.startswith("Access token updated successfully.")
        assert "Token expires on: 2099-01-01T00:00:00+00:00" in result
        assert "Scopes: User.Read" in result
        await app.aclose()


# -- Helpers --


class TestCommon:

    @pytest.mark.parametrize(
        "today, expected",
        [
            (date(2025, 4, 17), date(2025, 4, 18)),  # Thursday
            (date(2025, 4, 18), date(2025, 4, 21)),  # Friday
            (date(2025, 4, 19), date(2025, 4, 21)),  # Saturday
        ],
    )
    def test_next_business_day(self, today, expected):
        assert next_business_day(today) == expected

    def test_default_window_keeps_given_times(self):
        assert default_window("2025-01-01T08:00:00", None, today=date(2025, 4, 18)) == (
            "2025-01-01T08:00:00",
            "2025-04-21T13:00:00",
        )

    def test_merge_attendees_ignores_case(self):
        existing = [{"emailAddress": {"address": "Bob@Contoso.com"}}]
        new = [{"emailAddress": {"address": "bob@contoso.com"}}, {"emailAddress": {"address": "amy@contoso.com"}}]

        merged = merge_attendees(existing, new)

        assert [a["emailAddress"]["address"] for a in merged] == ["Bob@Contoso.com", "amy@contoso.com"]


class TestRegistration:

    def test_describe_error_for_rejected_token(self):
        request = httpx.Request("GET", "https://graph.microsoft.com/v1.0/me")
        error = httpx.HTTPStatusError("401", request=request, response=httpx.Response(401, request=request))

        assert "rejected the request (401)" in describe_error(error)

    async def test_errors_become_text(self):
        mcp = FastMCP("test")

        @register_tool(mcp, "explode", "Always fails")
        async def explode() -> str:
            raise RuntimeError("kaboom")

        assert await explode() == "Error: kaboom"

    async def test_server_registers_all_tools(self):
        tools = await create_server().get_tools()

        assert set(tools) == {
            "find-person",
            "create-event",
            "create-event-with-attendees",
            "get-event",
            "list-events",
            "update-event",
            "update-event-attendees",
            "delete-event",
            "get-auth-status",
            "update-access-token",
        }
