"""People lookup tool."""

from typing import Annotated

from fastmcp import Context, FastMCP
from pydantic import Field

from ..context import AppContext
from ..tool_registration import get_app_context, register_tool
from .common import auth_required_text


async def find_person(app: AppContext, name: str) -> str:
    """Search recent contacts, then the directory, for people matching ``name``."""
    config = await app.get_graph_config()
    if config.auth_error:
        return auth_required_text(config.auth_error)

    people = await config.graph.search_people(name, config.user_email)
    if not people:
        return f'No people found matching "{name}". Please provide the full email address.'

    lines = []
    for index, person in enumerate(people, start=1):
        email = (
            person.get("mail")
            or person.get("userPrincipalName")
            or next(iter(person.get("scoredEmailAddresses") or person.get("emailAddresses") or []), {}).get("address")
            or "No email available"
        )
        lines.append(f"{index}. {person.get('displayName') or 'Unknown name'} ({email})")

    return (
        f'Found {len(people)} people matching "{name}":\n\n'
        + "\n".join(lines)
        + "\n\nYou can use these email addresses to create a calendar event."
    )


def register_people_tools(mcp: FastMCP) -> None:
    @register_tool(mcp, "find-person", "Find a person's email address by their name")
    async def find_person_tool(
        name: Annotated[str, Field(description="Name or partial name of the person to find")],
        ctx: Context,
    ) -> str:
        return await find_person(get_app_context(ctx), name)
