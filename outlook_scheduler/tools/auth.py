"""Authentication status and token rotation tools."""

from typing import Annotated, Optional

from dateutil import parser as date_parser
from fastmcp import Context, FastMCP
from pydantic import Field

from ..config import AuthMode
from ..context import AppContext
from ..tool_registration import get_app_context, register_tool


async def get_auth_status(app: AppContext) -> str:
    """Report the auth mode, any pending device code prompt and token status."""
    config = await app.get_graph_config()
    manager = app.auth_manager or app.pending_manager

    mode = app.auth_config.mode if app.auth_config else None
    lines = [
        "Authentication status:",
        "",
        f"Mode: {mode.value if isinstance(mode, AuthMode) else mode or 'unresolved'}",
        f"Ready: {'yes' if config.graph is not None else 'no'}",
        f"User: {(config.user_email or 'me') if config.graph is not None else 'unknown'}",
    ]

    if manager is not None:
        lines.append(f"Authenticating: {'yes' if manager.is_authenticating() else 'no'}")
        info = manager.get_device_code_info()
        if info is not None:
            lines += [
                "",
                "Device code sign-in pending:",
                f"Verification URI: {info.verification_uri}",
                f"User code: {info.user_code}",
                info.message,
            ]

        status = await manager.get_token_status()
        lines += ["", f"Token expired: {'yes' if status.is_expired else 'no'}"]
        if status.expires_on is not None:
            lines.append(f"Token expires on: {status.expires_on.isoformat()}")
        if status.scopes is not None:
            lines.append(f"Scopes: {', '.join(status.scopes) or 'none'}")

    if config.auth_error and (manager is None or manager.get_device_code_info() is None):
        lines += ["", f"Error: {config.auth_error}"]

    return "\n".join(lines)


async def update_access_token(app: AppContext, access_token: str, expires_on: Optional[str] = None) -> str:
    expires = date_parser.isoparse(expires_on) if expires_on else None
    await app.update_access_token(access_token, expires)
    return "Access token updated successfully.\n\n" + await get_auth_status(app)


def register_auth_tools(mcp: FastMCP) -> None:
    @register_tool(
        mcp,
        "get-auth-status",
        "Check Microsoft Graph authentication status, starting sign-in if it has not happened yet",
    )
    async def get_auth_status_tool(ctx: Context) -> str:
        return await get_auth_status(get_app_context(ctx))

    @register_tool(
        mcp,
        "update-access-token",
        "Provide a new Microsoft Graph access token (client provided token mode only)",
    )
    async def update_access_token_tool(
        accessToken: Annotated[str, Field(description="Bearer access token for Microsoft Graph")],
        ctx: Context,
        expiresOn: Annotated[Optional[str], Field(
            description="Token expiry in ISO format (e.g. 2025-04-20T13:00:00Z). Defaults to one hour from now"
        )] = None,
    ) -> str:
        return await update_access_token(get_app_context(ctx), accessToken, expiresOn)
