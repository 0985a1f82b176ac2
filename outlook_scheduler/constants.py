"""
Default identity and Microsoft Graph constants.

The default client is a multi-tenant public app registration, so users from
any organization can sign in interactively and consent to delegated
permissions on first use.
"""

DEFAULT_CLIENT_ID = "ca696137-503f-4489-bdf4-7cb76e272639"
DEFAULT_TENANT_ID = "common"
DEFAULT_REDIRECT_URI = "http://localhost"

AUTHORITY_HOST = "https://login.microsoftonline.com"
GRAPH_RESOURCE = "https://graph.microsoft.com"
GRAPH_API_BASE = f"{GRAPH_RESOURCE}/v1.0"

DEFAULT_SCOPE = f"{GRAPH_RESOURCE}/.default"

# Delegated scopes requested in interactive mode
INTERACTIVE_SCOPES = [
    f"{GRAPH_RESOURCE}/Calendars.ReadWrite",
    f"{GRAPH_RESOURCE}/People.Read",
    f"{GRAPH_RESOURCE}/User.Read",
]

TOKEN_CACHE_NAME = "outlook-mcp-cache"
