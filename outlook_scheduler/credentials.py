"""
Credential variants for Microsoft Graph.

Three interchangeable ways of producing a bearer token, each exposing the
same capability: ``await credential.get_token(*scopes)``.

- ClientSecretCredential: app-only identity (tenant, client id, secret)
- ClientProvidedTokenCredential: token supplied and rotated by the caller
- InteractiveCredential: user sign-in via browser, or device code when no
  browser can be launched

The variants do not share a base class; AuthManager dispatches on the
concrete type where behavior differs.
"""

import asyncio
import os
import sys
import threading
import webbrowser
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import msal

from .constants import AUTHORITY_HOST, DEFAULT_REDIRECT_URI, GRAPH_RESOURCE
from .errors import AuthenticationError
from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)
EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass(frozen=True)
class AccessToken:
    """An opaque bearer token and the moment it stops being valid."""
    token: str
    expires_on: datetime


@dataclass(frozen=True)
class DeviceCodeInfo:
    """Prompt details for a pending device code sign-in."""
    user_code: str
    verification_uri: str
    message: str
    expires_on: Optional[datetime] = None

    @classmethod
    def from_flow(cls, flow: Dict[str, Any]) -> "DeviceCodeInfo":
        """Build from the dict returned by msal's initiate_device_flow."""
        expires_on = None
        if flow.get("expires_at"):
            expires_on = datetime.fromtimestamp(flow["expires_at"], tz=timezone.utc)
        verification_uri = flow.get("verification_uri") or flow.get("verification_url", "")
        return cls(
            user_code=flow["user_code"],
            verification_uri=verification_uri,
            message=flow.get("message")
            or f"To sign in, open {verification_uri} and enter the code {flow['user_code']}",
            expires_on=expires_on,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_code": self.user_code,
            "verification_uri": self.verification_uri,
            "message": self.message,
            "expires_on": self.expires_on.isoformat() if self.expires_on else None,
        }


DeviceCodeCallback = Callable[[DeviceCodeInfo], None]
SignInCallback = Callable[[], None]


def to_graph_scopes(scopes: Iterable[str]) -> List[str]:
    """Qualify bare scope names (".default", "User.Read") with the Graph resource."""
    qualified = []
    for scope in scopes:
        if scope.startswith(("https://", "http://", "api://")) or scope in ("openid", "profile", "offline_access"):
            qualified.append(scope)
        else:
            qualified.append(f"{GRAPH_RESOURCE}/{scope.lstrip('/')}")
    return qualified


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _token_from_result(result: Optional[Dict[str, Any]], failure: str) -> AccessToken:
    """Turn an msal result dict into an AccessToken or raise AuthenticationError."""
    if result and "access_token" in result:
        expires_in = int(result.get("expires_in", DEFAULT_TOKEN_LIFETIME.total_seconds()))
        return AccessToken(
            token=result["access_token"],
            expires_on=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )

    result = result or {}
    error_desc = result.get("error_description") or result.get("error") or "Unknown error"
    raise AuthenticationError(
        f"{failure}: {error_desc}",
        error=result.get("error"),
        error_codes=result.get("error_codes"),
    )


class ClientSecretCredential:
    """App-only credential using the OAuth client credentials grant."""

    def __init__(self, tenant_id: str, client_id: str, client_secret: str):
        self.tenant_id = tenant_id
        self.client_id = client_id
        self._client_secret = client_secret
        self._app: Optional[msal.ConfidentialClientApplication] = None
        self._app_lock = threading.Lock()

    def _get_app(self) -> msal.ConfidentialClientApplication:
        # Constructing the app performs authority discovery over the network
        with self._app_lock:
            if self._app is None:
                self._app = msal.ConfidentialClientApplication(
                    client_id=self.client_id,
                    client_credential=self._client_secret,
                    authority=f"{AUTHORITY_HOST}/{self.tenant_id}",
                )
            return self._app

    def _acquire(self, scopes: List[str]) -> Dict[str, Any]:
        # msal returns a cached token here while it is still valid
        return self._get_app().acquire_token_for_client(scopes=scopes)

    async def get_token(self, *scopes: str) -> AccessToken:
        result = await asyncio.to_thread(self._acquire, to_graph_scopes(scopes))
        logger.debug("Token acquired via client credentials flow")
        return _token_from_result(result, "Client credentials authentication failed")


class ClientProvidedTokenCredential:
    """
    Credential holding a token supplied from outside the process.

    Without a token the credential reports itself expired (expiry at the
    epoch) until update_token() is called.
    """

    def __init__(self, access_token: Optional[str] = None, expires_on: Optional[datetime] = None):
        self._access_token: Optional[str] = None
        self._expires_on: datetime = EPOCH
        if access_token:
            self._set(access_token, expires_on)

    def _set(self, access_token: str, expires_on: Optional[datetime]) -> None:
        self._access_token = access_token
        if expires_on is None:
            expires_on = datetime.now(timezone.utc) + DEFAULT_TOKEN_LIFETIME
        self._expires_on = _as_utc(expires_on)

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    async def get_token(self, *scopes: str) -> Optional[AccessToken]:
        if not self._access_token or self.is_expired():
            logger.error("Access token is not available or has expired")
            return None
        return AccessToken(token=self._access_token, expires_on=self._expires_on)

    def update_token(self, access_token: str, expires_on: Optional[datetime] = None) -> None:
        self._set(access_token, expires_on)
        logger.info("Access token updated successfully")

    def is_expired(self) -> bool:
        return self._expires_on <= datetime.now(timezone.utc)

    def get_expiration_time(self) -> datetime:
        return self._expires_on


def ensure_browser_available() -> None:
    """Raise webbrowser.Error when no browser can be opened for sign-in."""
    if sys.platform.startswith("linux") and not (
        os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY")
    ):
        raise webbrowser.Error("No display available for browser sign-in")
    webbrowser.get()


class InteractiveCredential:
    """
    Delegated credential for a signed-in user.

    flow="browser" opens the system browser and listens on the redirect URI;
    constructing it fails when no browser is available. flow="device_code"
    hands the prompt to ``prompt_callback`` and then polls until the user
    completes sign-in on another device. Both try the token cache first.
    A pending device code poll runs in a worker thread; cancel() ends it.
    """

    BROWSER = "browser"
    DEVICE_CODE = "device_code"

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        flow: str = BROWSER,
        redirect_uri: Optional[str] = None,
        token_cache: Optional[msal.TokenCache] = None,
        prompt_callback: Optional[DeviceCodeCallback] = None,
        completion_callback: Optional[SignInCallback] = None,
        interactive_timeout: Optional[int] = None,
    ):
        if flow not in (self.BROWSER, self.DEVICE_CODE):
            raise ValueError(f"Unknown interactive flow: {flow}")
        if flow == self.BROWSER:
            ensure_browser_available()
        elif prompt_callback is None:
            raise ValueError("Device code flow requires a prompt_callback")

        self.tenant_id = tenant_id
        self.client_id = client_id
        self.flow = flow
        self.redirect_uri = redirect_uri or DEFAULT_REDIRECT_URI
        self.prompt_callback = prompt_callback
        self.completion_callback = completion_callback
        self.interactive_timeout = interactive_timeout
        self._token_cache = token_cache
        self._app: Optional[msal.PublicClientApplication] = None
        self._app_lock = threading.Lock()
        self._pending_flow: Optional[Dict[str, Any]] = None

    def _get_app(self) -> msal.PublicClientApplication:
        with self._app_lock:
            if self._app is None:
                kwargs = {"authority": f"{AUTHORITY_HOST}/{self.tenant_id}"}
                if self._token_cache is not None:
                    kwargs["token_cache"] = self._token_cache
                self._app = msal.PublicClientApplication(self.client_id, **kwargs)
            return self._app

    def _acquire_silent(self, scopes: List[str]) -> Optional[Dict[str, Any]]:
        app = self._get_app()
        accounts = app.get_accounts()
        if not accounts:
            return None
        result = app.acquire_token_silent(scopes=scopes, account=accounts[0])
        if result and "access_token" in result:
            logger.debug("Token acquired from cache (delegated)")
            return result
        return None

    def _acquire_interactive(self, scopes: List[str]) -> Dict[str, Any]:
        return self._get_app().acquire_token_interactive(
            scopes=scopes,
            port=urlparse(self.redirect_uri).port,
            timeout=self.interactive_timeout,
        )

    async def _acquire_by_device_code(self, scopes: List[str]) -> Dict[str, Any]:
        app = self._get_app()
        flow = await asyncio.to_thread(app.initiate_device_flow, scopes=scopes)
        if "user_code" not in flow:
            raise AuthenticationError(
                f"Failed to create device flow: {flow.get('error_description', 'Unknown error')}",
                error=flow.get("error"),
                error_codes=flow.get("error_codes"),
            )

        self._pending_flow = flow
        try:
            # Runs on the event loop; must return without waiting for the user
            self.prompt_callback(DeviceCodeInfo.from_flow(flow))
            result = await asyncio.to_thread(app.acquire_token_by_device_flow, flow)
        except asyncio.CancelledError:
            self.cancel()
            raise
        finally:
            if self._pending_flow is flow:
                self._pending_flow = None

        if result and "access_token" in result and self.completion_callback is not None:
            self.completion_callback()
        return result

    def cancel(self) -> None:
        """Stop polling for a pending device code sign-in, if any."""
        flow = self._pending_flow
        if flow is None:
            return
        # msal stops polling once expires_at has passed
        flow["expires_at"] = 0
        self._pending_flow = None
        logger.info("Device code sign-in cancelled")

    async def get_token(self, *scopes: str) -> AccessToken:
        graph_scopes = to_graph_scopes(scopes)
        result = await asyncio.to_thread(self._acquire_silent, graph_scopes)
        if result is None:
            if self.flow == self.BROWSER:
                logger.info("Starting interactive browser authentication")
                result = await asyncio.to_thread(self._acquire_interactive, graph_scopes)
            else:
                logger.info("Starting device code authentication flow")
                result = await self._acquire_by_device_code(graph_scopes)
        return _token_from_result(result, "Interactive authentication failed")
