"""
Authentication manager for Microsoft Graph.

Owns the single active credential for the process, drives its
initialization, tracks a pending device code sign-in and reports token
status. Downstream HTTP calls get their bearer token through
GraphAuthProvider.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncGenerator, Dict, List, Optional, Union

import httpx

from .config import AuthConfig, AuthMode
from .constants import (
    DEFAULT_CLIENT_ID,
    DEFAULT_REDIRECT_URI,
    DEFAULT_SCOPE,
    DEFAULT_TENANT_ID,
    INTERACTIVE_SCOPES,
)
from .credentials import (
    ClientProvidedTokenCredential,
    ClientSecretCredential,
    DeviceCodeInfo,
    InteractiveCredential,
)
from .errors import (
    AuthenticationError,
    ConfigurationError,
    NotInitializedError,
    UnsupportedModeError,
    UnsupportedOperationError,
)
from .logging_config import get_logger
from .token_cache import TokenCacheManager
from .token_claims import parse_token_scopes

logger = get_logger(__name__)

Credential = Union[ClientSecretCredential, ClientProvidedTokenCredential, InteractiveCredential]

PUBLIC_CLIENT_HELP = (
    "Interactive authentication configuration error. Please ensure your Azure AD app "
    'has "Allow public client flows" enabled, or use the default public client by '
    "removing CLIENT_ID and TENANT_ID from your configuration."
)

# AADSTS7000218: request must contain client_assertion or client_secret
# AADSTS700025: client is public so neither is expected (reverse mismatch)
_CONFIDENTIAL_APP_ERROR_CODES = {7000218, 700025}


def is_public_client_misconfiguration(error: Exception) -> bool:
    """Detect an app registered as a confidential client used for user sign-in."""
    if isinstance(error, AuthenticationError):
        if _CONFIDENTIAL_APP_ERROR_CODES.intersection(error.error_codes):
            return True
        if error.error == "invalid_client":
            return True
        if error.error_codes:
            return False
    message = str(error)
    return "client_secret" in message or "client_assertion" in message


@dataclass(frozen=True)
class TokenStatus:
    """Freshness of the active token; scopes are only set when known."""
    is_expired: bool
    expires_on: Optional[datetime] = None
    scopes: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        status: Dict[str, Any] = {"is_expired": self.is_expired}
        if self.expires_on is not None:
            status["expires_on"] = self.expires_on.isoformat()
        if self.scopes is not None:
            status["scopes"] = list(self.scopes)
        return status


class GraphAuthProvider(httpx.Auth):
    """httpx auth hook that attaches a bearer token from a credential."""

    def __init__(self, credential: Credential, scopes: Optional[List[str]] = None):
        self.credential = credential
        self.scopes = list(scopes or [DEFAULT_SCOPE])

    async def get_access_token(self) -> str:
        token = await self.credential.get_token(*self.scopes)
        if not token:
            raise AuthenticationError("Failed to acquire access token")
        return token.token

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        request.headers["Authorization"] = f"Bearer {await self.get_access_token()}"
        yield request


class AuthManager:
    """
    Selects and owns the credential for the configured auth mode.

    initialize() is called once; the credential it builds is never swapped,
    only updated in place in client provided token mode. A device code
    prompt raised during initialization is kept in a single slot
    (get_device_code_info) and signalled through ``device_code_issued`` so a
    waiting caller can surface it while the sign-in is still being polled.
    """

    def __init__(self, config: AuthConfig, token_cache_manager: Optional[TokenCacheManager] = None):
        self.config = config
        self._token_cache_manager = token_cache_manager
        self._credential: Optional[Credential] = None
        self._ready = False
        self._device_code_info: Optional[DeviceCodeInfo] = None
        self._is_authenticating = False
        self.device_code_issued = asyncio.Event()

    # -- device code side channel --

    def get_device_code_info(self) -> Optional[DeviceCodeInfo]:
        return self._device_code_info

    def is_authenticating(self) -> bool:
        return self._is_authenticating

    def _on_device_code(self, info: DeviceCodeInfo) -> None:
        self._device_code_info = info
        self._is_authenticating = True
        self.device_code_issued.set()
        logger.info(
            "Device code authentication required",
            extra={"data": {"user_code": info.user_code, "verification_uri": info.verification_uri}}
        )

    def _on_sign_in_complete(self) -> None:
        self._is_authenticating = False
        self._device_code_info = None
        self.device_code_issued.clear()

    def cancel_sign_in(self) -> None:
        """Abandon a device code sign-in that is still waiting for the user."""
        if isinstance(self._credential, InteractiveCredential):
            self._credential.cancel()
        self._is_authenticating = False

    # -- initialization --

    async def initialize(self) -> None:
        """Build the credential for the configured mode and validate it."""
        mode = self.config.mode

        if mode == AuthMode.CLIENT_CREDENTIALS:
            self._credential = self._build_client_credentials()
        elif mode == AuthMode.CLIENT_PROVIDED_TOKEN:
            logger.info("Initializing Client Provided Token authentication")
            self._credential = ClientProvidedTokenCredential(
                self.config.access_token,
                self.config.expires_on,
            )
        elif mode == AuthMode.INTERACTIVE:
            self._credential = self._build_interactive()
        else:
            raise UnsupportedModeError(f"Unsupported authentication mode: {mode}")

        await self._test_credential()

    def _build_client_credentials(self) -> ClientSecretCredential:
        cfg = self.config
        if not cfg.tenant_id or not cfg.client_id or not cfg.client_secret:
            raise ConfigurationError(
                "Client credentials mode requires tenantId, clientId, and clientSecret"
            )
        logger.info("Initializing Client Credentials authentication")
        return ClientSecretCredential(cfg.tenant_id, cfg.client_id, cfg.client_secret)

    def _build_interactive(self) -> InteractiveCredential:
        tenant_id = self.config.tenant_id or DEFAULT_TENANT_ID
        client_id = self.config.client_id or DEFAULT_CLIENT_ID
        redirect_uri = self.config.redirect_uri or DEFAULT_REDIRECT_URI

        logger.info(
            "Initializing Interactive authentication",
            extra={"data": {"tenant_id": tenant_id, "client_id": client_id}}
        )

        token_cache = None
        if self._token_cache_manager is None and self.config.token_cache_path is not None:
            self._token_cache_manager = TokenCacheManager(self.config.token_cache_path)
        if self._token_cache_manager is not None:
            token_cache = self._token_cache_manager.get_cache()

        try:
            credential = InteractiveCredential(
                tenant_id=tenant_id,
                client_id=client_id,
                flow=InteractiveCredential.BROWSER,
                redirect_uri=redirect_uri,
                token_cache=token_cache,
            )
            logger.info("Using interactive browser authentication")
        except Exception as e:
            logger.info(
                "Browser authentication not available, using device code flow",
                extra={"data": {"reason": str(e)}}
            )
            credential = InteractiveCredential(
                tenant_id=tenant_id,
                client_id=client_id,
                flow=InteractiveCredential.DEVICE_CODE,
                redirect_uri=redirect_uri,
                token_cache=token_cache,
                prompt_callback=self._on_device_code,
                completion_callback=self._on_sign_in_complete,
            )
        return credential

    async def _test_credential(self) -> None:
        if self._credential is None:
            raise NotInitializedError("Credential not initialized")

        if self.config.mode == AuthMode.CLIENT_PROVIDED_TOKEN and not self.config.access_token:
            logger.info("Skipping initial credential test as no token was provided at startup")
            self._ready = True
            return

        try:
            token = await self._credential.get_token(DEFAULT_SCOPE)
            if not token:
                raise AuthenticationError("Failed to acquire token")
        except Exception as e:
            logger.error("Authentication test failed", extra={"data": {"error": str(e)}})
            # Device code info stays: the user may still be mid sign-in
            self._is_authenticating = False
            if self.config.mode == AuthMode.INTERACTIVE and is_public_client_misconfiguration(e):
                raise AuthenticationError(PUBLIC_CLIENT_HELP) from e
            raise

        logger.info("Authentication successful")
        self._on_sign_in_complete()
        self._ready = True

    # -- token access --

    def update_access_token(self, access_token: str, expires_on: Optional[datetime] = None) -> None:
        """Replace the externally supplied token; no re-validation."""
        if self.config.mode == AuthMode.CLIENT_PROVIDED_TOKEN and isinstance(
            self._credential, ClientProvidedTokenCredential
        ):
            self._credential.update_token(access_token, expires_on)
        else:
            raise UnsupportedOperationError("Token update only supported in client provided token mode")

    def get_token_provider(self) -> GraphAuthProvider:
        """Return an auth provider bound to the active credential."""
        if self._credential is None or not self._ready:
            raise NotInitializedError("Authentication not initialized")

        if self.config.mode == AuthMode.INTERACTIVE:
            scopes = INTERACTIVE_SCOPES
        else:
            scopes = [DEFAULT_SCOPE]
        return GraphAuthProvider(self._credential, scopes)

    def get_credential(self) -> Credential:
        if self._credential is None:
            raise NotInitializedError("Authentication not initialized")
        return self._credential

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def auth_mode(self) -> Union[AuthMode, str]:
        return self.config.mode

    def is_client_credentials(self) -> bool:
        return self.config.mode == AuthMode.CLIENT_CREDENTIALS

    def is_client_provided_token(self) -> bool:
        return self.config.mode == AuthMode.CLIENT_PROVIDED_TOKEN

    def is_interactive(self) -> bool:
        return self.config.mode == AuthMode.INTERACTIVE

    async def get_token_status(self) -> TokenStatus:
        """
        Report token freshness and granted scopes.

        Status queries never fail; they return their best approximation.
        A supplied token is judged from local state alone. Other credentials
        are asked for a live token; if that fails the status is reported as
        not expired, which is optimistic. Before a credential is ready (for
        example while a device code sign-in is pending) no live fetch is
        attempted, so no second sign-in prompt is started.
        """
        credential = self._credential

        if isinstance(credential, ClientProvidedTokenCredential):
            is_expired = credential.is_expired()
            expires_on = credential.get_expiration_time()
            if not is_expired and credential.access_token:
                return TokenStatus(
                    is_expired=False,
                    expires_on=expires_on,
                    scopes=parse_token_scopes(credential.access_token),
                )
            return TokenStatus(is_expired=is_expired, expires_on=expires_on)

        if credential is not None and self._ready:
            try:
                token = await credential.get_token(DEFAULT_SCOPE)
            except Exception as e:
                logger.error("Error getting token for scope parsing", extra={"data": {"error": str(e)}})
            else:
                if token and token.token:
                    return TokenStatus(
                        is_expired=False,
                        expires_on=token.expires_on,
                        scopes=parse_token_scopes(token.token),
                    )

        return TokenStatus(is_expired=False)
