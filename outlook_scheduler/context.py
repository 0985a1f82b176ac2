"""
Application context shared by all MCP tools.

Created once in the server lifespan and handed to every tool through the
request context. It resolves the auth mode on first use, initializes the
AuthManager behind a single-flight guard and caches the ready Graph client.
Failures are returned as a GraphConfig carrying ``auth_error`` so tools can
show the user what to do instead of crashing the server.
"""

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional

import httpx
from pydantic import ValidationError

from .auth import AuthManager
from .config import AuthConfig, AuthMode, Settings, build_auth_config
from .credentials import DeviceCodeInfo
from .errors import (
    ConfigurationError,
    OutlookSchedulerError,
    PendingUserActionError,
    UnsupportedOperationError,
)
from .graph import GraphClient
from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class GraphConfig:
    """What a tool needs to call Graph, or why it cannot yet."""
    graph: Optional[GraphClient]
    user_email: Optional[str]
    auth_error: Optional[str] = None
    device_code_info: Optional[DeviceCodeInfo] = None


def device_code_instructions(info: DeviceCodeInfo) -> str:
    return (
        "Device code authentication required.\n\n"
        f"Open {info.verification_uri} and enter the code: {info.user_code}\n\n"
        f"{info.message}"
    )


class AppContext:
    """Process-wide auth and Graph state, constructed once and injected."""

    def __init__(
        self,
        settings_factory: Callable[[], Settings] = Settings,
        auth_manager_factory: Callable[[AuthConfig], AuthManager] = AuthManager,
        graph_factory: Callable[[httpx.Auth], GraphClient] = GraphClient,
    ):
        self._settings_factory = settings_factory
        self._auth_manager_factory = auth_manager_factory
        self._graph_factory = graph_factory

        self.auth_config: Optional[AuthConfig] = None
        self.auth_manager: Optional[AuthManager] = None
        self.graph: Optional[GraphClient] = None
        self.user_email: Optional[str] = None

        self._configured_user_email: Optional[str] = None
        self._user_email_resolved = False
        self._lock = asyncio.Lock()
        self._pending_manager: Optional[AuthManager] = None
        self._pending_init: Optional[asyncio.Task] = None

    @property
    def pending_manager(self) -> Optional[AuthManager]:
        """Manager whose initialization is still in flight, if any."""
        return self._pending_manager

    async def get_graph_config(self) -> GraphConfig:
        """Return a ready Graph client and effective user e-mail."""
        if self.graph is not None and self._user_email_resolved:
            return GraphConfig(graph=self.graph, user_email=self.user_email)

        async with self._lock:
            try:
                await self._bootstrap()
            except PendingUserActionError as e:
                return GraphConfig(
                    graph=None,
                    user_email=None,
                    auth_error=device_code_instructions(e.device_code_info),
                    device_code_info=e.device_code_info,
                )
            except OutlookSchedulerError as e:
                logger.error("Graph bootstrap failed", extra={"data": {"error": str(e)}})
                return GraphConfig(graph=None, user_email=None, auth_error=str(e))
            except Exception as e:
                logger.error("Graph bootstrap failed", exc_info=True)
                return GraphConfig(graph=None, user_email=None, auth_error=f"Authentication failed: {e}")

        return GraphConfig(graph=self.graph, user_email=self.user_email)

    def _resolve_config(self) -> AuthConfig:
        # Evaluated once per process; later environment changes are ignored
        if self.auth_config is None:
            try:
                settings = self._settings_factory()
            except ValidationError as e:
                raise ConfigurationError(f"Invalid configuration: {e}") from e
            self.auth_config = build_auth_config(settings)
            self._configured_user_email = settings.USER_EMAIL
            mode = self.auth_config.mode
            logger.info(
                "Resolved authentication mode",
                extra={"data": {"mode": mode.value if isinstance(mode, AuthMode) else mode}}
            )
        return self.auth_config

    async def _bootstrap(self) -> None:
        config = self._resolve_config()

        if config.mode == AuthMode.CLIENT_CREDENTIALS and not self._configured_user_email:
            raise ConfigurationError("USER_EMAIL is required when using client credentials authentication")

        if self.graph is None:
            manager = await self._initialize_auth(config)
            self.auth_manager = manager
            self.graph = self._graph_factory(manager.get_token_provider())
            logger.info("Graph client ready")

        if not self._user_email_resolved:
            self.user_email = await self._resolve_user_email(config)
            self._user_email_resolved = True

    async def _initialize_auth(self, config: AuthConfig) -> AuthManager:
        if self._pending_init is None:
            self._pending_manager = self._auth_manager_factory(config)
            self._pending_init = asyncio.create_task(self._pending_manager.initialize())
            self._pending_init.add_done_callback(_log_init_outcome)

        manager = self._pending_manager
        task = self._pending_init

        if not task.done():
            prompt = asyncio.ensure_future(manager.device_code_issued.wait())
            try:
                await asyncio.wait({task, prompt}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                prompt.cancel()

        if not task.done():
            # Woken by the prompt; the task keeps polling for the next call
            raise PendingUserActionError(manager.get_device_code_info())

        self._pending_init = None
        self._pending_manager = None
        # Re-raises the initialization error; nothing is cached on failure
        task.result()
        return manager

    async def _resolve_user_email(self, config: AuthConfig) -> Optional[str]:
        if self._configured_user_email:
            return self._configured_user_email
        if config.mode != AuthMode.INTERACTIVE:
            return None

        try:
            profile = await self.graph.get_me()
        except httpx.HTTPError as e:
            raise OutlookSchedulerError(f"Failed to get user profile: {e}") from e

        email = profile.get("mail") or profile.get("userPrincipalName")
        if not email:
            raise OutlookSchedulerError("Could not determine the signed-in user's e-mail address")
        logger.info("Using signed-in user", extra={"data": {"user_email": email}})
        return email

    async def update_access_token(self, access_token: str, expires_on: Optional[datetime] = None) -> None:
        """
        Rotate the externally supplied token.

        Updates the live credential when one is ready. Before that (for
        example when the startup token had already expired) the new token
        replaces the configured one and initialization is retried.
        """
        async with self._lock:
            if self.auth_manager is not None:
                self.auth_manager.update_access_token(access_token, expires_on)
                return

            config = self._resolve_config()
            if config.mode != AuthMode.CLIENT_PROVIDED_TOKEN:
                raise UnsupportedOperationError("Token update only supported in client provided token mode")
            self.auth_config = replace(config, access_token=access_token, expires_on=expires_on)

        await self.get_graph_config()

    async def aclose(self) -> None:
        # The device code poll runs in a worker thread that task
        # cancellation alone does not stop
        for manager in (self._pending_manager, self.auth_manager):
            if manager is not None:
                manager.cancel_sign_in()
        if self._pending_init is not None and not self._pending_init.done():
            self._pending_init.cancel()
        if self.graph is not None:
            await self.graph.close()


def _log_init_outcome(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning("Authentication initialization failed", extra={"data": {"error": str(error)}})
