"""
Configuration for the Outlook MCP server.

Settings are read from the environment (and an optional .env file) once per
process and turned into an AuthConfig that selects the authentication mode.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import TOKEN_CACHE_NAME


class AuthMode(str, Enum):
    CLIENT_CREDENTIALS = "client_credentials"
    CLIENT_PROVIDED_TOKEN = "client_provided_token"
    INTERACTIVE = "interactive"


@dataclass(frozen=True)
class AuthConfig:
    """Authentication input; only the fields the selected mode needs are read."""
    mode: Union[AuthMode, str]
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    access_token: Optional[str] = None
    expires_on: Optional[datetime] = None
    redirect_uri: Optional[str] = None
    token_cache_path: Optional[Path] = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Authentication
    AUTH_MODE: Optional[str] = None
    CLIENT_ID: Optional[str] = None
    CLIENT_SECRET: Optional[str] = None
    TENANT_ID: Optional[str] = None
    ACCESS_TOKEN: Optional[str] = None
    TOKEN_EXPIRES_ON: Optional[datetime] = None  # ISO timestamp
    REDIRECT_URI: Optional[str] = None

    # Mailbox the calendar operations act on
    USER_EMAIL: Optional[str] = None

    # Persistent MSAL cache (interactive mode only)
    TOKEN_CACHE_PATH: Path = Path.home() / ".outlook-mcp" / f"{TOKEN_CACHE_NAME}.bin"

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        """Treat empty environment values as unset."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("TOKEN_CACHE_PATH", mode="before")
    @classmethod
    def default_cache_path(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return Path.home() / ".outlook-mcp" / f"{TOKEN_CACHE_NAME}.bin"
        return Path(value).expanduser()


def resolve_auth_mode(settings: Settings) -> Union[AuthMode, str]:
    """
    Pick the auth mode: explicit AUTH_MODE wins, otherwise it is inferred.

    A client secret implies client credentials, a supplied access token
    implies client provided token, anything else is interactive. An unknown
    AUTH_MODE is returned as-is so initialization can reject it.
    """
    if settings.AUTH_MODE:
        try:
            return AuthMode(settings.AUTH_MODE.strip().lower())
        except ValueError:
            return settings.AUTH_MODE

    if settings.CLIENT_SECRET:
        return AuthMode.CLIENT_CREDENTIALS
    if settings.ACCESS_TOKEN:
        return AuthMode.CLIENT_PROVIDED_TOKEN
    return AuthMode.INTERACTIVE


def build_auth_config(settings: Settings) -> AuthConfig:
    """Build the AuthConfig for the resolved mode from loaded settings."""
    return AuthConfig(
        mode=resolve_auth_mode(settings),
        tenant_id=settings.TENANT_ID,
        client_id=settings.CLIENT_ID,
        client_secret=settings.CLIENT_SECRET,
        access_token=settings.ACCESS_TOKEN,
        expires_on=settings.TOKEN_EXPIRES_ON,
        redirect_uri=settings.REDIRECT_URI,
        token_cache_path=settings.TOKEN_CACHE_PATH,
    )
