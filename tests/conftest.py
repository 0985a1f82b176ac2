"""
Pytest configuration and fixtures for the Outlook MCP server tests.

Every test runs with the authentication environment cleared and from an
empty working directory, so a developer's shell or .env file never changes
which auth mode is resolved.
"""

import base64
import json
from typing import Any, Callable, Dict

import httpx
import pytest

AUTH_ENV_VARS = (
    "AUTH_MODE",
    "CLIENT_ID",
    "CLIENT_SECRET",
    "TENANT_ID",
    "ACCESS_TOKEN",
    "TOKEN_EXPIRES_ON",
    "REDIRECT_URI",
    "USER_EMAIL",
    "TOKEN_CACHE_PATH",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    for name in AUTH_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


def _b64(data: Dict[str, Any]) -> str:
    raw = json.dumps(data).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


@pytest.fixture
def make_jwt() -> Callable[[Dict[str, Any]], str]:
    """Build an unsigned JWT carrying the given claims."""

    def factory(claims: Dict[str, Any]) -> str:
        return f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64(claims)}.signature"

    return factory


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


@pytest.fixture
def recording_transport() -> Callable[..., RecordingTransport]:
    return RecordingTransport
