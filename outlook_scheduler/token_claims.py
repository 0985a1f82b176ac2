"""
Bearer token introspection.

Tokens handed to this module come from our own credential, never from an
untrusted peer, so the claims are read without verifying the signature.
"""

import base64
import json
from typing import Any, Dict, List, Optional

from .logging_config import get_logger

logger = get_logger(__name__)


def decode_claims(token: str) -> Optional[Dict[str, Any]]:
    """Decode the payload segment of a JWT. Returns None if it is not one."""
    try:
        segments = token.split(".")
        if len(segments) < 2:
            return None
        payload = segments[1]
        payload += "=" * (-len(payload) % 4)
        claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except (AttributeError, ValueError, UnicodeError, RecursionError) as e:
        logger.debug("Could not decode token claims", extra={"data": {"error": str(e)}})
        return None

    if not isinstance(claims, dict):
        return None
    return claims


def parse_token_scopes(token: str) -> List[str]:
    """
    Extract granted scopes from a bearer token.

    Delegated tokens carry a space-separated ``scp`` claim; app-only tokens
    carry a ``roles`` array instead. Never raises: anything that cannot be
    decoded yields an empty list.
    """
    claims = decode_claims(token)
    if claims is None:
        logger.info("Failed to decode JWT token")
        return []

    scopes = claims.get("scp")
    if isinstance(scopes, str):
        return [scope for scope in scopes.split(" ") if scope]

    roles = claims.get("roles")
    if isinstance(roles, list):
        return [role for role in roles if isinstance(role, str)]

    logger.info("No scopes found in JWT token")
    return []
