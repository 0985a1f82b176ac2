"""Persistent MSAL token cache using msal-extensions."""

from pathlib import Path
from typing import Optional

from msal_extensions import (
    FilePersistence,
    PersistedTokenCache,
    build_encrypted_persistence,
)

from .logging_config import get_logger

logger = get_logger(__name__)


class TokenCacheManager:
    """
    Builds the persisted token cache for interactive sign-in.

    Enabling the cache is best-effort: platform encryption is preferred,
    plain file storage is used where no secret store exists (Linux without
    libsecret), and any other failure leaves the process with MSAL's
    in-memory cache.
    """

    def __init__(self, cache_path: Path, allow_unencrypted: bool = True):
        self.cache_path = cache_path
        self.allow_unencrypted = allow_unencrypted
        self._cache: Optional[PersistedTokenCache] = None
        self._attempted = False

    def get_cache(self) -> Optional[PersistedTokenCache]:
        """Return the persisted cache, or None if persistence is unavailable."""
        if self._attempted:
            return self._cache
        self._attempted = True

        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                persistence = build_encrypted_persistence(str(self.cache_path))
            except Exception as e:
                if not self.allow_unencrypted:
                    raise
                logger.warning(
                    "Encrypted token cache unavailable, using unencrypted storage",
                    extra={"data": {"error": str(e)}}
                )
                persistence = FilePersistence(str(self.cache_path))

            self._cache = PersistedTokenCache(persistence)
            logger.info("Token cache persistence enabled", extra={"data": {"path": str(self.cache_path)}})
        except Exception as e:
            logger.error("Failed to enable token cache persistence", extra={"data": {"error": str(e)}})
            self._cache = None

        return self._cache
