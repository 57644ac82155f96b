"""CORSService: the allowed-origin whitelist.

Matching rules:
  - An empty origin (no Origin header: CLI, curl, server-to-server) is always
    allowed. CORS is enforced by browsers and means nothing without the header.
  - A non-empty origin is allowed iff it is byte-for-byte equal to a whitelist
    entry. No case folding, no wildcards, no scheme-relative matching.

Whitelist lifecycle: seeded once from config when the store is empty, then
edited through the admin routes (add / remove / replace).
"""

from __future__ import annotations

from typing import Iterable

from cosign.errors import InvalidOriginError
from cosign.storage.protocol import OriginStore
from cosign.utils.logger import get_logger

logger = get_logger(__name__)


def _normalize(origin: str) -> str:
    """Trim surrounding whitespace; reject what is left if empty."""
    cleaned = origin.strip() if origin else ""
    if not cleaned:
        raise InvalidOriginError()
    return cleaned


class CORSService:
    def __init__(self, store: OriginStore) -> None:
        self._store = store

    async def is_allowed(self, origin: str) -> bool:
        """Return True if a request carrying ``origin`` may proceed.

        Raises:
            StorageError: If the whitelist cannot be read.
        """
        if not origin:
            return True
        return origin in await self._store.list()

    async def seed(self, initial_origins: Iterable[str]) -> bool:
        """Store ``initial_origins`` only if the whitelist is empty.

        Returns:
            True if the list was seeded, False if the store already had entries.
        """
        if await self._store.count() > 0:
            logger.debug("CORS seed skipped: whitelist not empty")
            return False
        origins = [o.strip() for o in initial_origins if o and o.strip()]
        if not origins:
            return False
        await self._store.replace_all(origins)
        logger.info("CORS whitelist seeded", count=len(origins))
        return True

    async def list_origins(self) -> list[str]:
        return await self._store.list()

    async def add_origin(self, origin: str) -> str:
        """Add an origin (whitespace-trimmed). Returns the stored value.

        Raises:
            InvalidOriginError: If the origin is empty after trimming.
        """
        cleaned = _normalize(origin)
        await self._store.add(cleaned)
        logger.info("CORS origin added", origin=cleaned)
        return cleaned

    async def remove_origin(self, origin: str) -> None:
        """Raises OriginNotFoundError when the origin is not whitelisted."""
        await self._store.remove(origin)
        logger.info("CORS origin removed", origin=origin)

    async def replace_origins(self, origins: Iterable[str]) -> list[str]:
        """Replace the whole whitelist. Every entry must be non-empty after trimming."""
        cleaned = [_normalize(o) for o in origins]
        await self._store.replace_all(cleaned)
        logger.info("CORS whitelist replaced", count=len(cleaned))
        return await self._store.list()
