"""KeyService: API key issuance, bootstrap, verification and revocation.

Token format: ``{id}.{secret}``
  - id:     16 hex chars (8 random bytes) - primary key of the stored record
  - secret: 64 hex chars (32 random bytes) - shown once, never stored

Stored per key: id, salt (16 random bytes), hash = SHA-256(salt || secret),
created_at, last_used_at.

Non-negotiables:
  - Plaintext secret NEVER persisted, NEVER logged (key ids only)
  - Digest comparison via constant_time_equal() only
  - verify() never raises on attacker-controlled input: malformed or unknown
    tokens are a plain False. Only StorageError escapes.

Bootstrap race: bootstrap() is check-then-insert without a transaction. Two
processes cold-starting against the same empty database can both pass the
count check; the second insert of the same id then fails with StorageError
(the SQLite primary key), or, for distinct bootstrap ids, one redundant
bootstrap key is stored. Neither grants access to anyone without a token, so
the race is accepted rather than locked against.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from cosign.auth.secrets import constant_time_equal, hash_secret, random_bytes, random_hex
from cosign.constants import KEY_ID_BYTES, KEY_SALT_BYTES, KEY_SECRET_BYTES, TOKEN_SEPARATOR
from cosign.errors import InvalidTokenFormatError
from cosign.storage.models import KeyInfo, KeyRecord
from cosign.storage.protocol import KeyStore
from cosign.utils.logger import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_token(token: str) -> Optional[tuple[str, str]]:
    """Split ``{id}.{secret}`` into its halves.

    Returns None unless the token contains exactly one separator with a
    non-empty id and a non-empty secret.
    """
    if not token:
        return None
    parts = token.split(TOKEN_SEPARATOR)
    if len(parts) != 2:
        return None
    key_id, secret = parts
    if not key_id or not secret:
        return None
    return key_id, secret


class KeyService:
    """Issue and verify bearer API keys against a KeyStore.

    Args:
        store: KeyStore implementation (SQLite in production, memory in tests).
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(self, store: KeyStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock

    async def issue_key(self) -> str:
        """Generate, persist and return a new token. The secret is unrecoverable afterwards.

        Raises:
            StorageError: If the record cannot be persisted.
        """
        key_id = random_hex(KEY_ID_BYTES)
        secret = random_hex(KEY_SECRET_BYTES)
        await self._insert(key_id, secret)
        logger.info("API key issued", key_id=key_id)
        return f"{key_id}{TOKEN_SEPARATOR}{secret}"

    async def bootstrap(self, token: str) -> bool:
        """Seed an operator-supplied token, but only into an empty store.

        Returns:
            True if the token was inserted, False if the store already held keys.

        Raises:
            InvalidTokenFormatError: If the store is empty and ``token`` is not
                                     of the form ``{id}.{secret}``.
            StorageError:            On store failure.
        """
        if await self._store.count() > 0:
            logger.debug("Bootstrap skipped: key store not empty")
            return False

        parsed = parse_token(token)
        if parsed is None:
            raise InvalidTokenFormatError()

        key_id, secret = parsed
        await self._insert(key_id, secret)
        logger.info("Bootstrap API key stored", key_id=key_id)
        return True

    async def verify(self, token: str) -> bool:
        """Return True only if ``token`` matches a stored key.

        Malformed tokens and unknown ids return False. On success the key's
        ``last_used_at`` is updated.

        Raises:
            StorageError: On store failure, never on bad input.
        """
        parsed = parse_token(token)
        if parsed is None:
            return False

        key_id, secret = parsed
        record = await self._store.fetch(key_id)
        if record is None:
            return False

        if not constant_time_equal(hash_secret(secret, record.salt), record.hash):
            return False

        await self._store.touch(key_id, self._clock())
        return True

    async def revoke(self, key_id: str) -> None:
        """Delete a key.

        Raises:
            KeyNotFoundError: No key with this id.
            StorageError:     On store failure.
        """
        await self._store.delete(key_id)
        logger.info("API key revoked", key_id=key_id)

    async def list(self) -> list[KeyInfo]:
        """Key metadata, newest first. Never includes salts, hashes or secrets."""
        return [record.info() for record in await self._store.list()]

    async def _insert(self, key_id: str, secret: str) -> None:
        salt = random_bytes(KEY_SALT_BYTES)
        await self._store.insert(
            KeyRecord(
                id=key_id,
                salt=salt,
                hash=hash_secret(secret, salt),
                created_at=self._clock(),
            )
        )
