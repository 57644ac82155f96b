"""KeyStore and OriginStore Protocols.

The services in cosign.auth and cosign.cors depend only on these interfaces.
Implementations:
  - SQLiteKeyStore / SQLiteOriginStore (cosign/storage/sqlite.py) - production
  - MemoryKeyStore / MemoryOriginStore (cosign/storage/memory.py) - tests, fakes

Contract shared by every implementation:
  - Persistence failures raise StorageError (never a driver exception).
  - ``delete``/``remove`` of an absent entry raise KeyNotFoundError /
    OriginNotFoundError - distinct from StorageError.
  - Each call is atomic; callers add no locking of their own.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from cosign.storage.models import KeyRecord


@runtime_checkable
class KeyStore(Protocol):
    """Persistence for API key records."""

    async def insert(self, record: KeyRecord) -> None:
        """Persist a new record. A duplicate id raises StorageError."""
        ...

    async def fetch(self, key_id: str) -> Optional[KeyRecord]:
        """Return the record for ``key_id`` or None when absent."""
        ...

    async def delete(self, key_id: str) -> None:
        """Delete a record. Raises KeyNotFoundError when absent."""
        ...

    async def count(self) -> int:
        """Number of stored records."""
        ...

    async def list(self) -> list[KeyRecord]:
        """All records, newest first."""
        ...

    async def touch(self, key_id: str, used_at: datetime) -> None:
        """Record a successful verification. Absent ids are ignored."""
        ...


@runtime_checkable
class OriginStore(Protocol):
    """Persistence for the ordered allowed-origin list."""

    async def list(self) -> list[str]:
        """Origins in insertion order."""
        ...

    async def replace_all(self, origins: list[str]) -> None:
        """Atomically replace the whole list."""
        ...

    async def count(self) -> int:
        ...

    async def add(self, origin: str) -> None:
        """Append an origin. Adding an origin already present is a no-op."""
        ...

    async def remove(self, origin: str) -> None:
        """Remove an origin. Raises OriginNotFoundError when absent."""
        ...
