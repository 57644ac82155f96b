"""In-memory KeyStore / OriginStore.

Used by the test suite and anywhere a throwaway store is wanted. Satisfies the
same contract as the SQLite stores, including the not-found errors.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from cosign.errors import KeyNotFoundError, OriginNotFoundError, StorageError
from cosign.storage.models import KeyRecord
from cosign.storage.protocol import KeyStore, OriginStore


class MemoryKeyStore:
    def __init__(self) -> None:
        self._records: dict[str, KeyRecord] = {}

    async def insert(self, record: KeyRecord) -> None:
        if record.id in self._records:
            raise StorageError(f"duplicate api key id: {record.id}")
        self._records[record.id] = record

    async def fetch(self, key_id: str) -> Optional[KeyRecord]:
        return self._records.get(key_id)

    async def delete(self, key_id: str) -> None:
        if self._records.pop(key_id, None) is None:
            raise KeyNotFoundError(key_id)

    async def count(self) -> int:
        return len(self._records)

    async def list(self) -> list[KeyRecord]:
        return sorted(self._records.values(), key=lambda r: r.created_at, reverse=True)

    async def touch(self, key_id: str, used_at: datetime) -> None:
        record = self._records.get(key_id)
        if record is None:
            return
        self._records[key_id] = KeyRecord(
            id=record.id,
            salt=record.salt,
            hash=record.hash,
            created_at=record.created_at,
            last_used_at=used_at,
        )


class MemoryOriginStore:
    def __init__(self, origins: Optional[list[str]] = None) -> None:
        self._origins: list[str] = []
        for origin in origins or []:
            if origin not in self._origins:
                self._origins.append(origin)

    async def list(self) -> list[str]:
        return list(self._origins)

    async def replace_all(self, origins: list[str]) -> None:
        deduped: list[str] = []
        for origin in origins:
            if origin not in deduped:
                deduped.append(origin)
        self._origins = deduped

    async def count(self) -> int:
        return len(self._origins)

    async def add(self, origin: str) -> None:
        if origin not in self._origins:
            self._origins.append(origin)

    async def remove(self, origin: str) -> None:
        try:
            self._origins.remove(origin)
        except ValueError:
            raise OriginNotFoundError(origin) from None


assert isinstance(MemoryKeyStore(), KeyStore), "MemoryKeyStore does not satisfy KeyStore"
assert isinstance(MemoryOriginStore(), OriginStore), "MemoryOriginStore does not satisfy OriginStore"
