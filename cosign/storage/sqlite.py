"""SQLite implementations of KeyStore and OriginStore.

Both stores share one Database (one aiosqlite connection). Timestamps are
stored as ISO 8601 UTC strings; salts and digests as BLOBs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import aiosqlite

from cosign.errors import KeyNotFoundError, OriginNotFoundError
from cosign.storage.database import Database
from cosign.storage.models import KeyRecord


def _to_iso(value: datetime) -> str:
    return value.isoformat()


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_key_record(row: aiosqlite.Row) -> KeyRecord:
    created_at = _from_iso(row["created_at"])
    assert created_at is not None
    return KeyRecord(
        id=row["id"],
        salt=bytes(row["salt"]),
        hash=bytes(row["hash"]),
        created_at=created_at,
        last_used_at=_from_iso(row["last_used_at"]),
    )


# ─── Keys ─────────────────────────────────────────────────────────────────────


class SQLiteKeyStore:
    """KeyStore backed by the ``api_keys`` table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def insert(self, record: KeyRecord) -> None:
        async with self._db.transaction() as conn:
            await conn.execute(
                "INSERT INTO api_keys (id, salt, hash, created_at, last_used_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.salt,
                    record.hash,
                    _to_iso(record.created_at),
                    _to_iso(record.last_used_at) if record.last_used_at else None,
                ),
            )

    async def fetch(self, key_id: str) -> Optional[KeyRecord]:
        row = await self._db.fetchone(
            "SELECT id, salt, hash, created_at, last_used_at FROM api_keys WHERE id = ?",
            (key_id,),
        )
        return _row_to_key_record(row) if row is not None else None

    async def delete(self, key_id: str) -> None:
        async with self._db.transaction() as conn:
            cursor = await conn.execute("DELETE FROM api_keys WHERE id = ?", (key_id,))
            if cursor.rowcount == 0:
                raise KeyNotFoundError(key_id)

    async def count(self) -> int:
        row = await self._db.fetchone("SELECT COUNT(*) FROM api_keys")
        return row[0] if row else 0

    async def list(self) -> list[KeyRecord]:
        rows = await self._db.fetchall(
            "SELECT id, salt, hash, created_at, last_used_at "
            "FROM api_keys ORDER BY created_at DESC, id ASC"
        )
        return [_row_to_key_record(row) for row in rows]

    async def touch(self, key_id: str, used_at: datetime) -> None:
        async with self._db.transaction() as conn:
            await conn.execute(
                "UPDATE api_keys SET last_used_at = ? WHERE id = ?",
                (_to_iso(used_at), key_id),
            )


# ─── Origins ──────────────────────────────────────────────────────────────────


class SQLiteOriginStore:
    """OriginStore backed by the ``allowed_origins`` table.

    Insertion order is preserved via the AUTOINCREMENT id. The UNIQUE
    constraint on ``origin`` suppresses exact duplicates; comparison uses
    SQLite's default BINARY collation, so it is case-sensitive.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    async def list(self) -> list[str]:
        rows = await self._db.fetchall("SELECT origin FROM allowed_origins ORDER BY id ASC")
        return [row["origin"] for row in rows]

    async def replace_all(self, origins: list[str]) -> None:
        now = _to_iso(datetime.now(timezone.utc))
        async with self._db.transaction() as conn:
            await conn.execute("DELETE FROM allowed_origins")
            await conn.executemany(
                "INSERT OR IGNORE INTO allowed_origins (origin, created_at) VALUES (?, ?)",
                [(origin, now) for origin in origins],
            )

    async def count(self) -> int:
        row = await self._db.fetchone("SELECT COUNT(*) FROM allowed_origins")
        return row[0] if row else 0

    async def add(self, origin: str) -> None:
        async with self._db.transaction() as conn:
            await conn.execute(
                "INSERT OR IGNORE INTO allowed_origins (origin, created_at) VALUES (?, ?)",
                (origin, _to_iso(datetime.now(timezone.utc))),
            )

    async def remove(self, origin: str) -> None:
        async with self._db.transaction() as conn:
            cursor = await conn.execute("DELETE FROM allowed_origins WHERE origin = ?", (origin,))
            if cursor.rowcount == 0:
                raise OriginNotFoundError(origin)
