"""Database: the single aiosqlite connection shared by the SQLite stores.

Uses aiosqlite EXCLUSIVELY; no synchronous sqlite3 calls on the event loop.

Features:
  - Long-lived connection: opened in initialize(), closed in close()
  - WAL mode (optional): PRAGMA journal_mode=WAL for file databases
  - Forward-only migrations tracked in PRAGMA user_version; a database newer
    than this code raises RuntimeError and the lifespan refuses startup
  - transaction(): serializes multi-statement writes behind an asyncio.Lock so
    concurrent requests cannot interleave statements on the shared connection
  - Every driver error is re-raised as StorageError
"""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Optional

import aiosqlite

from cosign.errors import StorageError
from cosign.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_DB_PATH = "./cosign.db"

MEMORY_PATH = ":memory:"

# (version, DDL) pairs. Append only; never edit an applied migration.
_MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS api_keys (
            id              TEXT PRIMARY KEY,
            salt            BLOB NOT NULL,
            hash            BLOB NOT NULL,
            created_at      TEXT NOT NULL,
            last_used_at    TEXT
        );
        """,
    ),
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS allowed_origins (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            origin          TEXT NOT NULL UNIQUE,
            created_at      TEXT NOT NULL
        );
        """,
    ),
]

SCHEMA_VERSION = _MIGRATIONS[-1][0]


class Database:
    """Owner of the aiosqlite connection.

    Usage:
        db = Database("./cosign.db", wal=True)
        await db.initialize()          # migrations; RuntimeError if schema is newer
        row = await db.fetchone("SELECT ...", (arg,))
        async with db.transaction() as conn:
            await conn.execute("INSERT ...", (...))
        await db.close()
    """

    def __init__(self, path: str = DEFAULT_DB_PATH, wal: bool = False) -> None:
        self._path: str = path if path == MEMORY_PATH else os.path.expanduser(path)
        self._wal = wal and self._path != MEMORY_PATH
        self._conn: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    @property
    def path(self) -> str:
        return self._path

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Open the connection and bring the schema up to SCHEMA_VERSION.

        Raises:
            RuntimeError: If the database reports a schema version newer than
                          this code knows about.
            StorageError: If the database cannot be opened or migrated.
        """
        if self._conn is not None:
            return

        if self._path != MEMORY_PATH:
            parent_dir = os.path.dirname(self._path)
            if parent_dir:
                os.makedirs(parent_dir, exist_ok=True)

        try:
            self._conn = await aiosqlite.connect(self._path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA busy_timeout=5000;")
            await self._conn.execute("PRAGMA foreign_keys=ON;")
            if self._wal:
                await self._conn.execute("PRAGMA journal_mode=WAL;")
            await self._migrate()
        except aiosqlite.Error as exc:
            await self.close()
            raise StorageError(f"failed to initialize database at {self._path}: {exc}") from exc

        logger.info(
            "Database initialized",
            path=self._path,
            wal=self._wal,
            schema_version=SCHEMA_VERSION,
        )

    async def _migrate(self) -> None:
        assert self._conn is not None
        cursor = await self._conn.execute("PRAGMA user_version;")
        row = await cursor.fetchone()
        current: int = row[0] if row else 0

        if current > SCHEMA_VERSION:
            await self.close()
            raise RuntimeError(
                f"Unsupported database schema version: {current} "
                f"(this build supports up to {SCHEMA_VERSION}). "
                "Upgrade cosign or point COSIGN_DB at a different file."
            )

        for version, ddl in _MIGRATIONS:
            if version <= current:
                continue
            logger.info("Running migration", version=version)
            await self._conn.executescript(ddl)
            await self._conn.execute(f"PRAGMA user_version = {version};")
            await self._conn.commit()

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()
            logger.debug("Database closed", path=self._path)

    # ── Access ────────────────────────────────────────────────────────────────

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StorageError("database not initialized, call initialize() first")
        return self._conn

    async def fetchone(self, sql: str, params: Iterable[Any] = ()) -> Optional[aiosqlite.Row]:
        try:
            async with self.connection.execute(sql, tuple(params)) as cursor:
                return await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(f"query failed: {exc}") from exc

    async def fetchall(self, sql: str, params: Iterable[Any] = ()) -> list[aiosqlite.Row]:
        try:
            async with self.connection.execute(sql, tuple(params)) as cursor:
                return list(await cursor.fetchall())
        except aiosqlite.Error as exc:
            raise StorageError(f"query failed: {exc}") from exc

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run the enclosed writes as one transaction.

        Commits on normal exit, rolls back on any exception. Driver errors are
        re-raised as StorageError; other exceptions (e.g. KeyNotFoundError)
        propagate unchanged after the rollback.
        """
        async with self._write_lock:
            conn = self.connection
            try:
                yield conn
                await conn.commit()
            except aiosqlite.Error as exc:
                await self._rollback(conn)
                raise StorageError(f"transaction failed: {exc}") from exc
            except BaseException:
                await self._rollback(conn)
                raise

    async def _rollback(self, conn: aiosqlite.Connection) -> None:
        try:
            await conn.rollback()
        except aiosqlite.Error as exc:
            logger.error("Rollback failed", error=str(exc))

    async def health_check(self) -> bool:
        """Return True if a trivial query succeeds. Never raises."""
        try:
            row = await self.fetchone("SELECT 1")
        except StorageError as exc:
            logger.warning("Database health check failed", error=str(exc))
            return False
        return row is not None and row[0] == 1
