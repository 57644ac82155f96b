"""Storage collaborators: store Protocols, record types, SQLite and in-memory stores."""

from __future__ import annotations

from cosign.storage.database import Database
from cosign.storage.memory import MemoryKeyStore, MemoryOriginStore
from cosign.storage.models import KeyInfo, KeyRecord
from cosign.storage.protocol import KeyStore, OriginStore
from cosign.storage.sqlite import SQLiteKeyStore, SQLiteOriginStore

__all__ = [
    "Database",
    "KeyInfo",
    "KeyRecord",
    "KeyStore",
    "MemoryKeyStore",
    "MemoryOriginStore",
    "OriginStore",
    "SQLiteKeyStore",
    "SQLiteOriginStore",
]
