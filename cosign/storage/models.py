"""Persistent record types for the trust-and-access layer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class KeyRecord:
    """A stored API key. The plaintext secret is never part of the record.

    Fields:
      id           - externally visible key id; first half of the issued token
      salt         - random per-key salt
      hash         - SHA-256(salt || secret)
      created_at   - UTC issue time
      last_used_at - UTC time of the last successful verification, if any
    """

    id: str
    salt: bytes
    hash: bytes
    created_at: datetime
    last_used_at: Optional[datetime] = None

    def info(self) -> "KeyInfo":
        """Return the metadata-only view safe to show to administrators."""
        return KeyInfo(id=self.id, created_at=self.created_at, last_used_at=self.last_used_at)

    def __repr__(self) -> str:
        # Digest material stays out of reprs (and therefore out of tracebacks).
        return f"KeyRecord(id={self.id!r}, created_at={self.created_at!r})"


@dataclass(frozen=True)
class KeyInfo:
    """Key metadata returned by listings; no salt, hash or secret."""

    id: str
    created_at: datetime
    last_used_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
        }
