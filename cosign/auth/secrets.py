"""Secret primitives for API keys.

  random_bytes()        - CSPRNG bytes (secrets.token_bytes); entropy failure propagates
  random_hex()          - hex-encoded random_bytes, used for key ids and secrets
  hash_secret()         - SHA-256(salt || secret)
  constant_time_equal() - hmac.compare_digest; timing independent of mismatch position

A bearer-token digest needs collision resistance, not memory hardness: the
secret is 256 bits of CSPRNG output, so a single fast hash pass is sufficient.
Every digest comparison MUST go through constant_time_equal(); ``==`` on
digests is a timing side channel.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets


def random_bytes(n: int) -> bytes:
    """Return ``n`` cryptographically secure random bytes."""
    if n <= 0:
        raise ValueError("n must be positive")
    return secrets.token_bytes(n)


def random_hex(n: int) -> str:
    """Return ``n`` random bytes as a lowercase hex string (2n chars)."""
    return random_bytes(n).hex()


def hash_secret(secret: str, salt: bytes) -> bytes:
    """Digest ``salt || secret`` with SHA-256.

    Deterministic for fixed inputs. The secret is UTF-8 encoded so operator
    supplied bootstrap secrets need not be hex.
    """
    digest = hashlib.sha256()
    digest.update(salt)
    digest.update(secret.encode("utf-8"))
    return digest.digest()


def constant_time_equal(a: bytes, b: bytes) -> bool:
    """Compare two byte strings without an early exit on the first mismatch."""
    return hmac.compare_digest(a, b)
