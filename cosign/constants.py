"""Shared constants for Cosign.

Key sizes, rate-limit defaults and CORS header values live here.
No magic numbers in other modules; import from here.
"""

# ─── API Keys ────────────────────────────────────────────────────────────────

# Random bytes in a generated key id (hex-encoded → 16 chars).
KEY_ID_BYTES: int = 8

# Random bytes in a generated key secret (hex-encoded → 64 chars).
KEY_SECRET_BYTES: int = 32

# Per-key salt length. Salt is stored beside the digest, never reused.
KEY_SALT_BYTES: int = 16

# Separator between id and secret in an issued token: "{id}.{secret}".
TOKEN_SEPARATOR: str = "."

# Coarse slowapi limit on admin key-management routes (per client address).
DEFAULT_ADMIN_RATE_LIMIT: str = "20/minute"

# ─── Rate Limiting ───────────────────────────────────────────────────────────

# Token bucket refill rate (tokens per second) for public mutation routes.
DEFAULT_RATE_PER_SECOND: float = 10.0

# Token bucket capacity: the burst a fresh client may spend at once.
DEFAULT_BURST: int = 20

# Maximum number of per-client buckets kept in memory. Least-recently-seen
# clients are evicted beyond this bound.
DEFAULT_MAX_CLIENTS: int = 10_000

# ─── CORS ────────────────────────────────────────────────────────────────────

CORS_ALLOW_METHODS: str = "GET, POST, PUT, DELETE, OPTIONS"
CORS_ALLOW_HEADERS: str = "Content-Type, Authorization"
CORS_MAX_AGE_SECONDS: int = 86_400
