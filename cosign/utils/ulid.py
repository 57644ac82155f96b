"""ULID generation for Cosign request tracing.

``generate_ulid()`` returns a 26-character ULID used as:
  - X-Request-ID response header value (set on every request)
  - request_id field in structured log entries

Uses the ``python-ulid`` library (see pyproject.toml); do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Returns:
        str: Crockford Base32 ULID, e.g. ``"01KJ0JRVHYA7KX32VPN5ZSCTMV"``.
    """
    return str(ULID())
