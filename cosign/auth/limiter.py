"""Shared slowapi limiter for the admin key-management routes.

This is a coarse per-address cap layered on top of bearer authentication,
separate from the token-bucket registry that guards public routes. The
Limiter instance is module-level because slowapi registers limits per
decorated function:

  - cosign/auth/router.py  (route decorators)
  - cosign/main.py         (app.state.limiter + RateLimitExceeded handler)

The limit string is resolved per request from ``admin_rate_limit()`` so the
``auth.admin_rate_limit`` config value applies without re-decorating routes.
"""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from cosign.constants import DEFAULT_ADMIN_RATE_LIMIT

# Module-level limiter, imported by main.py and auth/router.py
limiter = Limiter(key_func=get_remote_address)

_admin_rate_limit: str = DEFAULT_ADMIN_RATE_LIMIT


def admin_rate_limit() -> str:
    """Current limit string for key-management routes, e.g. ``"20/minute"``."""
    return _admin_rate_limit


def set_admin_rate_limit(value: str) -> None:
    """Replace the key-management limit (process-wide)."""
    global _admin_rate_limit
    _admin_rate_limit = value
