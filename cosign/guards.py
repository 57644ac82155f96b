"""Router factories that bake the fixed middleware order into route classes.

  PublicRoute: enforce_cors → rate_limit → handler   (browser-facing mutations)
  AdminRoute:  require_api_key → handler             (operator API, no CORS)

CORS runs before rate limiting so a disallowed origin is rejected without
spending a token. Public routes must accept OPTIONS for preflight to reach
the CORS middleware, e.g. ``@router.api_route("/x", methods=["POST", "OPTIONS"])``.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from cosign.auth.middleware import require_api_key
from cosign.cors.middleware import enforce_cors
from cosign.ratelimit.middleware import rate_limit
from cosign.routing import guarded_route

PublicRoute = guarded_route(enforce_cors, rate_limit)

AdminRoute = guarded_route(require_api_key)


def public_router(**kwargs: Any) -> APIRouter:
    """APIRouter whose routes run behind CORS and rate limiting."""
    return APIRouter(route_class=PublicRoute, **kwargs)


def admin_router(**kwargs: Any) -> APIRouter:
    """APIRouter whose routes require a valid bearer API key."""
    return APIRouter(route_class=AdminRoute, **kwargs)
