"""Per-client rate limiting middleware for public mutation routes.

Client identity is the first entry of X-Forwarded-For when present (the
deployment is expected to sit behind a proxy that sets it), otherwise the
socket peer address. A denied request gets 429 and the wrapped handler is
not called. The registry is the application's own
(``request.app.state.rate_limiter``).
"""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import Response

from cosign.ratelimit.registry import RateLimiterRegistry
from cosign.routing import RequestHandler, error_response
from cosign.utils.logger import get_logger

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


def client_ip(request: Request) -> str:
    """Return the rate-limit identity for ``request``."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def rate_limit(call_next: RequestHandler) -> RequestHandler:
    """Wrap ``call_next`` so each client spends one token per request."""

    async def handler(request: Request) -> Response:
        registry: RateLimiterRegistry = request.app.state.rate_limiter
        client = client_ip(request)
        if not registry.allow(client):
            logger.warning(
                "Rate limit exceeded",
                client=client,
                path=request.url.path,
                method=request.method,
            )
            return error_response(429, "Rate limit exceeded", "rate_limited")
        return await call_next(request)

    return handler
