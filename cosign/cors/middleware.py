"""CORS enforcement middleware for public (browser-facing) routes.

Per request:
  1. Read the Origin header.
  2. Non-empty and not whitelisted → 403, wrapped handler NOT called.
  3. Otherwise set the CORS response headers. Access-Control-Allow-Origin
     echoes the request origin and is only set when there is one; a wildcard
     is never emitted.
  4. OPTIONS (preflight) → 204 immediately, wrapped handler NOT called.
  5. Anything else → call the wrapped handler and decorate its response.
     Exceptions raised below this point (body validation, HTTPException,
     CosignError, unhandled errors) are rendered here with the application's
     own exception handlers so that error responses carry the headers too.

Sits outermost on public mutation routes so a disallowed browser origin is
rejected before it spends a rate-limit token.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Optional

from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import Response

from cosign.constants import CORS_ALLOW_HEADERS, CORS_ALLOW_METHODS, CORS_MAX_AGE_SECONDS
from cosign.cors.service import CORSService
from cosign.errors import GENERIC_STORAGE_MESSAGE, StorageError
from cosign.routing import RequestHandler, error_response
from cosign.utils.logger import get_logger

logger = get_logger(__name__)


def cors_headers(origin: str) -> dict[str, str]:
    """Response headers for an allowed request from ``origin`` ("" = no Origin header)."""
    headers = {
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Max-Age": str(CORS_MAX_AGE_SECONDS),
    }
    if origin:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
    return headers


def _lookup_exception_handler(
    request: Request, exc: Exception
) -> Optional[Callable[..., Any]]:
    # Same precedence as Starlette: status-code handlers, then the class MRO.
    handlers = request.app.exception_handlers
    if isinstance(exc, StarletteHTTPException) and exc.status_code in handlers:
        return handlers[exc.status_code]
    for cls in type(exc).__mro__:
        if cls in handlers:
            return handlers[cls]
    return None


def enforce_cors(call_next: RequestHandler) -> RequestHandler:
    """Wrap ``call_next`` with whitelist enforcement and preflight handling."""

    async def handler(request: Request) -> Response:
        cors: CORSService = request.app.state.cors
        origin = request.headers.get("Origin", "")

        try:
            allowed = await cors.is_allowed(origin)
        except StorageError as exc:
            logger.error("Origin check failed: storage error", origin=origin, error=str(exc))
            return error_response(500, GENERIC_STORAGE_MESSAGE, StorageError.code)

        if not allowed:
            logger.warning(
                "CORS origin rejected",
                origin=origin,
                path=request.url.path,
                method=request.method,
            )
            return error_response(403, "Origin not allowed", "origin_not_allowed")

        headers = cors_headers(origin)

        if request.method == "OPTIONS":
            return Response(status_code=204, headers=headers)

        try:
            response = await call_next(request)
        except Exception as exc:
            exc_handler = _lookup_exception_handler(request, exc)
            if exc_handler is None:
                raise
            response = exc_handler(request, exc)
            if inspect.isawaitable(response):
                response = await response
        response.headers.update(headers)
        return response

    return handler
