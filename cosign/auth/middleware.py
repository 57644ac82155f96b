"""Bearer-token authentication middleware for admin routes.

``require_api_key`` is a routing Middleware that:
  - extracts the token from ``Authorization: Bearer {id}.{secret}``
  - returns 401 when the header is absent or has any other shape
  - returns 401 when KeyService.verify() says False
  - returns 500 (generic body) when verification hits a StorageError
  - otherwise calls the wrapped handler

The KeyService is the application's own (``request.app.state.keys``).

The scheme match is exact: ``Bearer`` followed by a single space. Anything
else ("bearer x", "Basic ...", "Token ...") is treated as no credential.
"""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import Response

from cosign.auth.keys import KeyService
from cosign.errors import GENERIC_STORAGE_MESSAGE, StorageError
from cosign.routing import RequestHandler, error_response
from cosign.utils.logger import get_logger

logger = get_logger(__name__)

_BEARER_SCHEME = "Bearer"

_CHALLENGE = {"WWW-Authenticate": _BEARER_SCHEME}


def extract_bearer_token(authorization: str) -> str:
    """Return the token from an Authorization header value, or "" if there is none."""
    if not authorization:
        return ""
    scheme, sep, token = authorization.partition(" ")
    if not sep or scheme != _BEARER_SCHEME:
        return ""
    return token


def require_api_key(call_next: RequestHandler) -> RequestHandler:
    """Wrap ``call_next`` so it only runs for requests carrying a valid API key."""

    async def handler(request: Request) -> Response:
        keys: KeyService = request.app.state.keys

        token = extract_bearer_token(request.headers.get("Authorization", ""))
        if not token:
            logger.warning(
                "Authentication failed: no bearer token",
                path=request.url.path,
                method=request.method,
            )
            return error_response(
                401, "Missing authorization token", "unauthorized", headers=_CHALLENGE
            )

        try:
            ok = await keys.verify(token)
        except StorageError as exc:
            logger.error(
                "Key verification failed: storage error",
                path=request.url.path,
                error=str(exc),
            )
            return error_response(500, GENERIC_STORAGE_MESSAGE, StorageError.code)

        if not ok:
            logger.warning(
                "Authentication failed: invalid token",
                path=request.url.path,
                method=request.method,
            )
            return error_response(
                401, "Invalid authorization token", "unauthorized", headers=_CHALLENGE
            )

        return await call_next(request)

    return handler
