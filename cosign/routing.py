"""Per-route middleware composition.

A middleware here is a plain function ``Middleware(next) -> handler``: it
receives the next request handler and returns a new handler that either
returns a terminal response itself (401/403/429/204/500) or awaits ``next``.

``guarded_route(*middlewares)`` builds an APIRoute subclass that wraps every
route's handler with the given chain. The first middleware listed is the
outermost, so ``guarded_route(cors, rate_limit)`` runs CORS, then rate
limiting, then the endpoint. Unlike app-wide Starlette middleware, each
router chooses its own chain:

    public mutation routes:  CORS → rate limit → handler
    admin routes:            auth → handler
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from fastapi.routing import APIRoute
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

RequestHandler = Callable[[Request], Awaitable[Response]]
Middleware = Callable[[RequestHandler], RequestHandler]


def error_response(
    status_code: int,
    message: str,
    code: str,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Build the standard error body: ``{"error": {"message": ..., "code": ...}}``."""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "code": code}},
        headers=headers,
    )


def chain(handler: RequestHandler, *middlewares: Middleware) -> RequestHandler:
    """Wrap ``handler`` so that ``middlewares[0]`` runs first."""
    for middleware in reversed(middlewares):
        handler = middleware(handler)
    return handler


def guarded_route(*middlewares: Middleware) -> type[APIRoute]:
    """Return an APIRoute class whose handlers run behind ``middlewares``."""

    class GuardedRoute(APIRoute):
        def get_route_handler(self) -> RequestHandler:
            return chain(super().get_route_handler(), *middlewares)

    return GuardedRoute
