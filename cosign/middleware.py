"""App-wide request middleware.

RequestIDMiddleware assigns every request a fresh ULID, binds it to the
logging context for the duration of the request and echoes it back in the
``X-Request-ID`` response header. Client-supplied request ids are ignored so
they cannot be used to forge log correlation.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from cosign.utils.logger import clear_request_id, set_request_id
from cosign.utils.ulid import generate_ulid

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        request_id = generate_ulid()
        request.state.request_id = request_id
        set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_id()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
