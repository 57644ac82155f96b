"""FastAPI dependencies for the per-application services stored on ``app.state``.

create_app() builds one KeyService and one CORSService per application; admin
route handlers receive them through ``Depends`` so that two apps in the same
process never share state. The routing middleware reads ``app.state``
directly.
"""

from __future__ import annotations

from starlette.requests import Request

from cosign.auth.keys import KeyService
from cosign.cors.service import CORSService


def get_key_service(request: Request) -> KeyService:
    return request.app.state.keys


def get_cors_service(request: Request) -> CORSService:
    return request.app.state.cors
