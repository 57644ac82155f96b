"""Admin API for the CORS origin whitelist.

  GET    /cors                 - {"origins": [...]}
  POST   /cors                 - add one origin (idempotent), 201
  PUT    /cors                 - replace the whole list
  DELETE /cors/{origin:path}   - remove one origin, 204 / 404

Origins contain "://", so the DELETE path parameter uses the ``path``
converter and may be sent verbatim or URL-encoded.
"""

from __future__ import annotations

from fastapi import Depends
from pydantic import BaseModel
from starlette.responses import Response

from cosign.cors.service import CORSService
from cosign.dependencies import get_cors_service
from cosign.guards import admin_router

router = admin_router(prefix="/cors", tags=["cors"])


# ─── Request Models ───────────────────────────────────────────────────────────


class AddOriginRequest(BaseModel):
    """Request body for POST /cors."""

    origin: str


class ReplaceOriginsRequest(BaseModel):
    """Request body for PUT /cors."""

    origins: list[str]


# ─── Endpoints ────────────────────────────────────────────────────────────────


@router.get("")
async def list_origins(cors: CORSService = Depends(get_cors_service)) -> dict:
    return {"origins": await cors.list_origins()}


@router.post("", status_code=201)
async def add_origin(
    body: AddOriginRequest,
    cors: CORSService = Depends(get_cors_service),
) -> dict:
    """Add one origin. Blank origins raise InvalidOriginError (400)."""
    return {"origin": await cors.add_origin(body.origin)}


@router.put("")
async def replace_origins(
    body: ReplaceOriginsRequest,
    cors: CORSService = Depends(get_cors_service),
) -> dict:
    return {"origins": await cors.replace_origins(body.origins)}


@router.delete("/{origin:path}", status_code=204)
async def remove_origin(
    origin: str,
    cors: CORSService = Depends(get_cors_service),
) -> Response:
    await cors.remove_origin(origin)
    return Response(status_code=204)
