"""Health endpoint for Cosign.

  GET /health - 503 before ``app.state.ready`` (during lifespan startup),
                503 when the database does not answer, 200 otherwise.

Unauthenticated and outside the CORS / rate-limit chains so load balancers
and container probes can poll it freely.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from cosign.storage.database import Database

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> Any:
    """Primary health check endpoint.

    Response body (200):
        {"status": "ok", "database": "ok"}

    Response body (503):
        {"status": "starting", "database": "initializing"}   before ready
        {"status": "degraded", "database": "error"}          database unreachable
    """
    if not getattr(request.app.state, "ready", False):
        return JSONResponse(
            status_code=503,
            content={"status": "starting", "database": "initializing"},
        )

    database: Database = request.app.state.database
    if not await database.health_check():
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "database": "error"},
        )

    return {"status": "ok", "database": "ok"}
