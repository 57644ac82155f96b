"""Admin API for key management.

Provides (mounted under ``/api/v1/admin``):
  GET    /keys           - list keys (id, created_at, last_used_at; never secrets)
  POST   /keys           - issue a key; the token is returned ONCE
  DELETE /keys/{key_id}  - revoke a key immediately

Every route runs behind ``require_api_key`` (AdminRoute) and the slowapi
key-management limit.
"""

from fastapi import Depends, Request
from starlette.responses import Response

from cosign.auth.keys import KeyService
from cosign.auth.limiter import admin_rate_limit, limiter
from cosign.constants import TOKEN_SEPARATOR
from cosign.dependencies import get_key_service
from cosign.guards import admin_router

router = admin_router(prefix="/keys", tags=["api-keys"])


# ─── Endpoints ────────────────────────────────────────────────────────────────


@router.get("")
@limiter.limit(admin_rate_limit)
async def list_keys(
    request: Request,
    keys: KeyService = Depends(get_key_service),
) -> dict:
    """List all keys, newest first.

    Returns:
        JSON: {"keys": [{id, created_at, last_used_at}, ...]}
    """
    infos = await keys.list()
    return {"keys": [info.to_dict() for info in infos]}


@router.post("", status_code=201)
@limiter.limit(admin_rate_limit)
async def create_key(
    request: Request,
    keys: KeyService = Depends(get_key_service),
) -> dict:
    """Issue a new key. The plaintext token appears in this response only.

    Returns:
        JSON: {key, id, message}
    """
    token = await keys.issue_key()
    return {
        "key": token,
        "id": token.split(TOKEN_SEPARATOR, 1)[0],
        "message": "API key created. Store this key, it will not be shown again.",
    }


@router.delete("/{key_id}", status_code=204)
@limiter.limit(admin_rate_limit)
async def revoke_key(
    key_id: str,
    request: Request,
    keys: KeyService = Depends(get_key_service),
) -> Response:
    """Revoke ``key_id``. Unknown ids raise KeyNotFoundError (404 via the app handler)."""
    await keys.revoke(key_id)
    return Response(status_code=204)
