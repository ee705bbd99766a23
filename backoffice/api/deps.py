from __future__ import annotations

import httpx
from fastapi import Depends, Header, HTTPException

from ..clients.supabase import AuthError, NotFoundError, SupabaseClient, SupabaseError, service_client
from ..db.marks import MarkStore
from ..logging import get_logger, set_admin_id
from ..models.marketplace import AdminIdentity
from ..services.auth import bearer_token, verify_admin

_log = get_logger()

UPSTREAM_ERRORS = (SupabaseError, httpx.HTTPError)


def get_supabase() -> SupabaseClient:
    return service_client()


def get_marks() -> MarkStore:
    return MarkStore()


async def require_admin(
    authorization: str | None = Header(None),
    client: SupabaseClient = Depends(get_supabase),
) -> AdminIdentity:
    try:
        identity = await verify_admin(client, bearer_token(authorization))
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=exc.message)
    except UPSTREAM_ERRORS as exc:
        _log.error("admin_check_failed", error=str(exc))
        raise HTTPException(status_code=502, detail="Error verifying admin status")
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    set_admin_id(identity.user_id)
    return identity


def upstream_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=exc.message)
    if isinstance(exc, SupabaseError):
        _log.error("upstream_error", error=exc.message, status_code=exc.status_code, code=exc.code)
        return HTTPException(status_code=502, detail=exc.message)
    _log.error("upstream_unreachable", error=str(exc), error_type=type(exc).__name__)
    return HTTPException(status_code=502, detail="Upstream service unavailable")
