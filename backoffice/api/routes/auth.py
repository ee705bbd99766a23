from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse

from ...clients.supabase import AuthError, SupabaseClient
from ...config import settings
from ...logging import get_logger
from ...services.auth import bearer_token, verify_admin
from ..deps import UPSTREAM_ERRORS, get_supabase

_log = get_logger()

router = APIRouter(prefix="/api", tags=["auth"])


@router.get("/config")
async def public_config() -> dict[str, Any]:
    """Public connection details for the browser client (anon key only)."""
    return {"supabaseUrl": str(settings.SUPABASE_URL), "supabaseKey": settings.SUPABASE_KEY}


@router.post("/verify-admin")
async def verify_admin_route(
    authorization: str | None = Header(None),
    client: SupabaseClient = Depends(get_supabase),
) -> Any:
    try:
        identity = await verify_admin(client, bearer_token(authorization))
    except AuthError as exc:
        return JSONResponse(status_code=401, content={"success": False, "message": exc.message})
    except UPSTREAM_ERRORS as exc:
        _log.error("admin_check_failed", error=str(exc))
        return JSONResponse(
            status_code=500, content={"success": False, "message": "Error verifying admin status"}
        )
    return {"success": True, "isAdmin": identity.is_admin}
