from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, Path, Query

from ...clients.supabase import SupabaseClient
from ...models.marketplace import AdminIdentity
from ...services.moderation import (
    UserAction,
    apply_user_action,
    filter_users,
    list_users,
    schools,
    user_status,
    user_summary,
)
from ..deps import UPSTREAM_ERRORS, get_supabase, require_admin, upstream_error

router = APIRouter(prefix="/admin/users", tags=["users"], dependencies=[Depends(require_admin)])


@router.get("")
async def users(
    q: str | None = Query(None, description="Match name, student id or email"),
    school: str | None = Query(None),
    status: Literal["active", "warned", "banned", "restricted"] | None = Query(None),
    client: SupabaseClient = Depends(get_supabase),
) -> dict[str, Any]:
    try:
        everyone = await list_users(client)
    except UPSTREAM_ERRORS as exc:
        raise upstream_error(exc)
    matched = filter_users(everyone, search=q, school=school, status=status)
    return {
        "summary": user_summary(everyone).model_dump(),
        "schools": schools(everyone),
        "count": len(matched),
        "users": [{**u.model_dump(), "status": user_status(u)} for u in matched],
    }


@router.post("/{stud_id}/{action}")
async def user_action(
    action: UserAction,
    stud_id: int = Path(..., ge=1),
    admin: AdminIdentity = Depends(require_admin),
    client: SupabaseClient = Depends(get_supabase),
) -> dict[str, Any]:
    try:
        user = await apply_user_action(client, stud_id, action, sender_uuid=admin.user_id)
    except UPSTREAM_ERRORS as exc:
        raise upstream_error(exc)
    return {"success": True, "action": action, "user": {**user.model_dump(), "status": user_status(user)}}
