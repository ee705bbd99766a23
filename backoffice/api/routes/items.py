from __future__ import annotations

import math
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from ...clients.supabase import SupabaseClient
from ...config import settings
from ...db.marks import MarkStore
from ...models.marketplace import ITEM_STATUSES, AdminIdentity
from ...services.moderation import categorize_items, delete_item, list_items
from ..deps import UPSTREAM_ERRORS, get_marks, get_supabase, require_admin, upstream_error

router = APIRouter(prefix="/admin/items", tags=["items"], dependencies=[Depends(require_admin)])


@router.get("")
async def items(
    school: str | None = Query(None),
    item_type: list[str] = Query([], description="Repeatable item type filter"),
    status: list[str] = Query([], description="Repeatable item status filter"),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.ITEMS_PER_PAGE, ge=1, le=200),
    client: SupabaseClient = Depends(get_supabase),
    marks: MarkStore = Depends(get_marks),
) -> dict[str, Any]:
    """Filtered listings page split into pinned, verified and regular sections."""
    unknown = [s for s in status if s not in ITEM_STATUSES]
    if unknown:
        raise HTTPException(status_code=400, detail=f"unknown status: {', '.join(unknown)}")
    try:
        rows, total = await list_items(
            client,
            school=school,
            item_types=[t for t in item_type if t.strip()],
            statuses=status,
            page=page,
            per_page=per_page,
        )
    except UPSTREAM_ERRORS as exc:
        raise upstream_error(exc)
    sections = categorize_items(rows, await marks.get("pinned"), await marks.get("verified"))
    return {
        "page": page,
        "per_page": per_page,
        "total": total,
        "pages": math.ceil(total / per_page) if total else 0,
        **sections,
    }


@router.delete("/{item_id}")
async def remove_item(
    item_id: int = Path(..., ge=1),
    admin: AdminIdentity = Depends(require_admin),
    client: SupabaseClient = Depends(get_supabase),
    marks: MarkStore = Depends(get_marks),
) -> dict[str, Any]:
    try:
        row = await delete_item(client, item_id, admin_uuid=admin.user_id)
    except UPSTREAM_ERRORS as exc:
        raise upstream_error(exc)
    await marks.remove("pinned", item_id)
    await marks.remove("verified", item_id)
    return {"success": True, "item": row}


@router.post("/{item_id}/pin")
async def toggle_pin(item_id: int = Path(..., ge=1), marks: MarkStore = Depends(get_marks)) -> dict[str, Any]:
    return {"item_id": item_id, "pinned": await marks.toggle("pinned", item_id)}


@router.post("/{item_id}/verify")
async def toggle_verify(item_id: int = Path(..., ge=1), marks: MarkStore = Depends(get_marks)) -> dict[str, Any]:
    return {"item_id": item_id, "verified": await marks.toggle("verified", item_id)}
