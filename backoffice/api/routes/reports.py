from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Path

from ...clients.supabase import SupabaseClient
from ...db.marks import MarkStore
from ...services.moderation import list_reports, split_reports
from ..deps import UPSTREAM_ERRORS, get_marks, get_supabase, require_admin, upstream_error

router = APIRouter(prefix="/admin/reports", tags=["reports"], dependencies=[Depends(require_admin)])


@router.get("")
async def reports(
    client: SupabaseClient = Depends(get_supabase),
    marks: MarkStore = Depends(get_marks),
) -> dict[str, Any]:
    try:
        rows = await list_reports(client)
    except UPSTREAM_ERRORS as exc:
        raise upstream_error(exc)
    unresolved, resolved = split_reports(rows, await marks.get("resolved"))
    return {
        "total": len(rows),
        "unresolved_count": len(unresolved),
        "resolved_count": len(resolved),
        "unresolved": unresolved,
        "resolved": resolved,
    }


@router.post("/{report_id}/resolve")
async def toggle_resolved(
    report_id: int = Path(..., ge=1), marks: MarkStore = Depends(get_marks)
) -> dict[str, Any]:
    return {"report_id": report_id, "resolved": await marks.toggle("resolved", report_id)}
