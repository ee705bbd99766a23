from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from ...clients.supabase import SupabaseClient
from ...models.marketplace import TRANSACTION_STATUSES
from ...services.moderation import list_transactions
from ..deps import UPSTREAM_ERRORS, get_supabase, require_admin, upstream_error

router = APIRouter(prefix="/admin/transactions", tags=["transactions"], dependencies=[Depends(require_admin)])


@router.get("")
async def transactions(
    status: str | None = Query(None),
    q: str | None = Query(None, description="Match transaction id, buyer, seller or item name"),
    client: SupabaseClient = Depends(get_supabase),
) -> dict[str, Any]:
    """All transactions with buyer, seller and item joined, newest first."""
    if status is not None and status not in TRANSACTION_STATUSES:
        raise HTTPException(status_code=400, detail=f"unknown status: {status}")
    try:
        rows = await list_transactions(client, status=status, search=q)
    except UPSTREAM_ERRORS as exc:
        raise upstream_error(exc)
    return {"success": True, "count": len(rows), "data": rows}
