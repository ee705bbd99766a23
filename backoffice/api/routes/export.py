from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ...clients.supabase import SupabaseClient
from ...exporters.excel import build_statistics_workbook
from ...services.statistics import load_statistics
from ..deps import get_supabase, require_admin

router = APIRouter(prefix="/export", tags=["export"], dependencies=[Depends(require_admin)])


@router.get("/excel/statistics")
async def export_statistics_excel(client: SupabaseClient = Depends(get_supabase)) -> StreamingResponse:
    now = datetime.now(timezone.utc)
    stats = await load_statistics(client, now=now)
    wb = build_statistics_workbook(stats, generated_at=now)
    buf = BytesIO()
    wb.save(buf)
    buf.seek(0)
    filename = f"marketplace_statistics_{now:%Y%m%d}.xlsx"
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return StreamingResponse(
        buf,
        media_type=(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        ),
        headers=headers,
    )
