from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ...clients.supabase import SupabaseClient
from ...models.marketplace import ChartSeries
from ...services.statistics import STATISTICS, as_series, compute_statistic, load_statistics
from ..deps import get_supabase, require_admin

router = APIRouter(prefix="/stats", tags=["stats"], dependencies=[Depends(require_admin)])


def _plain(value: Any) -> Any:
    return value.model_dump() if isinstance(value, BaseModel) else value


def _known(name: str) -> None:
    if name not in STATISTICS:
        raise HTTPException(status_code=404, detail=f"unknown statistic: {name}")


@router.get("")
async def all_statistics(client: SupabaseClient = Depends(get_supabase)) -> dict[str, Any]:
    """Every dashboard statistic, computed concurrently from fresh rows."""
    stats = await load_statistics(client)
    return {name: _plain(value) for name, value in stats.items()}


@router.get("/series/{name}")
async def statistic_series(name: str, client: SupabaseClient = Depends(get_supabase)) -> dict[str, ChartSeries]:
    """Chart-ready labels/values for one statistic."""
    _known(name)
    return as_series(name, await compute_statistic(name, client))


@router.get("/{name}")
async def one_statistic(name: str, client: SupabaseClient = Depends(get_supabase)) -> dict[str, Any]:
    _known(name)
    return {"name": name, "data": _plain(await compute_statistic(name, client))}
