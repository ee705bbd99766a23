from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import httpx

from ..clients.supabase import Query, SupabaseClient, SupabaseError
from ..config import settings
from ..logging import get_logger
from ..models.marketplace import (
    ITEM_CONDITIONS,
    ITEM_STATUSES,
    PRICE_MODES,
    TRANSACTION_STATUSES,
    VIOLATION_TYPES,
    ChartSeries,
    TimeToSell,
)
from .aggregation import (
    bucket_by_field,
    bucket_by_price_range,
    bucket_by_week,
    sale_samples,
    time_to_sell,
    to_series,
)

_log = get_logger()

OTHER = "Other"
FETCH_ERRORS = (SupabaseError, httpx.HTTPError)


async def _rows(stat: str, query: Query) -> list[dict[str, Any]]:
    """Run one statistic's query; a failed fetch yields no rows so the unit zero-fills."""
    try:
        result = await query.execute()
    except FETCH_ERRORS as exc:
        _log.warning("stats_fetch_failed", stat=stat, error=str(exc))
        return []
    return result.data


async def user_stats(client: SupabaseClient) -> dict[str, int]:
    rows = await _rows("users_by_school", client.table("student").select("stud_school"))
    return bucket_by_field(rows, "stud_school")


async def item_stats(client: SupabaseClient) -> dict[str, dict[str, int]]:
    available, sold = await asyncio.gather(
        _rows(
            "items_by_type",
            client.table("item").select("item_type, item_status").neq("item_status", "sold"),
        ),
        _rows(
            "items_by_type",
            client.table("item").select("item_type").eq("item_status", "sold"),
        ),
    )
    return {
        "available": bucket_by_field(available, "item_type"),
        "sold": bucket_by_field(sold, "item_type"),
    }


async def item_status_stats(client: SupabaseClient) -> dict[str, int]:
    rows = await _rows("items_by_status", client.table("item").select("item_status"))
    return bucket_by_field(rows, "item_status", ITEM_STATUSES, other=OTHER)


async def transaction_stats(client: SupabaseClient) -> dict[str, int]:
    rows = await _rows("transactions_by_status", client.table("transactions").select("status"))
    return bucket_by_field(rows, "status", TRANSACTION_STATUSES, other=OTHER)


async def report_stats(client: SupabaseClient) -> dict[str, int]:
    rows = await _rows("reports_by_violation", client.table("report").select("violation_type"))
    return bucket_by_field(rows, "violation_type", VIOLATION_TYPES, other="other")


async def price_range_stats(client: SupabaseClient) -> dict[str, int]:
    rows = await _rows(
        "price_ranges",
        client.table("item").select("item_price, item_price_type, item_price_min, item_price_max"),
    )
    return bucket_by_price_range(rows)


async def condition_stats(client: SupabaseClient) -> dict[str, int]:
    rows = await _rows("conditions", client.table("item").select("item_condition"))
    return bucket_by_field(rows, "item_condition", ITEM_CONDITIONS, other=OTHER)


async def price_type_stats(client: SupabaseClient) -> dict[str, int]:
    rows = await _rows("price_types", client.table("item").select("item_price_type"))
    return bucket_by_field(rows, "item_price_type", PRICE_MODES, default="fixed", other=OTHER)


async def listing_trend_stats(client: SupabaseClient, now: datetime | None = None) -> dict[str, int]:
    rows = await _rows(
        "listing_trend",
        client.table("item").select("created_at").order("created_at"),
    )
    return dict(bucket_by_week(rows, now, window_weeks=settings.TREND_WINDOW_WEEKS))


async def time_to_sell_stats(client: SupabaseClient) -> TimeToSell:
    rows = await _rows(
        "time_to_sell",
        client.table("transactions")
        .select("updated_at, item(item_price_type, created_at)")
        .eq("status", "completed"),
    )
    return time_to_sell(sale_samples(rows))


StatUnit = Callable[[SupabaseClient], Awaitable[Any]]

STATISTICS: dict[str, StatUnit] = {
    "users_by_school": user_stats,
    "items_by_type": item_stats,
    "items_by_status": item_status_stats,
    "transactions_by_status": transaction_stats,
    "reports_by_violation": report_stats,
    "price_ranges": price_range_stats,
    "conditions": condition_stats,
    "price_types": price_type_stats,
    "listing_trend": listing_trend_stats,
    "time_to_sell": time_to_sell_stats,
}


async def compute_statistic(name: str, client: SupabaseClient, now: datetime | None = None) -> Any:
    if name == "listing_trend":
        return await listing_trend_stats(client, now=now)
    return await STATISTICS[name](client)


async def load_statistics(client: SupabaseClient, now: datetime | None = None) -> dict[str, Any]:
    """Fetch and aggregate every dashboard statistic concurrently.

    Each statistic degrades to its zero-filled shape on its own, so a failing query
    never blocks the others.
    """
    names = list(STATISTICS)
    results = await asyncio.gather(*(compute_statistic(n, client, now=now) for n in names))
    _log.info("statistics_loaded", count=len(names))
    return dict(zip(names, results))


def as_series(name: str, result: Any) -> dict[str, ChartSeries]:
    """Chart datasets for one statistic, keyed by dataset name."""
    if isinstance(result, TimeToSell):
        return {"average": to_series(result.average), "counts": to_series(result.counts)}
    if name == "items_by_type":
        return {key: to_series(buckets) for key, buckets in result.items()}
    return {name: to_series(result)}
