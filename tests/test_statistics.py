from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
import pytest

from backoffice.models.marketplace import TimeToSell
from backoffice.services import statistics as st

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_item_stats_split_available_and_sold(supabase: Any) -> None:
    res = await st.item_stats(supabase)
    assert res == {"available": {"Electronics": 2}, "sold": {"Books": 1}}


@pytest.mark.asyncio
async def test_categorical_units_zero_fill(supabase: Any) -> None:
    statuses = await st.item_status_stats(supabase)
    assert statuses == {"available": 2, "sold": 1, "pending": 0, "cancelled": 0, "reserved": 0, "Other": 0}

    reports = await st.report_stats(supabase)
    # unrecognized violation types fold into the vocabulary's own "other"
    assert reports["fake listings"] == 1
    assert reports["other"] == 1
    assert "spam" not in reports

    conditions = await st.condition_stats(supabase)
    assert conditions["Good"] == 1 and conditions["Poor"] == 0

    schools = await st.user_stats(supabase)
    assert schools == {"North": 2, "South": 1, "Unknown": 1}


@pytest.mark.asyncio
async def test_time_to_sell_unit(supabase: Any) -> None:
    res = await st.time_to_sell_stats(supabase)
    # listed 2026-09-01 08:00, completed 2026-09-06 09:00
    assert res.counts == {"fixed": 0, "negotiable": 1, "free": 0}
    assert res.average["negotiable"] == 5.0
    method, path, params, _ = supabase.calls[-1]
    assert path == "/rest/v1/transactions"
    assert ("status", "eq.completed") in params


@pytest.mark.asyncio
async def test_listing_trend_unit(supabase: Any) -> None:
    res = await st.listing_trend_stats(supabase, now=NOW)
    assert list(res)[0] == "Week 1" and list(res)[-1] == "Week 12"
    assert res["Week 12"] == 1  # listed a day ago
    assert res["Week 11"] == 1  # listed eight days ago
    assert sum(res.values()) == 3


@pytest.mark.asyncio
async def test_failed_fetch_degrades_to_zero_shape(fake_supabase_cls: Any) -> None:
    broken = fake_supabase_cls(tables={}, fail={"item", "transactions", "student", "report"})
    assert await st.time_to_sell_stats(broken) == TimeToSell.empty()
    assert await st.price_range_stats(broken) == dict.fromkeys(
        ["Free", "₱1 - ₱50", "₱51 - ₱100", "₱101 - ₱200", "₱201 - ₱500", "₱501 - ₱1,000", "₱1,001+"], 0
    )
    trend = await st.listing_trend_stats(broken, now=NOW)
    assert len(trend) == 12 and sum(trend.values()) == 0
    assert await st.user_stats(broken) == {}


@pytest.mark.asyncio
async def test_load_statistics_isolates_failures(fake_supabase_cls: Any, supabase: Any) -> None:
    partial = fake_supabase_cls(tables=supabase.tables, fail={"transactions"})
    stats = await st.load_statistics(partial, now=NOW)
    assert set(stats) == set(st.STATISTICS)
    assert stats["transactions_by_status"] == {
        "pending": 0, "completed": 0, "cancelled": 0, "reserved": 0, "Other": 0,
    }
    assert stats["time_to_sell"] == TimeToSell.empty()
    # siblings still computed from their own rows
    assert stats["price_ranges"]["Free"] == 1
    assert stats["items_by_status"]["available"] == 2


def test_as_series_shapes() -> None:
    tts = TimeToSell(average={"fixed": 2.0, "negotiable": 0.0, "free": 0.0}, counts={"fixed": 3, "negotiable": 0, "free": 0})
    series = st.as_series("time_to_sell", tts)
    assert series["average"].labels == ["fixed", "negotiable", "free"]
    assert series["counts"].values == [3, 0, 0]

    by_type = st.as_series("items_by_type", {"available": {"Books": 2}, "sold": {}})
    assert by_type["available"].labels == ["Books"]
    assert by_type["sold"].labels == []

    single = st.as_series("conditions", {"Good": 1})
    assert list(single) == ["conditions"]


@pytest.mark.asyncio
async def test_non_json_body_degrades_only_its_statistic(fake_supabase_cls: Any, supabase: Any) -> None:
    class GatewayPage(fake_supabase_cls):  # type: ignore[misc, valid-type]
        async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
            if path == "/rest/v1/report":
                self.calls.append((method, path, [], None))
                return httpx.Response(
                    200,
                    content=b"<html>gateway</html>",
                    headers={"content-type": "text/html"},
                    request=httpx.Request(method, f"http://supabase.test{path}"),
                )
            return await super().request(method, path, **kwargs)

    stats = await st.load_statistics(GatewayPage(tables=supabase.tables), now=NOW)
    assert set(stats) == set(st.STATISTICS)
    assert sum(stats["reports_by_violation"].values()) == 0
    assert stats["items_by_status"]["available"] == 2
    assert stats["time_to_sell"].counts["negotiable"] == 1
