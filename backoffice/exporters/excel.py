from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, cast

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from ..models.marketplace import TimeToSell


def _auto_fit(ws: Worksheet) -> None:
    widths: dict[int, int] = {}
    for row in ws.rows:
        for cell in row:
            value = str(cell.value) if cell.value is not None else ""
            col_idx = int(getattr(cell, "col_idx", getattr(cell, "column", 0)))
            widths[col_idx] = max(widths.get(col_idx, 0), len(value) + 2)
    for col, width in widths.items():
        ws.column_dimensions[get_column_letter(col)].width = min(60, width)


def _header(ws: Worksheet, names: list[str]) -> None:
    ws.append(names)
    for h in ws[1]:
        h.font = Font(bold=True)


def _finish(ws: Worksheet) -> None:
    ws.auto_filter.ref = ws.dimensions
    ws.freeze_panes = "A2"
    _auto_fit(ws)


def build_statistics_workbook(stats: Mapping[str, Any], generated_at: datetime | None = None) -> Workbook:
    """One workbook for the whole statistics dashboard.

    Counters go to a long-format "Counts" sheet (statistic, group, label, value); the
    weekly trend and time-to-sell figures get their own sheets.
    """
    wb = Workbook()
    ws_counts = cast(Worksheet, wb.active)
    ws_counts.title = "Counts"
    ws_trend = cast(Worksheet, wb.create_sheet("Listing Trend"))
    ws_sell = cast(Worksheet, wb.create_sheet("Time To Sell"))

    _header(ws_counts, ["statistic", "group", "label", "count"])
    for name, result in stats.items():
        if name == "listing_trend" or isinstance(result, TimeToSell):
            continue
        if name == "items_by_type":
            for group, buckets in result.items():
                for label, value in buckets.items():
                    ws_counts.append([name, group, label, value])
            continue
        for label, value in result.items():
            ws_counts.append([name, None, label, value])
    _finish(ws_counts)

    _header(ws_trend, ["week", "listings"])
    for label, value in (stats.get("listing_trend") or {}).items():
        ws_trend.append([label, value])
    _finish(ws_trend)

    _header(ws_sell, ["price_type", "average_days", "sales"])
    sell = stats.get("time_to_sell")
    if isinstance(sell, TimeToSell):
        for mode, avg in sell.average.items():
            ws_sell.append([mode, avg, sell.counts.get(mode, 0)])
    _finish(ws_sell)

    ts = (generated_at or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M UTC")
    for ws in (ws_counts, ws_trend, ws_sell):
        ws.oddFooter.center.text = f"Exported {ts} - Marketplace statistics"  # type: ignore[union-attr]

    return wb
