from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Mapping, Sequence
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ..models.marketplace import PRICE_MODES, ChartSeries, TimeToSell

UNKNOWN = "Unknown"
FREE = "Free"
# (label, inclusive upper bound); lower bounds are exclusive
PRICE_RANGES: tuple[tuple[str, float], ...] = (
    ("₱1 - ₱50", 50.0),
    ("₱51 - ₱100", 100.0),
    ("₱101 - ₱200", 200.0),
    ("₱201 - ₱500", 500.0),
    ("₱501 - ₱1,000", 1000.0),
)
TOP_RANGE = "₱1,001+"
PRICE_RANGE_LABELS: tuple[str, ...] = (FREE, *(label for label, _ in PRICE_RANGES), TOP_RANGE)

DAY_SECONDS = 86400
WEEK_SECONDS = 7 * DAY_SECONDS

Row = Any
SaleSample = tuple[Any, Any, str | None]


def _field(row: Row, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def _round1(value: float) -> float:
    # Half-up on the exact binary value, as toFixed(1) rounds
    return float(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string, datetime or epoch seconds into an aware UTC datetime.

    Returns None for anything missing or unparseable; naive values are taken as UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            dt = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text[-1] in "Zz":
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def bucket_by_field(
    rows: Iterable[Row],
    field: str,
    known_keys: Sequence[str] = (),
    default: str = UNKNOWN,
    other: str | None = None,
) -> dict[str, int]:
    """Count rows per value of `field`.

    Every key in `known_keys` is present, in order, even with a zero count. Missing or
    empty values count under `default`. Values outside `known_keys` get their own key
    in first-seen order, unless `other` is given, in which case they all fold into that
    single catch-all key (always present).
    """
    counts: dict[str, int] = dict.fromkeys(known_keys, 0)
    known = set(counts)
    if other is not None:
        counts.setdefault(other, 0)
    for row in rows:
        value = _field(row, field)
        if value is None or value == "":
            key = default
        else:
            key = str(value)
            if other is not None and key not in known:
                key = other
        counts[key] = counts.get(key, 0) + 1
    return counts


def resolve_price(row: Row) -> float:
    """Price a listing is bucketed by; 0.0 means it counts as free.

    fixed: its price. negotiable: mean of min/max, else whichever bound exists, else
    its price. A free price mode or a price of exactly 0 is free regardless of mode.
    """
    mode = _field(row, "item_price_type")
    price = _number(_field(row, "item_price"))
    if mode == "fixed" and price:
        return price
    if mode == "negotiable":
        low = _number(_field(row, "item_price_min"))
        high = _number(_field(row, "item_price_max"))
        if low and high:
            return (low + high) / 2
        if low:
            return low
        if high:
            return high
        return price or 0.0
    if mode == "free" or price == 0:
        return 0.0
    return price or 0.0


def price_range_label(price: float) -> str:
    if price <= 0:
        return FREE
    for label, upper in PRICE_RANGES:
        if price <= upper:
            return label
    return TOP_RANGE


def bucket_by_price_range(rows: Iterable[Row]) -> dict[str, int]:
    counts: dict[str, int] = dict.fromkeys(PRICE_RANGE_LABELS, 0)
    for row in rows:
        counts[price_range_label(resolve_price(row))] += 1
    return counts


def bucket_by_week(
    rows: Iterable[Row],
    reference_time: datetime | None = None,
    window_weeks: int = 12,
    field: str = "created_at",
) -> list[tuple[str, int]]:
    """Weekly counts for the last `window_weeks` weeks, oldest first.

    "Week N" is the week ending at `reference_time`. Rows outside the window, dated
    after `reference_time`, or without a parseable timestamp are dropped.
    """
    ref = parse_timestamp(reference_time) or datetime.now(timezone.utc)
    window = max(0, window_weeks)
    counts = [0] * window
    for row in rows:
        created = parse_timestamp(_field(row, field))
        if created is None:
            continue
        weeks_diff = math.floor((ref - created).total_seconds() / WEEK_SECONDS)
        if 0 <= weeks_diff < window:
            counts[window - 1 - weeks_diff] += 1
    return [(f"Week {i + 1}", n) for i, n in enumerate(counts)]


def sale_samples(transactions: Iterable[Row]) -> Iterator[SaleSample]:
    """(completed_at, listed_at, price_mode) for each transaction with a linked listing."""
    for tx in transactions:
        item = _field(tx, "item")
        if not item:
            continue
        yield (
            _field(tx, "updated_at"),
            _field(item, "created_at"),
            _field(item, "item_price_type"),
        )


def time_to_sell(samples: Iterable[SaleSample]) -> TimeToSell:
    days: dict[str, list[int]] = {mode: [] for mode in PRICE_MODES}
    for completed_at, listed_at, mode in samples:
        completed = parse_timestamp(completed_at)
        listed = parse_timestamp(listed_at)
        if completed is None or listed is None:
            continue
        elapsed = math.floor((completed - listed).total_seconds() / DAY_SECONDS)
        # Completion before listing: dropped, whether skew or bad data is unverified
        if elapsed < 0:
            continue
        bucket = days.get(mode or "fixed")
        if bucket is None:
            continue
        bucket.append(elapsed)
    return TimeToSell(
        average={m: _round1(sum(v) / len(v)) if v else 0.0 for m, v in days.items()},
        counts={m: len(v) for m, v in days.items()},
    )


def to_series(buckets: Mapping[str, float] | Iterable[tuple[str, float]]) -> ChartSeries:
    pairs = buckets.items() if isinstance(buckets, Mapping) else buckets
    labels: list[str] = []
    values: list[float] = []
    for label, value in pairs:
        labels.append(str(label))
        values.append(value)
    return ChartSeries(labels=labels, values=values)
