# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Time-bucket aggregation for SMB Metrics.

This module turns transaction and expense records into a contiguous series
of revenue / expense / profit buckets, the data behind every revenue vs
expense chart.

1. Bucket keys
   -----------
   The full ordered set of keys is built from the requested range before any
   record is folded in, so no period is ever skipped:

       daily    'yyyy/mm/dd'                   label 'd/m'
       weekly   'yyyy/mm/dd' (Monday of week)  label 'd/m - d/m'
       monthly  'yyyy/mm'                      label 'm/yyyy'

   Keys are produced with ``pandas.date_range`` ('D', '7D' from the Monday,
   'MS' from the first of the month).

2. Folding
   -------
   Each record is mapped to the key of its bucket, then revenues and
   expenses are summed with a pandas groupby and re-indexed on the key set
   (missing buckets become 0.0). Records without a date, or whose key is
   not part of the set, are left out of the series.

3. Entry points
   ------------
   - aggregate(transactions, expenses, date_range, granularity)
   - build_series(...) which coerces raw records and picks the granularity
   - series_frame(buckets) for a tabular view
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional

import pandas as pd

from .config import EngineSettings
from .dates import date_to_key, key_to_date
from .logging_setup import get_logger
from .periods import (
    DAILY,
    GRANULARITIES,
    MONTHLY,
    WEEKLY,
    DateRange,
    default_trailing_range,
    monday_of,
    select_granularity,
)
from .records import (
    ExpenseRecord,
    TransactionRecord,
    coerce_expenses,
    coerce_transactions,
    filter_by_currency,
)

_logger = get_logger("smb_metrics.buckets")

SERIES_COLUMNS: list[str] = ["key", "label", "revenue", "expense", "profit"]


@dataclass(frozen=True)
class TimeBucket:
    """
    One period of a revenue / expense series.

    Attributes:
        key: Sortable bucket key ('yyyy/mm/dd' or 'yyyy/mm').
        label: Short display label.
        revenue: Sum of transaction amounts in the period.
        expense: Sum of expense amounts in the period.
    """

    key: str
    label: str
    revenue: float = 0.0
    expense: float = 0.0

    @property
    def profit(self) -> float:
        return self.revenue - self.expense

    def as_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "revenue": self.revenue,
            "expense": self.expense,
            "profit": self.profit,
        }


def _label(start: date, granularity: str) -> str:
    if granularity == DAILY:
        return f"{start.day}/{start.month}"
    if granularity == WEEKLY:
        end = start + timedelta(days=6)
        return f"{start.day}/{start.month} - {end.day}/{end.month}"
    return f"{start.month}/{start.year}"


def _key(start: date, granularity: str) -> str:
    if granularity == MONTHLY:
        return f"{start.year:04d}/{start.month:02d}"
    return date_to_key(start)


def bucket_starts(date_range: DateRange, granularity: str) -> list[date]:
    """
    First day of every bucket covering ``date_range``.

    Returns an empty list when the range is inverted.
    """
    if granularity not in GRANULARITIES:
        raise ValueError(
            f"Unknown granularity: {granularity!r} "
            f"(expected one of {', '.join(GRANULARITIES)})"
        )
    if date_range.end < date_range.start:
        return []

    if granularity == DAILY:
        first, freq = date_range.start, "D"
    elif granularity == WEEKLY:
        first, freq = monday_of(date_range.start), "7D"
    else:
        first, freq = date_range.start.replace(day=1), "MS"

    index = pd.date_range(start=first, end=date_range.end, freq=freq)
    return [ts.date() for ts in index]


def bucket_key_for(day_key: str, granularity: str) -> str:
    """Map a canonical day key to the key of its bucket."""
    if granularity == DAILY:
        return day_key
    if granularity == WEEKLY:
        return date_to_key(monday_of(key_to_date(day_key)))
    return day_key[:7]


def _fold(records: Iterable[Any], granularity: str, keys: list[str]) -> pd.Series:
    rows = [
        (bucket_key_for(r.occurred_on, granularity), r.amount)
        for r in records
        if r.occurred_on is not None
    ]
    frame = pd.DataFrame(rows, columns=["key", "amount"]).astype({"amount": float})
    sums = frame.groupby("key")["amount"].sum()
    return sums.reindex(keys, fill_value=0.0)


def aggregate(
    transactions: Iterable[TransactionRecord],
    expenses: Iterable[ExpenseRecord],
    date_range: Optional[DateRange],
    granularity: str,
) -> list[TimeBucket]:
    """
    Build the contiguous bucket series for a range.

    Parameters
    ----------
    transactions, expenses :
        Already-resolved records (see ``records.coerce_*``).
    date_range :
        Range to cover. None means the default trailing 12 months.
    granularity :
        'daily', 'weekly' or 'monthly'.

    Returns
    -------
    list[TimeBucket]
        Buckets in ascending key order, one per period, zero-filled.
    """
    if date_range is None:
        date_range = default_trailing_range()

    starts = bucket_starts(date_range, granularity)
    if not starts:
        return []

    keys = [_key(s, granularity) for s in starts]
    revenue = _fold(transactions, granularity, keys)
    expense = _fold(expenses, granularity, keys)

    _logger.debug(
        "Aggregated %d %s buckets from %s to %s",
        len(keys),
        granularity,
        date_range.start,
        date_range.end,
    )

    return [
        TimeBucket(
            key=key,
            label=_label(start, granularity),
            revenue=float(revenue[key]),
            expense=float(expense[key]),
        )
        for key, start in zip(keys, starts)
    ]


def build_series(
    transactions: Optional[Iterable[Any]],
    expenses: Optional[Iterable[Any]],
    date_range: Any = None,
    granularity: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
    currency: Optional[str] = None,
) -> list[TimeBucket]:
    """
    Convenience wrapper: resolve raw records, pick a granularity, aggregate.

    ``date_range`` accepts anything understood by ``DateRange.parse``. When
    no range is given the trailing window from the settings is used.
    """
    settings = settings or EngineSettings()
    tz = settings.timezone

    parsed_range = DateRange.parse(date_range, tz)
    if granularity is None:
        granularity = select_granularity(parsed_range, settings)
    if parsed_range is None:
        parsed_range = default_trailing_range(settings.trailing_months)

    return aggregate(
        filter_by_currency(coerce_transactions(transactions, tz), currency),
        filter_by_currency(coerce_expenses(expenses, tz), currency),
        parsed_range,
        granularity,
    )


def series_frame(buckets: Iterable[TimeBucket]) -> pd.DataFrame:
    """Return a bucket series as a DataFrame (key, label, revenue, expense, profit)."""
    rows = [b.as_dict() for b in buckets]
    return pd.DataFrame(rows, columns=SERIES_COLUMNS)
