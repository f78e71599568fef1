# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Growth and trend analysis for SMB Metrics.

Period-over-period growth
-------------------------
``compare_growth(current, previous)`` returns the relative change in percent,
using ``|previous|`` as the denominator so that a loss shrinking from -100 to
-50 reads as +50% growth. A zero baseline yields 0 (no growth measurable).

``compute_growth_metrics`` applies it to revenue, expenses, profit and the
number of transactions. Unless the caller supplies previous-period data, the
two periods compared are the current and previous calendar months by the
wall clock at call time, whatever range the report itself covers. Callers
needing a fixed window pass ``previous_transactions`` /
``previous_expenses`` and the whole input is then treated as the current
period.

Trend
-----
``analyze_trend`` compares the mean of the first half of a bucket series
with the mean of its second half.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Optional

from .logging_setup import get_logger
from .periods import calendar_month
from .records import (
    ExpenseRecord,
    TransactionRecord,
    filter_by_range,
)

_logger = get_logger("smb_metrics.growth")

UP = "up"
DOWN = "down"
STABLE = "stable"

INCREASING = "increasing"
DECREASING = "decreasing"


@dataclass(frozen=True)
class GrowthComparison:
    rate: float
    direction: str


@dataclass(frozen=True)
class GrowthMetrics:
    """
    Period-over-period growth of the headline figures.

    Rates are percentages. ``current_*`` fields carry the totals of the
    whole input so that dashboards can show the figure next to its growth.
    """

    revenue: GrowthComparison
    expenses: GrowthComparison
    profit: GrowthComparison
    transactions: GrowthComparison
    current_revenue: float
    current_expenses: float
    current_profit: float
    current_transaction_count: int


@dataclass(frozen=True)
class TrendAnalysis:
    direction: str
    change_pct: float
    first_half_mean: float
    second_half_mean: float


def compare_growth(
    current: float, previous: float, deadband: float = 5.0
) -> GrowthComparison:
    """
    Relative change from ``previous`` to ``current`` in percent.

    Changes within +/- ``deadband`` percent are reported as 'stable'.
    """
    if previous == 0:
        rate = 0.0
    else:
        rate = (current - previous) / abs(previous) * 100.0

    if abs(rate) <= deadband:
        direction = STABLE
    elif rate > 0:
        direction = UP
    else:
        direction = DOWN
    return GrowthComparison(rate=rate, direction=direction)


def _totals(
    transactions: Sequence[TransactionRecord], expenses: Sequence[ExpenseRecord]
) -> tuple[float, float, int]:
    revenue = sum(t.amount for t in transactions)
    spent = sum(e.amount for e in expenses)
    return float(revenue), float(spent), len(transactions)


def compute_growth_metrics(
    transactions: Sequence[TransactionRecord],
    expenses: Sequence[ExpenseRecord],
    previous_transactions: Optional[Sequence[TransactionRecord]] = None,
    previous_expenses: Optional[Sequence[ExpenseRecord]] = None,
    deadband: float = 5.0,
) -> GrowthMetrics:
    """
    Growth of revenue, expenses, profit and transaction count.

    Parameters
    ----------
    transactions, expenses :
        Resolved records of the report.
    previous_transactions, previous_expenses :
        Optional explicit previous-period data. When either is given, the
        whole input is the current period and these are the baseline.
        Otherwise the current and previous calendar months are cut out of
        the input by the wall clock.
    deadband :
        Width of the 'stable' band, in percent.
    """
    total_revenue, total_expenses, total_count = _totals(transactions, expenses)

    if previous_transactions is None and previous_expenses is None:
        this_month = calendar_month(0)
        last_month = calendar_month(1)
        cur_revenue, cur_expenses, cur_count = _totals(
            filter_by_range(transactions, this_month),
            filter_by_range(expenses, this_month),
        )
        prev_revenue, prev_expenses, prev_count = _totals(
            filter_by_range(transactions, last_month),
            filter_by_range(expenses, last_month),
        )
        _logger.debug(
            "Growth window %s..%s vs %s..%s",
            this_month.start,
            this_month.end,
            last_month.start,
            last_month.end,
        )
    else:
        cur_revenue, cur_expenses, cur_count = total_revenue, total_expenses, total_count
        prev_revenue, prev_expenses, prev_count = _totals(
            list(previous_transactions or ()), list(previous_expenses or ())
        )

    return GrowthMetrics(
        revenue=compare_growth(cur_revenue, prev_revenue, deadband),
        expenses=compare_growth(cur_expenses, prev_expenses, deadband),
        profit=compare_growth(
            cur_revenue - cur_expenses, prev_revenue - prev_expenses, deadband
        ),
        transactions=compare_growth(cur_count, prev_count, deadband),
        current_revenue=total_revenue,
        current_expenses=total_expenses,
        current_profit=total_revenue - total_expenses,
        current_transaction_count=total_count,
    )


def analyze_trend(
    buckets: Sequence[Any], field: str = "revenue", deadband: float = 5.0
) -> TrendAnalysis:
    """
    Compare the first and second halves of a bucket series.

    ``field`` is the bucket attribute to read ('revenue', 'expense' or
    'profit'). With an odd number of buckets the middle one belongs to the
    second half. Fewer than two buckets is a stable, zero-change trend.
    """
    values = [float(getattr(b, field)) for b in buckets]
    if len(values) < 2:
        only = values[0] if values else 0.0
        return TrendAnalysis(STABLE, 0.0, only, only)

    middle = len(values) // 2
    first, second = values[:middle], values[middle:]
    first_mean = sum(first) / len(first)
    second_mean = sum(second) / len(second)

    change = compare_growth(second_mean, first_mean, deadband)
    if change.direction == UP:
        direction = INCREASING
    elif change.direction == DOWN:
        direction = DECREASING
    else:
        direction = STABLE
    return TrendAnalysis(direction, change.rate, first_mean, second_mean)
