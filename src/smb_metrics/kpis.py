# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Per-day KPIs for SMB Metrics: revenue per day, burn rate and runway.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from .dates import key_to_date
from .periods import DateRange


@dataclass(frozen=True)
class KpiTotals:
    """Totals the KPIs are derived from."""

    total_revenue: float
    total_expenses: float
    operating_expenses: float

    @property
    def net_profit(self) -> float:
        return self.total_revenue - self.total_expenses


@dataclass(frozen=True)
class Kpis:
    revenue_per_day: float
    burn_rate: float
    runway_months: float


def elapsed_days(
    date_range: Optional[DateRange], dates: Iterable[Optional[str]] = ()
) -> int:
    """
    Number of days a report covers.

    With a range: (end - start) + 1, floored at 1. Without one: the
    inclusive span between the earliest and latest distinct date keys, or 1
    when fewer than two distinct dates are present.
    """
    if date_range is not None:
        return max(date_range.span_days + 1, 1)

    distinct = sorted({d for d in dates if d})
    if len(distinct) < 2:
        return 1
    return (key_to_date(distinct[-1]) - key_to_date(distinct[0])).days + 1


def compute_kpis(
    totals: KpiTotals,
    elapsed_days: int,
    expense_elapsed_days: Optional[int] = None,
    days_per_month: int = 30,
    range_days: Optional[int] = None,
) -> Kpis:
    """
    Compute revenue per day, burn rate and runway.

    ``elapsed_days`` is the revenue window; ``expense_elapsed_days`` the
    expense window (defaults to ``elapsed_days``). Runway is ``math.inf`` when the
    business is not losing money, and 0 when there is a loss but no
    measurable monthly burn.

    The monthly burn behind the runway is the total expense scaled from
    ``range_days`` to ``days_per_month``. Without a requested range
    (``range_days`` is None) the whole expense total counts as one month.
    """
    days = max(int(elapsed_days), 1)
    expense_days = max(int(expense_elapsed_days or days), 1)

    revenue_per_day = totals.total_revenue / days
    burn_rate = totals.operating_expenses / expense_days

    net = totals.net_profit
    if net >= 0:
        runway = math.inf
    else:
        if range_days is None:
            monthly_burn = totals.total_expenses
        else:
            monthly_burn = (
                totals.total_expenses / max(int(range_days), 1) * days_per_month
            )
        runway = abs(net) / monthly_burn if monthly_burn > 0 else 0.0

    return Kpis(
        revenue_per_day=revenue_per_day,
        burn_rate=burn_rate,
        runway_months=runway,
    )
