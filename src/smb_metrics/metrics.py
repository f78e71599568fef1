# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Metrics aggregation for SMB Metrics.

``compute_metrics`` is the engine's main entry point. It takes raw (or
already resolved) transaction and expense records and returns one
``MetricsSnapshot`` holding every figure a dashboard needs:

    financial   totals, net profit, margins
    revenue     breakdown by source and by day, average order value
    costs       breakdown by category and by accounting type
    growth      period-over-period growth (see growth.py)
    efficiency  cost efficiency, productivity, revenue per employee
    cash_flow   net / operating / free cash flow
    kpis        revenue per day, burn rate, runway (see kpis.py)

The snapshot is read-only (frozen dataclasses, tuples and read-only
mappings) and rebuilt from scratch on every call. ``as_dict()`` renders it
with the camelCase keys consumed by the dashboard front-end.

Every ratio falls back to 0 when its denominator is 0, and any non-finite
value is replaced by 0, so the snapshot never carries NaN. The single
exception is ``kpis.runway`` which is ``math.inf`` for a business that is
not losing money.
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Optional

from .classifier import AccountingType, Classifier
from .config import EngineSettings
from .growth import GrowthComparison, GrowthMetrics, compute_growth_metrics
from .kpis import KpiTotals, Kpis, compute_kpis, elapsed_days
from .logging_setup import get_logger
from .periods import DateRange
from .records import (
    coerce_expenses,
    coerce_transactions,
    filter_by_currency,
    filter_by_range,
)

_logger = get_logger("smb_metrics.metrics")

ACCOUNTING_TYPES: tuple[str, ...] = tuple(t.value for t in AccountingType)


@dataclass(frozen=True)
class FinancialSummary:
    total_revenue: float
    total_expenses: float
    net_profit: float
    profit_margin: float
    gross_profit: float
    gross_margin: float


@dataclass(frozen=True)
class SourceAmount:
    source: str
    amount: float


@dataclass(frozen=True)
class CategoryAmount:
    category: str
    amount: float


@dataclass(frozen=True)
class RevenueBreakdown:
    by_source: tuple[SourceAmount, ...]
    by_period: Mapping[str, float]
    average_order_value: float
    total_transactions: int


@dataclass(frozen=True)
class CostBreakdown:
    by_category: tuple[CategoryAmount, ...]
    operating: float
    cost_of_revenue: float
    cost_per_transaction: float
    accounting_breakdown: Mapping[str, float]


@dataclass(frozen=True)
class Efficiency:
    cost_efficiency_ratio: float
    productivity_index: float
    revenue_per_employee: float


@dataclass(frozen=True)
class CashFlow:
    net_cash_flow: float
    operating_cash_flow: float
    free_cash_flow: float


@dataclass(frozen=True)
class MetricsSnapshot:
    """
    Complete, read-only result of one ``compute_metrics`` call.

    ``date_range`` echoes the range the figures were scoped to (None when
    the whole dataset was used).
    """

    financial: FinancialSummary
    revenue: RevenueBreakdown
    costs: CostBreakdown
    growth: GrowthMetrics
    efficiency: Efficiency
    cash_flow: CashFlow
    kpis: Kpis
    date_range: Optional[DateRange] = None

    def as_dict(self) -> dict[str, Any]:
        """Render the snapshot as nested plain dicts with camelCase keys."""
        growth = self.growth
        return {
            "financial": {
                "totalRevenue": self.financial.total_revenue,
                "totalExpenses": self.financial.total_expenses,
                "netProfit": self.financial.net_profit,
                "profitMargin": self.financial.profit_margin,
                "grossProfit": self.financial.gross_profit,
                "grossMargin": self.financial.gross_margin,
            },
            "revenue": {
                "bySource": [
                    {"source": s.source, "amount": s.amount}
                    for s in self.revenue.by_source
                ],
                "byPeriod": dict(self.revenue.by_period),
                "averageOrderValue": self.revenue.average_order_value,
                "totalTransactions": self.revenue.total_transactions,
            },
            "costs": {
                "byCategory": [
                    {"category": c.category, "amount": c.amount}
                    for c in self.costs.by_category
                ],
                "operating": self.costs.operating,
                "costOfRevenue": self.costs.cost_of_revenue,
                "costPerTransaction": self.costs.cost_per_transaction,
                "accountingBreakdown": dict(self.costs.accounting_breakdown),
            },
            "growth": {
                "revenueGrowth": growth.revenue.rate,
                "expenseGrowth": growth.expenses.rate,
                "profitGrowth": growth.profit.rate,
                "transactionGrowth": growth.transactions.rate,
                "directions": {
                    "revenue": growth.revenue.direction,
                    "expense": growth.expenses.direction,
                    "profit": growth.profit.direction,
                    "transaction": growth.transactions.direction,
                },
                "currentRevenue": growth.current_revenue,
                "currentExpenses": growth.current_expenses,
                "currentProfit": growth.current_profit,
                "currentTransactionCount": growth.current_transaction_count,
            },
            "efficiency": {
                "costEfficiencyRatio": self.efficiency.cost_efficiency_ratio,
                "productivityIndex": self.efficiency.productivity_index,
                "revenuePerEmployee": self.efficiency.revenue_per_employee,
            },
            "cashFlow": {
                "netCashFlow": self.cash_flow.net_cash_flow,
                "operatingCashFlow": self.cash_flow.operating_cash_flow,
                "freeCashFlow": self.cash_flow.free_cash_flow,
            },
            "kpis": {
                "revenuePerDay": self.kpis.revenue_per_day,
                "burnRate": self.kpis.burn_rate,
                "runway": self.kpis.runway_months,
            },
        }


def _finite(value: float) -> float:
    value = float(value)
    return value if math.isfinite(value) else 0.0


def _ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    if denominator == 0:
        return 0.0
    return _finite(numerator / denominator * scale)


def _ranked(totals: dict[str, float]) -> list[tuple[str, float]]:
    # sorted() is stable, so ties keep first-seen (insertion) order.
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def _sum_by(pairs: Iterable[tuple[str, float]]) -> dict[str, float]:
    totals: dict[str, float] = {}
    for key, amount in pairs:
        totals[key] = totals.get(key, 0.0) + amount
    return totals


def _finite_growth(growth: GrowthMetrics) -> GrowthMetrics:
    def fix(c: GrowthComparison) -> GrowthComparison:
        return GrowthComparison(rate=_finite(c.rate), direction=c.direction)

    return GrowthMetrics(
        revenue=fix(growth.revenue),
        expenses=fix(growth.expenses),
        profit=fix(growth.profit),
        transactions=fix(growth.transactions),
        current_revenue=_finite(growth.current_revenue),
        current_expenses=_finite(growth.current_expenses),
        current_profit=_finite(growth.current_profit),
        current_transaction_count=growth.current_transaction_count,
    )


def compute_metrics(
    transactions: Optional[Iterable[Any]],
    expenses: Optional[Iterable[Any]],
    date_range: Any = None,
    *,
    settings: Optional[EngineSettings] = None,
    classifier: Optional[Classifier] = None,
    previous_transactions: Optional[Iterable[Any]] = None,
    previous_expenses: Optional[Iterable[Any]] = None,
    currency: Optional[str] = None,
) -> MetricsSnapshot:
    """
    Compute the full metrics snapshot for a dataset.

    Parameters
    ----------
    transactions, expenses :
        Raw mappings and/or resolved records. Malformed fields never raise.
    date_range :
        Optional range (anything ``DateRange.parse`` accepts). When given,
        only records dated inside it are used and it sets the KPI window.
    settings :
        Engine settings; defaults to ``EngineSettings()``.
    classifier :
        Expense classifier; defaults to the rules carried by ``settings``
        (the built-in rules when ``load_settings`` did not parse a file).
    previous_transactions, previous_expenses :
        Optional explicit baseline for growth (see growth.py).
    currency :
        Restrict both inputs to records tagged with this currency.

    Returns
    -------
    MetricsSnapshot
    """
    settings = settings or EngineSettings()
    tz = settings.timezone
    if classifier is None:
        classifier = Classifier(settings.rules, other_label=settings.other_label)

    txs = filter_by_currency(coerce_transactions(transactions, tz), currency)
    exps = filter_by_currency(coerce_expenses(expenses, tz), currency)

    parsed_range = DateRange.parse(date_range, tz)
    if parsed_range is not None:
        txs = filter_by_range(txs, parsed_range)
        exps = filter_by_range(exps, parsed_range)

    _logger.debug(
        "Computing metrics for %d transactions and %d expenses (range=%s)",
        len(txs),
        len(exps),
        parsed_range,
    )

    # Totals
    total_revenue = _finite(sum(t.amount for t in txs))
    total_expenses = _finite(sum(e.amount for e in exps))
    tx_count = len(txs)

    # Classification
    accounting = {name: 0.0 for name in ACCOUNTING_TYPES}
    category_pairs: list[tuple[str, float]] = []
    for expense in exps:
        result = classifier.classify(expense)
        type_key = str(getattr(result.accounting_type, "value", result.accounting_type))
        if type_key not in accounting:
            type_key = AccountingType.OPEX.value
        accounting[type_key] += expense.amount
        category_pairs.append((result.category, expense.amount))

    cost_of_revenue = _finite(accounting[AccountingType.COGS.value])
    operating = _finite(accounting[AccountingType.OPEX.value])

    by_category = tuple(
        CategoryAmount(category=name, amount=_finite(amount))
        for name, amount in _ranked(_sum_by(category_pairs))
        if amount > 0
    )

    # Revenue breakdowns
    by_source = tuple(
        SourceAmount(source=name, amount=_finite(amount))
        for name, amount in _ranked(_sum_by((t.source, t.amount) for t in txs))
    )
    period_totals = _sum_by((t.occurred_on, t.amount) for t in txs if t.occurred_on)
    by_period = MappingProxyType(
        {key: _finite(period_totals[key]) for key in sorted(period_totals)}
    )

    net_profit = total_revenue - total_expenses
    gross_profit = total_revenue - cost_of_revenue

    financial = FinancialSummary(
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        net_profit=_finite(net_profit),
        profit_margin=_ratio(net_profit, total_revenue, 100.0),
        gross_profit=_finite(gross_profit),
        gross_margin=_ratio(gross_profit, total_revenue, 100.0),
    )

    revenue = RevenueBreakdown(
        by_source=by_source,
        by_period=by_period,
        average_order_value=_ratio(total_revenue, tx_count),
        total_transactions=tx_count,
    )

    costs = CostBreakdown(
        by_category=by_category,
        operating=operating,
        cost_of_revenue=cost_of_revenue,
        cost_per_transaction=_ratio(total_expenses, tx_count),
        accounting_breakdown=MappingProxyType(
            {name: _finite(accounting[name]) for name in ACCOUNTING_TYPES}
        ),
    )

    efficiency = Efficiency(
        cost_efficiency_ratio=_ratio(operating, total_revenue, 100.0),
        productivity_index=_ratio(total_revenue, tx_count),
        revenue_per_employee=_ratio(total_revenue, settings.headcount),
    )

    cash_flow = CashFlow(
        net_cash_flow=_finite(net_profit),
        operating_cash_flow=_finite(total_revenue - operating),
        free_cash_flow=_finite(total_revenue - total_expenses),
    )

    prev_txs = (
        filter_by_currency(coerce_transactions(previous_transactions, tz), currency)
        if previous_transactions is not None
        else None
    )
    prev_exps = (
        filter_by_currency(coerce_expenses(previous_expenses, tz), currency)
        if previous_expenses is not None
        else None
    )
    growth = _finite_growth(
        compute_growth_metrics(
            txs,
            exps,
            previous_transactions=prev_txs,
            previous_expenses=prev_exps,
            deadband=settings.growth_deadband_pct,
        )
    )

    range_days = None
    if parsed_range is not None:
        revenue_days = expense_days = range_days = elapsed_days(parsed_range)
    else:
        revenue_days = elapsed_days(None, (t.occurred_on for t in txs))
        expense_days = elapsed_days(None, (e.occurred_on for e in exps))

    raw_kpis = compute_kpis(
        KpiTotals(
            total_revenue=total_revenue,
            total_expenses=total_expenses,
            operating_expenses=operating,
        ),
        revenue_days,
        expense_days,
        days_per_month=settings.days_per_month,
        range_days=range_days,
    )
    runway = raw_kpis.runway_months
    kpis = Kpis(
        revenue_per_day=_finite(raw_kpis.revenue_per_day),
        burn_rate=_finite(raw_kpis.burn_rate),
        runway_months=runway if runway == math.inf else _finite(runway),
    )

    return MetricsSnapshot(
        financial=financial,
        revenue=revenue,
        costs=costs,
        growth=growth,
        efficiency=efficiency,
        cash_flow=cash_flow,
        kpis=kpis,
        date_range=parsed_range,
    )
