from datetime import date
from types import SimpleNamespace

import pytest

import smb_metrics.periods as periods
from smb_metrics.growth import analyze_trend, compare_growth, compute_growth_metrics
from smb_metrics.records import ExpenseRecord, TransactionRecord


@pytest.mark.parametrize(
    "current, previous, rate, direction",
    [
        (150.0, 100.0, 50.0, "up"),
        (50.0, 100.0, -50.0, "down"),
        (103.0, 100.0, 3.0, "stable"),
        (96.0, 100.0, -4.0, "stable"),
        # Negative baselines: a loss shrinking is growth.
        (-50.0, -100.0, 50.0, "up"),
        (-150.0, -100.0, -50.0, "down"),
    ],
)
def test_compare_growth(
    current: float, previous: float, rate: float, direction: str
) -> None:
    result = compare_growth(current, previous)
    assert result.rate == pytest.approx(rate)
    assert result.direction == direction


@pytest.mark.parametrize("current", [0.0, 1.0, -1.0, 1e12, -3.5])
def test_growth_from_zero_baseline_is_neutral(current: float) -> None:
    result = compare_growth(current, 0.0)
    assert result.rate == 0
    assert result.direction == "stable"


def test_compare_growth_custom_deadband() -> None:
    assert compare_growth(108.0, 100.0, deadband=10.0).direction == "stable"
    assert compare_growth(108.0, 100.0, deadband=0.0).direction == "up"


def _tx(day, amount):
    return TransactionRecord(occurred_on=day, amount=amount)


def _exp(day, amount):
    return ExpenseRecord(occurred_on=day, amount=amount)


def test_growth_compares_wall_clock_calendar_months(monkeypatch) -> None:
    monkeypatch.setattr(periods, "_today", lambda: date(2025, 3, 15))

    txs = [
        _tx("2025/03/02", 200.0),
        _tx("2025/03/31", 100.0),
        _tx("2025/02/10", 100.0),
        _tx("2024/12/01", 1000.0),
        _tx(None, 5.0),
    ]
    exps = [_exp("2025/03/05", 50.0), _exp("2025/02/28", 50.0)]

    growth = compute_growth_metrics(txs, exps)

    # March: revenue 300, expenses 50, 2 sales. February: 100, 50, 1 sale.
    assert growth.revenue.rate == pytest.approx(200.0)
    assert growth.revenue.direction == "up"
    assert growth.expenses.rate == pytest.approx(0.0)
    assert growth.expenses.direction == "stable"
    assert growth.profit.rate == pytest.approx(400.0)
    assert growth.transactions.rate == pytest.approx(100.0)

    # Current totals cover the whole input.
    assert growth.current_revenue == pytest.approx(1405.0)
    assert growth.current_expenses == pytest.approx(100.0)
    assert growth.current_profit == pytest.approx(1305.0)
    assert growth.current_transaction_count == 5


def test_growth_window_ignores_old_data(monkeypatch) -> None:
    monkeypatch.setattr(periods, "_today", lambda: date(2026, 1, 5))
    growth = compute_growth_metrics([_tx("2024/01/15", 10.0)], [])
    assert growth.revenue.rate == 0
    assert growth.transactions.rate == 0


def test_explicit_previous_period_overrides_wall_clock() -> None:
    growth = compute_growth_metrics(
        [_tx("2024/01/15", 300.0)],
        [_exp("2024/01/15", 100.0)],
        previous_transactions=[_tx("2023/12/15", 200.0)],
        previous_expenses=[],
    )
    assert growth.revenue.rate == pytest.approx(50.0)
    assert growth.expenses.rate == 0
    assert growth.profit.rate == pytest.approx(0.0)
    assert growth.profit.direction == "stable"
    assert growth.transactions.rate == pytest.approx(0.0)


def test_explicit_previous_profit_loss_baseline() -> None:
    growth = compute_growth_metrics(
        [_tx("2024/02/01", 100.0)],
        [_exp("2024/02/01", 150.0)],
        previous_transactions=[_tx("2024/01/01", 100.0)],
        previous_expenses=[_exp("2024/01/01", 200.0)],
    )
    # Profit went from -100 to -50.
    assert growth.profit.rate == pytest.approx(50.0)
    assert growth.profit.direction == "up"


def _buckets(values):
    return [SimpleNamespace(revenue=v, expense=0.0, profit=v) for v in values]


def test_analyze_trend_increasing_and_decreasing() -> None:
    up = analyze_trend(_buckets([100.0, 100.0, 200.0, 200.0]))
    assert up.direction == "increasing"
    assert up.change_pct == pytest.approx(100.0)
    assert up.first_half_mean == pytest.approx(100.0)
    assert up.second_half_mean == pytest.approx(200.0)

    down = analyze_trend(_buckets([200.0, 200.0, 100.0, 100.0]))
    assert down.direction == "decreasing"
    assert down.change_pct == pytest.approx(-50.0)


def test_analyze_trend_stable_and_short_series() -> None:
    assert analyze_trend(_buckets([100.0, 100.0, 102.0])).direction == "stable"
    assert analyze_trend(_buckets([42.0])).direction == "stable"
    assert analyze_trend(_buckets([42.0])).change_pct == 0.0
    assert analyze_trend([]).direction == "stable"


def test_analyze_trend_other_field() -> None:
    buckets = [
        SimpleNamespace(revenue=0.0, expense=10.0, profit=-10.0),
        SimpleNamespace(revenue=0.0, expense=30.0, profit=-30.0),
    ]
    assert analyze_trend(buckets, field="expense").direction == "increasing"
    assert analyze_trend(buckets, field="profit").direction == "decreasing"
