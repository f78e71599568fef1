import math

import pytest

from smb_metrics.buckets import TimeBucket
from smb_metrics.metrics import compute_metrics
from smb_metrics.views import breakdown_to_frame, series_to_frame, snapshot_to_frame


@pytest.fixture
def snapshot():
    return compute_metrics(
        [
            {"amount": 100.456, "date": "2024/01/02", "source": "Shopee"},
            {"amount": 200, "date": "2024/01/03", "source": "Lazada"},
        ],
        [
            {"amount": 50, "date": "2024/01/02", "type": "Marketing"},
            {"amount": 20, "date": "2024/01/03", "type": "license"},
        ],
        ("2024/01/01", "2024/01/10"),
    )


def test_snapshot_frame_lists_scalar_metrics(snapshot) -> None:
    df = snapshot_to_frame(snapshot)

    assert list(df.columns) == ["section", "metric", "value"]
    assert set(df["section"]) == {
        "financial",
        "revenue",
        "costs",
        "growth",
        "efficiency",
        "cashFlow",
        "kpis",
    }
    # Breakdown lists and mappings are rendered separately.
    assert "bySource" not in set(df["metric"])
    assert "byPeriod" not in set(df["metric"])
    assert "directions" not in set(df["metric"])

    values = dict(zip(df["metric"], df["value"]))
    assert values["totalRevenue"] == pytest.approx(300.46)
    assert values["totalTransactions"] == 2
    # Profitable: runway stays infinite.
    assert math.isinf(values["runway"])


def test_snapshot_frame_rounding(snapshot) -> None:
    df = snapshot_to_frame(snapshot, decimals=0)
    values = dict(zip(df["metric"], df["value"]))
    assert values["totalRevenue"] == 300.0


def test_breakdown_frames(snapshot) -> None:
    source = breakdown_to_frame(snapshot, "source")
    assert list(source.columns) == ["source", "amount"]
    assert source.to_dict(orient="records") == [
        {"source": "Lazada", "amount": 200.0},
        {"source": "Shopee", "amount": 100.46},
    ]

    period = breakdown_to_frame(snapshot, "period")
    assert list(period.columns) == ["date", "amount"]
    assert list(period["date"]) == ["2024/01/02", "2024/01/03"]

    category = breakdown_to_frame(snapshot, "category")
    assert list(category["category"]) == ["Marketing & Quảng cáo", "Mua license"]

    accounting = breakdown_to_frame(snapshot, "accounting")
    assert list(accounting.columns) == ["accounting_type", "amount"]
    assert dict(zip(accounting["accounting_type"], accounting["amount"])) == {
        "COGS": 20.0,
        "OPEX": 50.0,
        "NON_RELATED": 0.0,
    }


def test_empty_breakdown_keeps_columns() -> None:
    df = breakdown_to_frame(compute_metrics([], []), "source")
    assert df.empty
    assert list(df.columns) == ["source", "amount"]


def test_unknown_breakdown(snapshot) -> None:
    with pytest.raises(ValueError, match="Unknown breakdown"):
        breakdown_to_frame(snapshot, "region")


def test_series_frame_rounds_amounts() -> None:
    buckets = [
        TimeBucket("2024/01/01", "1/1", 10.555, 1.0),
        TimeBucket("2024/01/02", "2/1", 0.0, 2.333),
    ]
    df = series_to_frame(buckets, decimals=1)

    assert list(df.columns) == ["key", "label", "revenue", "expense", "profit"]
    assert list(df["label"]) == ["1/1", "2/1"]
    assert df["expense"].tolist() == pytest.approx([1.0, 2.3])
    assert df["profit"].tolist() == pytest.approx([9.6, -2.3])


def test_series_frame_empty() -> None:
    df = series_to_frame([])
    assert df.empty
    assert list(df.columns) == ["key", "label", "revenue", "expense", "profit"]
