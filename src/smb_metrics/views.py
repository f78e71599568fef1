# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View utilities for SMB Metrics.

This module turns engine results into pandas DataFrames ready to be printed
or exported as CSV by the CLI:

- ``snapshot_to_frame``: every scalar metric of a snapshot as one row
  (section, metric, value),
- ``breakdown_to_frame``: one of the breakdown tables (revenue by source,
  revenue by day, cost by category, accounting types),
- ``series_to_frame``: a bucket series (key, label, revenue, expense, profit).

Values are rounded to the configured number of decimals. The views never
recompute anything; they only reshape ``MetricsSnapshot.as_dict()`` and
``TimeBucket`` values.
"""

import math
from collections.abc import Iterable

import pandas as pd

from .buckets import TimeBucket, series_frame
from .metrics import MetricsSnapshot

BREAKDOWNS: tuple[str, ...] = ("source", "period", "category", "accounting")


def _round(value: float, decimals: int) -> float:
    if math.isinf(value):
        return value
    return round(float(value), decimals)


def snapshot_to_frame(snapshot: MetricsSnapshot, decimals: int = 2) -> pd.DataFrame:
    """
    Flatten the scalar metrics of a snapshot.

    Lists, per-day mappings and growth directions are left out: they are
    rendered by ``breakdown_to_frame``. The runway keeps its ``inf`` value
    for a business that is not losing money.
    """
    rows: list[dict[str, object]] = []
    for section, values in snapshot.as_dict().items():
        for metric, value in values.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            rows.append(
                {
                    "section": section,
                    "metric": metric,
                    "value": _round(value, decimals),
                }
            )
    return pd.DataFrame(rows, columns=["section", "metric", "value"])


def breakdown_to_frame(
    snapshot: MetricsSnapshot, kind: str, decimals: int = 2
) -> pd.DataFrame:
    """
    Return one breakdown table of a snapshot.

    Args:
        snapshot: Result of ``compute_metrics``.
        kind: 'source', 'period', 'category' or 'accounting'.
        decimals: Rounding applied to the amounts.

    Returns:
        A two-column DataFrame (name column, amount) in the snapshot's order.
    """
    if kind == "source":
        pairs = [(s.source, s.amount) for s in snapshot.revenue.by_source]
    elif kind == "period":
        pairs = list(snapshot.revenue.by_period.items())
    elif kind == "category":
        pairs = [(c.category, c.amount) for c in snapshot.costs.by_category]
    elif kind == "accounting":
        pairs = list(snapshot.costs.accounting_breakdown.items())
    else:
        raise ValueError(
            f"Unknown breakdown {kind!r} (expected one of {', '.join(BREAKDOWNS)})"
        )

    name_column = {"period": "date", "accounting": "accounting_type"}.get(kind, kind)
    rows = [
        {name_column: name, "amount": _round(amount, decimals)}
        for name, amount in pairs
    ]
    return pd.DataFrame(rows, columns=[name_column, "amount"])


def series_to_frame(buckets: Iterable[TimeBucket], decimals: int = 2) -> pd.DataFrame:
    """Bucket series as a DataFrame with rounded amounts."""
    df = series_frame(buckets)
    for column in ("revenue", "expense", "profit"):
        df[column] = df[column].astype(float).round(decimals)
    return df
