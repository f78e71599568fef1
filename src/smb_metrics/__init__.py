# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
SMB Metrics
-----------

A Python financial metrics aggregation engine for Small and Medium-sized
Businesses (SMBs). It turns raw, loosely-typed sales and expense records
into the figures behind an SMB dashboard.

Main capabilities:
- field resolution of inconsistent record shapes (aliases per field),
- date normalization (ISO, yyyy/mm/dd, dd/mm/yyyy, epoch milliseconds),
- contiguous daily / weekly / monthly revenue vs expense series,
- rule-based accounting classification (COGS, OPEX, NON_RELATED),
- totals, margins, breakdowns, cash flow and efficiency ratios,
- period-over-period growth and trend analysis,
- revenue per day, burn rate and runway KPIs,
- an optional thread-safe memoizer for repeated reports,
- a command-line interface with table, JSON and CSV output.

The engine is pure and synchronous: configuration (TOML), caching and
presentation (CLI) are kept outside the computation.


Version: 0.1.0

Usage:
    python -m smb_metrics.cli --help
"""

__all__ = ["metrics", "buckets", "classifier", "growth", "kpis", "records", "views"]

__version__ = "0.1.0"
