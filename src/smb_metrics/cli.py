# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for SMB Metrics.

The CLI is intentionally thin: it does not implement any financial logic.
It reads records from local files, calls the engine and renders the
results.


High-level pipeline
-------------------

1) Load the engine settings from the TOML configuration
   (``smb_metrics_config.toml`` by default, ``--config PATH`` to override).
   When no configuration file exists, built-in defaults are used.

2) Configure logging (``[logging] level``, or the ``SMB_METRICS_LOG_LEVEL``
   environment variable).

3) Read transactions and expenses from CSV or JSON files
   (``--transactions``, ``--expenses``).

4) Build the date range from ``--from-date`` / ``--to-date``. Without a
   range the whole dataset is used for metrics and the trailing window for
   the series.

5) Compute what ``--scope`` asks for:

   - ``metrics``: the metrics snapshot,
   - ``series``:  the revenue / expense bucket series,
   - ``all`` (default): both.

6) Render according to the display mode:

   - ``table``: DataFrames printed to stdout,
   - ``json``:  the snapshot / series as JSON on stdout,
   - ``csv``:   CSV files written under ``--output-dir``
                (``data/output`` by default).
"""

import argparse
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from . import __version__
from .buckets import build_series
from .config import DEFAULT_CONFIG_FILE, DISPLAY_MODES, EngineSettings, load_settings
from .io import read_records
from .logging_setup import configure_logging, get_logger
from .metrics import compute_metrics
from .periods import GRANULARITIES, DateRange
from .views import breakdown_to_frame, series_to_frame, snapshot_to_frame

_logger = get_logger("smb_metrics.cli")


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="python -m smb_metrics.cli",
        description=(
            "SMB Metrics - Financial metrics aggregation engine for SMB "
            "dashboards. Reads transactions and expenses, computes revenue, "
            "cost, growth and KPI metrics and renders them as tables, JSON "
            "or CSV files."
        ),
    )

    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of smb_metrics and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the TOML configuration file. If omitted, "
            f"'{DEFAULT_CONFIG_FILE}' in the current directory is used when "
            "present."
        ),
    )

    # Inputs
    ap.add_argument(
        "--transactions",
        dest="transactions_path",
        metavar="PATH",
        help="CSV or JSON file with sales transactions.",
    )
    ap.add_argument(
        "--expenses",
        dest="expenses_path",
        metavar="PATH",
        help="CSV or JSON file with expenses.",
    )

    # Range selection
    ap.add_argument(
        "--from-date",
        dest="from_date",
        help="Range start date (YYYY-MM-DD, YYYY/MM/DD or DD/MM/YYYY).",
    )
    ap.add_argument(
        "--to-date",
        dest="to_date",
        help="Range end date. Must be given together with --from-date.",
    )
    ap.add_argument(
        "--granularity",
        choices=list(GRANULARITIES),
        help=(
            "Force the bucket granularity of the series. If omitted it is "
            "derived from the range length."
        ),
    )
    ap.add_argument(
        "--currency",
        help="Only use records tagged with this currency (untagged ones are kept).",
    )

    # What and how to render
    ap.add_argument(
        "--scope",
        choices=["metrics", "series", "all"],
        default="all",
        help=(
            "Select what to render: 'metrics' = metrics snapshot; "
            "'series' = revenue/expense bucket series; 'all' = both."
        ),
    )
    ap.add_argument(
        "--display-mode",
        dest="display_mode",
        choices=list(DISPLAY_MODES),
        help=(
            "Override the display.mode setting from the configuration file. "
            "'table' prints tables to stdout, 'json' prints JSON, "
            "'csv' writes CSV files."
        ),
    )
    ap.add_argument(
        "--output-dir",
        dest="output_dir",
        help=(
            "Directory where CSV files are written in csv mode. "
            "If omitted, 'data/output' is used."
        ),
    )

    return ap


def _load_settings(
    parser: argparse.ArgumentParser, config_path: Optional[str]
) -> EngineSettings:
    if config_path is None and not Path(DEFAULT_CONFIG_FILE).is_file():
        return EngineSettings()
    try:
        return load_settings(config_path)
    except (FileNotFoundError, ValueError) as exc:
        parser.error(str(exc))
    raise AssertionError("unreachable")  # pragma: no cover


def _read_input(parser: argparse.ArgumentParser, path: Optional[str]) -> list[Any]:
    if not path:
        return []
    try:
        return read_records(path)
    except FileNotFoundError:
        parser.error(f"Records file not found: {path}")
    except ValueError as exc:
        parser.error(str(exc))
    raise AssertionError("unreachable")  # pragma: no cover


def _resolve_range(
    parser: argparse.ArgumentParser, args: argparse.Namespace, tz: Optional[str]
) -> Optional[DateRange]:
    if not args.from_date and not args.to_date:
        return None
    if not (args.from_date and args.to_date):
        parser.error("--from-date and --to-date must be given together.")

    date_range = DateRange.parse((args.from_date, args.to_date), tz)
    if date_range is None:
        parser.error(
            f"Invalid date range: {args.from_date!r} -> {args.to_date!r}."
        )
    if date_range.end < date_range.start:
        parser.error("--to-date cannot be before --from-date.")
    return date_range


def _print_frame(title: str, df) -> None:
    print()
    print(f"=== {title} ===")
    if df.empty:
        print("(no data)")
    else:
        print(df.to_string(index=False))


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the SMB Metrics CLI.

    Parses arguments, loads settings, reads the input files, computes the
    metrics snapshot and/or bucket series and renders them.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"smb_metrics version {__version__}")
        return

    settings = _load_settings(parser, args.config_path)
    configure_logging(settings.log_level)

    transactions = _read_input(parser, args.transactions_path)
    expenses = _read_input(parser, args.expenses_path)
    _logger.info(
        "Loaded %d transactions and %d expenses", len(transactions), len(expenses)
    )

    date_range = _resolve_range(parser, args, settings.timezone)
    if date_range is not None:
        _logger.info("Applied range: %s -> %s", date_range.start, date_range.end)

    want_metrics = args.scope in {"metrics", "all"}
    want_series = args.scope in {"series", "all"}

    snapshot = None
    if want_metrics:
        snapshot = compute_metrics(
            transactions,
            expenses,
            date_range,
            settings=settings,
            currency=args.currency,
        )

    buckets = None
    if want_series:
        buckets = build_series(
            transactions,
            expenses,
            date_range,
            granularity=args.granularity,
            currency=args.currency,
            settings=settings,
        )

    display_mode = args.display_mode or settings.display_mode
    decimals = settings.decimals

    if display_mode == "json":
        payload: dict[str, Any] = {}
        if snapshot is not None:
            payload["metrics"] = snapshot.as_dict()
        if buckets is not None:
            payload["series"] = [b.as_dict() for b in buckets]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    frames: list[tuple[str, str, Any]] = []
    if snapshot is not None:
        frames.append(("Metrics", "metrics", snapshot_to_frame(snapshot, decimals)))
        frames.append(
            (
                "Revenue by source",
                "revenue_by_source",
                breakdown_to_frame(snapshot, "source", decimals),
            )
        )
        frames.append(
            (
                "Cost by category",
                "cost_by_category",
                breakdown_to_frame(snapshot, "category", decimals),
            )
        )
        frames.append(
            (
                "Accounting breakdown",
                "accounting_breakdown",
                breakdown_to_frame(snapshot, "accounting", decimals),
            )
        )
    if buckets is not None:
        frames.append(("Series", "series", series_to_frame(buckets, decimals)))

    if display_mode == "table":
        for title, _, df in frames:
            _print_frame(title, df)
        return

    output_dir = Path(args.output_dir) if args.output_dir else Path("data/output")
    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
    for _, name, df in frames:
        path = output_dir / f"{name}_{timestamp}.csv"
        df.to_csv(path, index=False)
        print(f"Wrote {path} ({len(df)} rows)")


if __name__ == "__main__":
    main()
