# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for SMB Metrics.

This module reads transaction or expense records from local files and hands
them to the engine as plain dictionaries. Field resolution (which column
holds the amount, the date, ...) is left to ``records.py``, so any column
layout accepted by the field-resolution adapter works here too.

Supported formats
-----------------

1) CSV
   ---
   One record per row, header row required. Every cell is read as a string
   (no type inference, no NaN substitution) so that amounts like
   "1,500,000" and dates like "23/05/2025" reach the adapter untouched.
   Empty cells become empty strings, which the adapter treats as missing.

2) JSON
   ----
   Either a list of objects, or an object wrapping that list under a
   ``"data"`` / ``"records"`` key (the shape returned by the sheet API).

Unknown extensions raise ValueError.
"""

import json
import os
from pathlib import Path
from typing import Any, Union

import pandas as pd

from .logging_setup import get_logger

_logger = get_logger("smb_metrics.io")

_WRAPPER_KEYS: tuple[str, ...] = ("data", "records")


def _read_csv(path: Path) -> list[dict[str, Any]]:
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip() for c in df.columns]
    return df.to_dict(orient="records")


def _read_json(path: Path) -> list[dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to parse JSON records file: {path}") from exc

    if isinstance(data, dict):
        for key in _WRAPPER_KEYS:
            if isinstance(data.get(key), list):
                data = data[key]
                break

    if not isinstance(data, list):
        raise ValueError(
            f"Invalid JSON records file {path}: expected a list of objects."
        )
    return [item for item in data if isinstance(item, dict)]


def read_records(path: Union[str, "os.PathLike[str]"]) -> list[dict[str, Any]]:
    """
    Read raw records from a CSV or JSON file.

    Parameters
    ----------
    path:
        Path to a ``.csv`` or ``.json`` file.

    Returns
    -------
    list[dict]
        One dictionary per record, keys as found in the file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the extension is not supported or the content is malformed.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Records file not found: {file_path}")

    suffix = file_path.suffix.lower()
    if suffix == ".csv":
        records = _read_csv(file_path)
    elif suffix == ".json":
        records = _read_json(file_path)
    else:
        raise ValueError(
            f"Unsupported records file extension {suffix!r} for {file_path} "
            "(expected .csv or .json)."
        )

    _logger.debug("Read %d records from %s", len(records), file_path)
    return records
