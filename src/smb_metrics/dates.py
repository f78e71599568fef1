# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Date normalization for SMB Metrics.

Records arrive with dates in several shapes: ISO timestamps
("2025-05-21T17:00:00.000Z"), slash-delimited "2025/05/23" keys, vi-VN
display strings ("23/05/2025"), free-form strings, native date objects or
epoch milliseconds. Everything downstream works on one canonical key:

    yyyy/mm/dd

which sorts lexicographically in calendar order. Unparsable input yields
None and is never raised; consumers exclude such records from any bucket.
"""

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

import pandas as pd
from dateutil import parser as date_parser

KEY_FORMAT = "%Y/%m/%d"

_YMD_SLASH = re.compile(r"(\d{4})/(\d{1,2})/(\d{1,2})")
_DMY_SLASH = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")
_ISO_PREFIX = re.compile(r"\d{4}-\d{2}-\d{2}")

# dateutil fills missing fields from its default; a parse that differs
# between these two defaults was incomplete.
_FILL_A = datetime(2000, 1, 1)
_FILL_B = datetime(2001, 2, 2)


def date_to_key(value: date) -> str:
    """Format a date as a canonical yyyy/mm/dd key."""
    return f"{value.year:04d}/{value.month:02d}/{value.day:02d}"


def key_to_date(key: str) -> date:
    """Parse a canonical yyyy/mm/dd key back into a date."""
    return datetime.strptime(key, KEY_FORMAT).date()


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _wall_date(moment: datetime, tz: Optional[str]) -> Optional[date]:
    """Calendar date of a datetime, converted to ``tz`` when it is aware."""
    if moment is pd.NaT:
        return None
    if moment.tzinfo is not None and tz:
        try:
            moment = moment.astimezone(ZoneInfo(tz))
        except (OverflowError, ValueError):
            return None
    return moment.date()


def _parse_string(text: str, tz: Optional[str]) -> Optional[date]:
    text = text.strip()
    if not text:
        return None

    match = _YMD_SLASH.fullmatch(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    match = _DMY_SLASH.fullmatch(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    try:
        if _ISO_PREFIX.match(text):
            moment = pd.Timestamp(text)
        else:
            moment = date_parser.parse(text, default=_FILL_A)
            if moment != date_parser.parse(text, default=_FILL_B):
                return None
    except (ValueError, OverflowError):
        return None
    return _wall_date(moment, tz)


def to_date(value: Any, tz: Optional[str] = None) -> Optional[date]:
    """
    Convert a date-like value into a calendar date.

    Supported inputs:
        - ``datetime`` / ``pandas.Timestamp`` (aware values are converted to
          ``tz`` when given),
        - ``date``,
        - ints/floats, read as epoch milliseconds (UTC unless ``tz`` is set),
        - strings: 'yyyy/mm/dd', 'dd/mm/yyyy', ISO-8601 and any format
          understood by ``dateutil``.

    Returns:
        The calendar date, or None when the value cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return _wall_date(value, tz)

    if isinstance(value, date):
        return value

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
        return _wall_date(moment, tz)

    if isinstance(value, str):
        return _parse_string(value, tz)

    return None


def normalize_date(value: Any, tz: Optional[str] = None) -> Optional[str]:
    """
    Normalize any supported date representation into a yyyy/mm/dd key.

    Never raises: invalid or missing input yields None.
    """
    parsed = to_date(value, tz)
    if parsed is None:
        return None
    return date_to_key(parsed)
