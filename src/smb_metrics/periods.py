# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Date range and granularity helpers for SMB Metrics.

This module defines the DateRange value object, the rule that picks a
bucket granularity from the length of a range, and helpers deriving the
default ranges used when the caller does not pass one (trailing months,
calendar months relative to today).
"""

from calendar import monthrange
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional

from .config import EngineSettings
from .dates import to_date

DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"
GRANULARITIES: tuple[str, ...] = (DAILY, WEEKLY, MONTHLY)


@dataclass(frozen=True)
class DateRange:
    """Inclusive [start, end] range of calendar dates."""

    start: date
    end: date

    @property
    def span_days(self) -> int:
        """Number of days between start and end (end - start)."""
        return (self.end - self.start).days

    @classmethod
    def parse(cls, value: Any, tz: Optional[str] = None) -> Optional["DateRange"]:
        """
        Build a DateRange from a loosely-typed value.

        Accepted shapes: None, a DateRange, a mapping with 'start'/'end'
        keys, or a (start, end) pair. Both ends go through the date
        normalizer; None is returned when either end cannot be read.
        """
        if value is None:
            return None
        if isinstance(value, DateRange):
            return value

        if isinstance(value, Mapping):
            raw_start, raw_end = value.get("start"), value.get("end")
        elif isinstance(value, (tuple, list)) and len(value) == 2:
            raw_start, raw_end = value
        else:
            return None

        start = to_date(raw_start, tz)
        end = to_date(raw_end, tz)
        if start is None or end is None:
            return None
        return cls(start=start, end=end)


def _today() -> date:
    """Return today's date as a date object (isolated for easier testing)."""
    return datetime.today().date()


def select_granularity(
    date_range: Optional[DateRange], settings: Optional[EngineSettings] = None
) -> str:
    """
    Pick the bucket granularity for a range.

    With the default thresholds: span <= 31 days -> daily, span <= 90 days
    -> weekly, anything longer (or no range at all) -> monthly.
    """
    if date_range is None:
        return MONTHLY

    settings = settings or EngineSettings()
    span = date_range.span_days
    if span <= settings.daily_max_days:
        return DAILY
    if span <= settings.weekly_max_days:
        return WEEKLY
    return MONTHLY


def monday_of(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) - offset
    return index // 12, index % 12 + 1


def default_trailing_range(months: int = 12) -> DateRange:
    """
    Trailing window ending today and covering ``months`` calendar months.

    The window starts on the first day of the month ``months - 1`` months
    ago, so it always yields exactly ``months`` monthly buckets.
    """
    today = _today()
    year, month = _shift_month(today.year, today.month, max(months, 1) - 1)
    return DateRange(start=date(year, month, 1), end=today)


def calendar_month(offset: int = 0) -> DateRange:
    """Full calendar month ``offset`` months before the current one."""
    today = _today()
    year, month = _shift_month(today.year, today.month, offset)
    last_day = monthrange(year, month)[1]
    return DateRange(start=date(year, month, 1), end=date(year, month, last_day))
