# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Input records and field resolution for SMB Metrics.

Sales and expenses come from a spreadsheet-backed API whose rows do not
share one schema: the same concept shows up under several column names
(``revenue`` vs ``amount``, ``tenChuan`` vs ``softwareName``, ...). This
module is the single place that knows about those aliases.

Field resolution
----------------
Each logical field has an ordered tuple of accepted aliases. The first alias
carrying a usable value (not None, not an empty string, not NaN) wins. The
resulting values are stored in two frozen dataclasses:

    TransactionRecord(occurred_on, amount, source, currency)
    ExpenseRecord(occurred_on, amount, raw_type, raw_category,
                  accounting_type, standard_name, currency)

``occurred_on`` is a canonical yyyy/mm/dd key (or None) and ``amount`` is a
float; malformed amounts become 0.0. Nothing in here raises on bad data.

Every other module works on these records only and never inspects raw
field names.
"""

import math
import numbers
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, TypeVar, Union

from .dates import date_to_key, normalize_date
from .logging_setup import get_logger

_logger = get_logger("smb_metrics.records")

DEFAULT_SOURCE = "Other"

TRANSACTION_FIELDS: dict[str, tuple[str, ...]] = {
    "occurred_on": (
        "transactionDate",
        "date",
        "occurredOn",
        "occurred_on",
        "ngayTao",
        "createdAt",
        "timestamp",
    ),
    "amount": ("revenue", "amount", "soTien"),
    "source": ("tenChuan", "standardName", "softwareName", "software", "source"),
    "currency": ("currency", "loaiTien"),
}

EXPENSE_FIELDS: dict[str, tuple[str, ...]] = {
    "occurred_on": (
        "date",
        "transactionDate",
        "occurredOn",
        "occurred_on",
        "ngayTao",
        "createdAt",
        "timestamp",
    ),
    "amount": ("amount", "soTien"),
    "raw_type": ("type", "rawType", "raw_type", "loaiKhoanChi"),
    "raw_category": (
        "category",
        "rawCategory",
        "raw_category",
        "danhMucChung",
        "loaiChiPhi",
    ),
    "accounting_type": ("accountingType", "accounting_type", "loaiKeToan"),
    "standard_name": ("standardName", "standard_name", "tenChuan"),
    "currency": ("currency", "loaiTien"),
}

_AMOUNT_NOISE = re.compile(r"[\s,_$€£¥₫]|VND|vnd|đ")
# vi-VN thousands grouping: "1.500.000".
_DOT_GROUPED = re.compile(r"-?\d{1,3}(?:\.\d{3}){2,}")


@dataclass(frozen=True)
class TransactionRecord:
    """One completed sale, after field resolution."""

    occurred_on: Optional[str]
    amount: float
    source: str = DEFAULT_SOURCE
    currency: Optional[str] = None


@dataclass(frozen=True)
class ExpenseRecord:
    """One cost entry, after field resolution."""

    occurred_on: Optional[str]
    amount: float
    raw_type: str = ""
    raw_category: str = ""
    accounting_type: Optional[str] = None
    standard_name: Optional[str] = None
    currency: Optional[str] = None


Record = Union[TransactionRecord, ExpenseRecord]
R = TypeVar("R", TransactionRecord, ExpenseRecord)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float):
        return math.isnan(value)
    return False


def resolve_field(
    raw: Mapping[str, Any], aliases: tuple[str, ...], default: Any = None
) -> Any:
    """Return the value of the first alias present in ``raw`` with a usable value."""
    for alias in aliases:
        value = raw.get(alias)
        if not _is_missing(value):
            return value
    return default


def coerce_amount(value: Any) -> float:
    """
    Convert a loosely-typed amount into a finite float.

    Handles numbers, Decimals and strings such as "1,500,000", "$12.50",
    "250000 đ" or "1.500.000 đ" (a dot repeated between groups of three
    digits is a thousands separator). Anything that cannot be read as a
    finite number yields 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0

    if isinstance(value, numbers.Real):
        result = float(value)
    elif isinstance(value, Decimal):
        try:
            result = float(value)
        except (InvalidOperation, ValueError):
            return 0.0
    elif isinstance(value, str):
        cleaned = _AMOUNT_NOISE.sub("", value)
        if cleaned.startswith("(") and cleaned.endswith(")"):
            cleaned = "-" + cleaned[1:-1]
        if _DOT_GROUPED.fullmatch(cleaned):
            cleaned = cleaned.replace(".", "")
        try:
            result = float(cleaned)
        except ValueError:
            return 0.0
    else:
        return 0.0

    if not math.isfinite(result):
        return 0.0
    return result


def _text(value: Any) -> str:
    if _is_missing(value):
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    return text or None


def transaction_from_raw(
    raw: Mapping[str, Any], tz: Optional[str] = None
) -> TransactionRecord:
    """Build a ``TransactionRecord`` from a raw mapping using ``TRANSACTION_FIELDS``."""
    fields = TRANSACTION_FIELDS
    return TransactionRecord(
        occurred_on=normalize_date(resolve_field(raw, fields["occurred_on"]), tz),
        amount=coerce_amount(resolve_field(raw, fields["amount"])),
        source=_text(resolve_field(raw, fields["source"])) or DEFAULT_SOURCE,
        currency=_optional_text(resolve_field(raw, fields["currency"])),
    )


def expense_from_raw(raw: Mapping[str, Any], tz: Optional[str] = None) -> ExpenseRecord:
    """Build an ``ExpenseRecord`` from a raw mapping using ``EXPENSE_FIELDS``."""
    fields = EXPENSE_FIELDS
    return ExpenseRecord(
        occurred_on=normalize_date(resolve_field(raw, fields["occurred_on"]), tz),
        amount=coerce_amount(resolve_field(raw, fields["amount"])),
        raw_type=_text(resolve_field(raw, fields["raw_type"])),
        raw_category=_text(resolve_field(raw, fields["raw_category"])),
        accounting_type=_optional_text(resolve_field(raw, fields["accounting_type"])),
        standard_name=_optional_text(resolve_field(raw, fields["standard_name"])),
        currency=_optional_text(resolve_field(raw, fields["currency"])),
    )


def coerce_transactions(
    items: Optional[Iterable[Any]], tz: Optional[str] = None
) -> list[TransactionRecord]:
    """
    Turn an iterable of raw mappings and/or records into ``TransactionRecord``s.

    Already-built records pass through unchanged. Items that are neither a
    mapping nor a record are kept as empty records (amount 0, no date) so
    that they still count as transactions.
    """
    out: list[TransactionRecord] = []
    for item in items or ():
        if isinstance(item, TransactionRecord):
            out.append(item)
        elif isinstance(item, Mapping):
            out.append(transaction_from_raw(item, tz))
        else:
            _logger.debug("Unreadable transaction item of type %s", type(item).__name__)
            out.append(TransactionRecord(occurred_on=None, amount=0.0))
    return out


def coerce_expenses(
    items: Optional[Iterable[Any]], tz: Optional[str] = None
) -> list[ExpenseRecord]:
    """Expense counterpart of :func:`coerce_transactions`."""
    out: list[ExpenseRecord] = []
    for item in items or ():
        if isinstance(item, ExpenseRecord):
            out.append(item)
        elif isinstance(item, Mapping):
            out.append(expense_from_raw(item, tz))
        else:
            _logger.debug("Unreadable expense item of type %s", type(item).__name__)
            out.append(ExpenseRecord(occurred_on=None, amount=0.0))
    return out


def filter_by_range(records: Iterable[R], date_range: Any) -> list[R]:
    """
    Keep records whose date lies in [date_range.start, date_range.end].

    ``date_range`` is any object exposing ``start`` and ``end`` dates (usually
    a ``periods.DateRange``). Records without a usable date are dropped.
    Canonical keys compare in calendar order, so the filter works on strings
    directly.
    """
    start_key = date_to_key(date_range.start)
    end_key = date_to_key(date_range.end)
    return [
        r
        for r in records
        if r.occurred_on is not None and start_key <= r.occurred_on <= end_key
    ]


def filter_by_currency(records: Iterable[R], currency: Optional[str]) -> list[R]:
    """
    Keep records tagged with ``currency`` (case-insensitive).

    Untagged records are kept: the dataset's default currency applies to
    them. ``currency=None`` keeps everything.
    """
    items = list(records)
    if not currency:
        return items
    wanted = currency.strip().upper()
    return [r for r in items if r.currency is None or r.currency.upper() == wanted]
