# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Accounting classification of expenses for SMB Metrics.

Every expense is assigned one accounting type and one category:

    COGS         cost of goods sold (licenses, software, goods)
    OPEX         operating expenses (marketing, operations, everything else)
    NON_RELATED  personal spending that must not hit the business P&L

Classification is a fallback chain, first match wins:

1. a pre-assigned, known accounting type on the record,
2. a canonical ``standard_name`` (category taken as-is),
3. the personal marker in the raw expense type,
4. cost-of-goods keyword rules,
5. operating keyword rules,
6. the total fallback OPEX / 'Other'.

Steps 3 to 5 are data: an ordered tuple of ``ClassificationRule`` objects
that can be replaced by rules loaded from a TOML file (``load_rules``).
The chain is total, so any input (including garbage) gets a result.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from .config import _load_toml
from .logging_setup import get_logger
from .records import ExpenseRecord, coerce_expenses

_logger = get_logger("smb_metrics.classifier")

PERSONAL_CATEGORY = "Sinh hoạt cá nhân"
DEFAULT_OTHER_LABEL = "Other"
RULE_FIELDS: tuple[str, ...] = ("raw_type", "raw_category")


class AccountingType(str, Enum):
    COGS = "COGS"
    OPEX = "OPEX"
    NON_RELATED = "NON_RELATED"


_TYPE_ALIASES: dict[str, AccountingType] = {
    "cogs": AccountingType.COGS,
    "opex": AccountingType.OPEX,
    "non_related": AccountingType.NON_RELATED,
    "non-related": AccountingType.NON_RELATED,
    "không liên quan": AccountingType.NON_RELATED,
}


def parse_accounting_type(token: Any) -> Optional[AccountingType]:
    """
    Resolve an accounting-type token (case-insensitive, aliases included).

    Returns None for missing or unknown tokens.
    """
    if isinstance(token, AccountingType):
        return token
    if not isinstance(token, str):
        return None
    return _TYPE_ALIASES.get(token.strip().casefold())


@dataclass(frozen=True)
class ClassificationRule:
    """
    Keyword rule: matches when any keyword occurs in any of the fields.

    Attributes:
        name: Rule identifier, reported in ClassificationResult.rule.
        accounting_type: Type assigned on match.
        category: Category assigned on match.
        fields: ExpenseRecord attribute names searched.
        keywords: Lower-case substrings looked up in those fields.
    """

    name: str
    accounting_type: AccountingType
    category: str
    fields: tuple[str, ...]
    keywords: tuple[str, ...]

    def matches(self, expense: ExpenseRecord) -> bool:
        for field_name in self.fields:
            text = str(getattr(expense, field_name, "") or "").casefold()
            if text and any(keyword in text for keyword in self.keywords):
                return True
        return False


@dataclass(frozen=True)
class ClassificationResult:
    accounting_type: AccountingType
    category: str
    rule: str


DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        name="personal",
        accounting_type=AccountingType.NON_RELATED,
        category=PERSONAL_CATEGORY,
        fields=("raw_type",),
        keywords=("cá nhân", "sinh hoạt", "personal", "lifestyle"),
    ),
    ClassificationRule(
        name="license",
        accounting_type=AccountingType.COGS,
        category="Mua license",
        fields=RULE_FIELDS,
        keywords=("license",),
    ),
    ClassificationRule(
        name="software",
        accounting_type=AccountingType.COGS,
        category="Chi phí phần mềm",
        fields=RULE_FIELDS,
        keywords=("phần mềm", "software"),
    ),
    ClassificationRule(
        name="goods",
        accounting_type=AccountingType.COGS,
        category="Chi phí hàng hóa",
        fields=RULE_FIELDS,
        keywords=("amazon", "hàng hóa", "cogs", "goods"),
    ),
    ClassificationRule(
        name="marketing",
        accounting_type=AccountingType.OPEX,
        category="Marketing & Quảng cáo",
        fields=RULE_FIELDS,
        keywords=("marketing", "quảng cáo", "advertising"),
    ),
    ClassificationRule(
        name="operations",
        accounting_type=AccountingType.OPEX,
        category="Vận hành",
        fields=RULE_FIELDS,
        keywords=("vận hành", "operational", "văn phòng", "office"),
    ),
)


class Classifier:
    """
    Ordered-rule expense classifier.

    The rules are consulted in order; the pre-assigned type and the
    ``standard_name`` shortcut always take precedence over them.
    """

    def __init__(
        self,
        rules: Optional[Iterable[ClassificationRule]] = None,
        other_label: str = DEFAULT_OTHER_LABEL,
    ) -> None:
        self.rules: tuple[ClassificationRule, ...] = (
            tuple(rules) if rules is not None else DEFAULT_RULES
        )
        self.other_label = other_label

    def _first_match(
        self,
        expense: ExpenseRecord,
        accounting_type: Optional[AccountingType] = None,
    ) -> Optional[ClassificationRule]:
        for rule in self.rules:
            if accounting_type not in (None, rule.accounting_type):
                continue
            if rule.matches(expense):
                return rule
        return None

    def classify(self, expense: Any) -> ClassificationResult:
        """Classify one expense (record, raw mapping or anything else)."""
        if not isinstance(expense, ExpenseRecord):
            expense = coerce_expenses([expense])[0]

        matched = self._first_match(expense)
        preassigned = parse_accounting_type(expense.accounting_type)

        if preassigned is not None:
            # Only cost-of-goods rules name the category of a typed expense.
            goods = self._first_match(expense, AccountingType.COGS)
            if expense.standard_name:
                category = expense.standard_name
            elif goods is not None:
                category = goods.category
            elif preassigned is AccountingType.NON_RELATED:
                category = PERSONAL_CATEGORY
            else:
                category = self.other_label
            return ClassificationResult(preassigned, category, "preassigned")

        if expense.standard_name:
            accounting_type = (
                matched.accounting_type if matched is not None else AccountingType.OPEX
            )
            return ClassificationResult(
                accounting_type, expense.standard_name, "standard_name"
            )

        if matched is not None:
            return ClassificationResult(
                matched.accounting_type, matched.category, matched.name
            )

        _logger.debug(
            "No rule matched expense type=%r category=%r, using fallback",
            expense.raw_type,
            expense.raw_category,
        )
        return ClassificationResult(AccountingType.OPEX, self.other_label, "fallback")


_DEFAULT_CLASSIFIER = Classifier()


def classify(expense: Any) -> ClassificationResult:
    """Classify an expense with the default rules."""
    return _DEFAULT_CLASSIFIER.classify(expense)


def _as_str_tuple(value: Any, where: str, key: str) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"Invalid '{key}' in {where}: expected a list of strings.")
    return tuple(v.casefold() for v in value)


def _rule_from_mapping(data: Mapping[str, Any], where: str) -> ClassificationRule:
    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise ValueError(f"Missing rule name in {where}.")

    accounting_type = parse_accounting_type(data.get("accounting_type"))
    if accounting_type is None:
        raise ValueError(
            f"Invalid accounting_type {data.get('accounting_type')!r} "
            f"for rule '{name}' in {where}."
        )

    category = data.get("category")
    if not isinstance(category, str) or not category:
        raise ValueError(f"Missing category for rule '{name}' in {where}.")

    fields = _as_str_tuple(data.get("fields", list(RULE_FIELDS)), where, "fields")
    unknown = [f for f in fields if f not in ExpenseRecord.__dataclass_fields__]
    if unknown:
        raise ValueError(
            f"Unknown field(s) {', '.join(unknown)} for rule '{name}' in {where}."
        )

    keywords = _as_str_tuple(data.get("keywords"), where, "keywords")
    if not keywords:
        raise ValueError(f"Rule '{name}' in {where} has no keywords.")

    return ClassificationRule(
        name=name,
        accounting_type=accounting_type,
        category=category,
        fields=fields,
        keywords=keywords,
    )


def load_rules(path: Union[str, Path]) -> tuple[ClassificationRule, ...]:
    """
    Load ordered keyword rules from a TOML file.

    Expected structure::

        [[rules]]
        name = "license"
        accounting_type = "COGS"
        category = "Mua license"
        fields = ["raw_type", "raw_category"]   # optional
        keywords = ["license"]

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the file is malformed or a rule is invalid.
    """
    rules_path = Path(path)
    data = _load_toml(rules_path)

    raw_rules = data.get("rules")
    if not isinstance(raw_rules, list) or not raw_rules:
        raise ValueError(f"No [[rules]] tables found in {rules_path}.")

    rules = []
    for item in raw_rules:
        if not isinstance(item, Mapping):
            raise ValueError(f"Invalid rule entry in {rules_path}.")
        rules.append(_rule_from_mapping(item, str(rules_path)))

    _logger.debug("Loaded %d classification rules from %s", len(rules), rules_path)
    return tuple(rules)


def classifier_from_settings(settings: Any) -> Classifier:
    """
    Build the classifier described by ``EngineSettings``.

    Rules already parsed by ``load_settings`` are used as they are; the
    rules file is only read for settings built by hand.
    """
    rules = settings.rules
    if rules is None and settings.rules_file:
        rules = load_rules(settings.rules_file)
    return Classifier(rules, other_label=settings.other_label)
