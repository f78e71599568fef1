# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for SMB Metrics.

This module is responsible for:
- loading the engine configuration from a TOML file,
- validating the numeric knobs (granularity thresholds, growth deadband,
  days per month),
- exposing the typed ``EngineSettings`` dataclass used by the rest of the
  package.

Every setting has a default, so ``EngineSettings()`` is a valid
configuration for library callers that never read a file.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import]

from .logging_setup import parse_level

DEFAULT_CONFIG_FILE = "smb_metrics_config.toml"
DISPLAY_MODES: tuple[str, ...] = ("table", "json", "csv")


@dataclass(frozen=True)
class EngineSettings:
    """
    Engine-wide settings.

    Attributes:
        timezone: Optional IANA timezone used to take the calendar date of
            timezone-aware timestamps (e.g. 'Asia/Ho_Chi_Minh').
        daily_max_days: Largest range span (in days) rendered daily.
        weekly_max_days: Largest range span (in days) rendered weekly.
        trailing_months: Number of monthly buckets used when no range is given.
        growth_deadband_pct: Changes within +/- this percentage are 'stable'.
        days_per_month: Month length used to normalise the burn rate.
        rules_file: Optional TOML file with custom classification rules.
        rules: Classification rules parsed from ``rules_file`` by
            ``load_settings``; None means the built-in rules.
        other_label: Category assigned by the classifier's total fallback.
        headcount: Number of employees used for revenue per employee.
        display_mode: Default CLI rendering ('table', 'json' or 'csv').
        decimals: Rounding used by the tabular views.
        log_level: Logging level name for the CLI.
    """

    timezone: Optional[str] = None
    daily_max_days: int = 31
    weekly_max_days: int = 90
    trailing_months: int = 12
    growth_deadband_pct: float = 5.0
    days_per_month: int = 30
    rules_file: Optional[Path] = None
    rules: Optional[tuple[Any, ...]] = None
    other_label: str = "Other"
    headcount: float = 1.0
    display_mode: str = "table"
    decimals: int = 2
    log_level: str = "INFO"


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    """Return a sub-table, or an empty mapping when absent or malformed."""
    section = data.get(name) or {}
    if not isinstance(section, Mapping):
        return {}
    return section


def _as_int(section: Mapping[str, Any], key: str, default: int, name: str) -> int:
    raw = section.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"Invalid value for '{name}.{key}' in the configuration. "
            "Expected an integer."
        ) from exc


def _as_float(
    section: Mapping[str, Any], key: str, default: float, name: str
) -> float:
    raw = section.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"Invalid value for '{name}.{key}' in the configuration. "
            "Expected a number."
        ) from exc


def _load_rules(path: Path) -> tuple[Any, ...]:
    # Imported here: the classifier module reads TOML through this module.
    from .classifier import load_rules

    return load_rules(path)


def validate_settings(settings: EngineSettings) -> EngineSettings:
    """
    Check the cross-field constraints of a settings object.

    Raises:
        ValueError: if a threshold is out of range, or the timezone or log
            level is unknown.
    """
    if settings.daily_max_days < 1:
        raise ValueError("granularity.daily_max_days must be at least 1.")
    if settings.weekly_max_days < settings.daily_max_days:
        raise ValueError(
            "granularity.weekly_max_days cannot be lower than daily_max_days."
        )
    if settings.trailing_months < 1:
        raise ValueError("granularity.trailing_months must be at least 1.")
    if settings.growth_deadband_pct < 0:
        raise ValueError("growth.deadband_pct cannot be negative.")
    if settings.days_per_month < 1:
        raise ValueError("kpis.days_per_month must be at least 1.")
    if settings.headcount <= 0:
        raise ValueError("inputs.hr.headcount must be positive.")
    if settings.display_mode not in DISPLAY_MODES:
        raise ValueError(
            f"display.mode must be one of {', '.join(DISPLAY_MODES)}, "
            f"got {settings.display_mode!r}."
        )
    if settings.timezone:
        try:
            ZoneInfo(settings.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {settings.timezone!r}") from exc
    parse_level(settings.log_level)
    return settings


def load_settings(config_path: Optional[str] = None) -> EngineSettings:
    """
    Load the SMB Metrics engine settings from a TOML file.

    Expected (all optional) top-level sections
    ------------------------------------------
    [dates]           timezone
    [granularity]     daily_max_days, weekly_max_days, trailing_months
    [growth]          deadband_pct
    [kpis]            days_per_month
    [classification]  rules_file, other_label
    [inputs.hr]       headcount
    [display]         mode, decimals
    [logging]         level

    File paths are resolved relative to the directory of the TOML file.
    The classification rules file is read here, once, so that computing
    metrics never touches the filesystem.

    Parameters
    ----------
    config_path :
        Path to the TOML file. Defaults to ``smb_metrics_config.toml`` in the
        current working directory.

    Returns
    -------
    EngineSettings
        Parsed and validated settings.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent
    defaults = EngineSettings()

    dates_section = _section(raw, "dates")
    timezone = dates_section.get("timezone") or None

    granularity_section = _section(raw, "granularity")
    growth_section = _section(raw, "growth")
    kpis_section = _section(raw, "kpis")

    classification_section = _section(raw, "classification")
    rules_raw = classification_section.get("rules_file") or None
    rules_file = (base_dir / str(rules_raw)).resolve() if rules_raw else None
    rules = _load_rules(rules_file) if rules_file else None
    other_label = str(classification_section.get("other_label") or "Other")

    hr_section = _section(_section(raw, "inputs"), "hr")

    display_section = _section(raw, "display")
    logging_section = _section(raw, "logging")

    settings = EngineSettings(
        timezone=str(timezone) if timezone else None,
        daily_max_days=_as_int(
            granularity_section, "daily_max_days", defaults.daily_max_days,
            "granularity",
        ),
        weekly_max_days=_as_int(
            granularity_section, "weekly_max_days", defaults.weekly_max_days,
            "granularity",
        ),
        trailing_months=_as_int(
            granularity_section, "trailing_months", defaults.trailing_months,
            "granularity",
        ),
        growth_deadband_pct=_as_float(
            growth_section, "deadband_pct", defaults.growth_deadband_pct, "growth"
        ),
        days_per_month=_as_int(
            kpis_section, "days_per_month", defaults.days_per_month, "kpis"
        ),
        rules_file=rules_file,
        rules=rules,
        other_label=other_label,
        headcount=_as_float(hr_section, "headcount", defaults.headcount, "inputs.hr"),
        display_mode=str(display_section.get("mode", defaults.display_mode)),
        decimals=_as_int(display_section, "decimals", defaults.decimals, "display"),
        log_level=str(logging_section.get("level", defaults.log_level)),
    )

    return validate_settings(settings)
