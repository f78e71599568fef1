# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Centralized logging configuration for the ``smb_metrics`` package.

Two helpers are exposed:

- ``configure_logging(...)`` attaches a single ``StreamHandler`` to the
  package root logger (``"smb_metrics"``). Entry points (the CLI) call it
  once at startup.
- ``get_logger(name)`` returns a named logger and makes sure the package
  root logger carries at least a ``NullHandler`` so that library use stays
  silent until a host application configures handlers.

Engine modules never attach handlers themselves.
"""

import logging
import os
import sys
from typing import IO, Optional, Union

_PKG_LOGGER_NAME = "smb_metrics"
_ENV_LEVEL = "SMB_METRICS_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


def parse_level(level: Union[int, str, None]) -> int:
    """
    Resolve a logging level from an int, a level name or a numeric string.

    When ``level`` is None the ``SMB_METRICS_LOG_LEVEL`` environment variable
    is consulted, then ``logging.INFO`` is used.
    """
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = getattr(logging, name, None)
        if isinstance(numeric, int):
            return numeric
        raise ValueError(f"Unknown logging level: {level!r}")

    env_value = os.getenv(_ENV_LEVEL)
    if env_value:
        return parse_level(env_value)
    return logging.INFO


def configure_logging(
    level: Union[int, str, None] = None,
    *,
    fmt: Optional[str] = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Configure the package root logger exactly once."""
    global _configured
    if _configured:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)

    for handler in list(logger.handlers):
        if isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)

    resolved = parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name, silent until ``configure_logging`` runs."""
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _configured and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
