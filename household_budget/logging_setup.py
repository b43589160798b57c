"""Logging for the ``household_budget`` package.

Modules log through ``get_logger(__name__)`` and stay silent until the
dashboard calls ``configure_logging`` once at startup.
"""

from __future__ import annotations

import logging
import os
import sys

PACKAGE_LOGGER = "household_budget"
LOG_LEVEL_ENV = "HOUSEHOLD_BUDGET_LOG_LEVEL"


def configure_logging(level: int | str | None = None) -> None:
    """Send package log records to stderr.

    ``level`` defaults to ``HOUSEHOLD_BUDGET_LOG_LEVEL``, then ``INFO``.
    Repeated calls only update the level.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    level = level or os.getenv(LOG_LEVEL_ENV) or logging.INFO
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
        logger.addHandler(handler)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if not package_logger.handlers:
        package_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
