"""Logging for ``budget_ledger``.

Library modules log through ``get_logger("budget_ledger.<module>")`` and stay
silent until the CLI calls :func:`configure_logging` once at startup. Skipped
statement lines and undated transactions are WARNING, batch commits INFO and
per-entry classification DEBUG.
"""

from __future__ import annotations

import logging
import os
import sys

_PKG_LOGGER_NAME = "budget_ledger"
_LEVEL_ENV = "BUDGET_LEDGER_LOG_LEVEL"
_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

# Bound at import; later swaps of sys.stderr do not redirect ledger logs.
_STREAM = sys.stderr

_configured = False


def resolve_level(level: int | str | None = None) -> int:
    """``level`` or ``BUDGET_LEDGER_LOG_LEVEL`` as a logging level; INFO otherwise."""

    if level is None:
        level = os.getenv(_LEVEL_ENV)
    if isinstance(level, int):
        return level
    if level:
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelName(name)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(level: int | str | None = None) -> None:
    """Attach the single ledger handler; later calls are no-ops."""

    global _configured
    if _configured:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(_STREAM)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(resolve_level(level))
    logger.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _configured and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
