"""Pytest configuration for test isolation.

Every ``BUDGET_LEDGER_*`` setting is cleared per test, and the default
database URL is pointed at a per-test SQLite file so nothing lands in the
working tree. Cached engines are disposed afterwards so one test's database
never leaks into the next.
"""

from __future__ import annotations

import os
import sys
import textwrap
from pathlib import Path

import pytest

# Make sure the workspace `packages/` dir (and the repo root, for
# `tests.helpers`) is on sys.path so `budget_ledger` is importable
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

from budget_ledger.db import dispose_engines  # noqa: E402

_ENV_VARS = (
    "BUDGET_LEDGER_LOG_LEVEL",
    "BUDGET_LEDGER_RULES_FILE",
    "BUDGET_LEDGER_MAX_WORKERS",
    "BUDGET_LEDGER_MAX_SOURCE_BYTES",
    "BUDGET_LEDGER_DATABASE_URL",
)

DEMO_STATEMENT = textwrap.dedent(
    """\
    12/06/2025, WHOLEFOODS MARKET, -85.20
    12/05/2025, AMAZON.COM*H83, -24.99
    12/04/2025, PAYMENT TO CREDIT CARD, -1500.00
    12/04/2025, SALARY DEPOSIT, 3200.00
    12/03/2025, STARBUCKS 402, -6.50
    12/02/2025, DOORDASH*BURGERKING, -32.40
    12/01/2025, PAMPERS DIAPERS, -45.99
    11/30/2025, TRANSFER TO SAVINGS, -500.00
    11/29/2025, WALGREENS, -12.99
    11/28/2025, SHELL OIL 12345, -45.00
    """
)


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Clear ledger settings and route the default database to ``tmp_path``."""

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv(
        "BUDGET_LEDGER_DATABASE_URL", f"sqlite+pysqlite:///{os.fspath(tmp_path / 'ledger.db')}"
    )
    yield
    dispose_engines()


@pytest.fixture
def demo_statement() -> str:
    return DEMO_STATEMENT
