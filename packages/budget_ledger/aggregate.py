"""Aggregation of transactions into period/category totals.

Periods are calendar months keyed ``YYYY-MM``; ``"All"`` is the unfiltered
view. Transactions whose date cannot be parsed never belong to a month: they
stay in the ``"All"`` view, drop out of month views, and are always listed in
``AggregateSummary.undated`` so the omission is visible.

Totals are plain ``Decimal`` sums over included transactions, so permuting
the input never changes a total. Display order of the flexible-spending
breakdown is amount descending, then category name ascending.
"""

from __future__ import annotations

import re
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import NamedTuple

from .errors import MalformedEntryError
from .logging_setup import get_logger
from .models import AggregateSummary, CategoryTotal, Transaction, TransactionType
from .normalizers import parse_date
from .rules import DEFAULT_RULES

_logger = get_logger("budget_ledger.aggregate")

ALL_PERIODS = "All"

_PERIOD_KEY_RE = re.compile(r"^(\d{4})-(\d{1,2})$")
_MONTH_SLASH_RE = re.compile(r"^(\d{1,2})/(\d{4})$")


def period_of(tx: Transaction) -> str | None:
    """Return the ``YYYY-MM`` key of ``tx`` or ``None`` when undated."""

    try:
        d = parse_date(tx.date)
    except MalformedEntryError:
        return None
    return f"{d.year:04d}-{d.month:02d}"


def normalize_period(period: str | None) -> str:
    """Canonicalize a period filter.

    Accepts ``"All"`` (or ``None``), ``"YYYY-MM"``, ``"MM/YYYY"`` and month
    labels such as ``"December 2025"``.
    """

    if period is None or period.strip().lower() in {"", "all"}:
        return ALL_PERIODS
    s = period.strip()
    m = _PERIOD_KEY_RE.match(s)
    if m:
        year, month = int(m.group(1)), int(m.group(2))
    elif m := _MONTH_SLASH_RE.match(s):
        month, year = int(m.group(1)), int(m.group(2))
    else:
        try:
            parsed = datetime.strptime(s, "%B %Y")
        except ValueError:
            raise ValueError(f"invalid period: {period!r}") from None
        year, month = parsed.year, parsed.month
    if not 1 <= month <= 12:
        raise ValueError(f"invalid period: {period!r}")
    return f"{year:04d}-{month:02d}"


def period_label(key: str) -> str:
    """``"2025-12"`` -> ``"December 2025"``; ``"All"`` is returned unchanged."""

    if key == ALL_PERIODS:
        return key
    return datetime.strptime(key, "%Y-%m").strftime("%B %Y")


def available_periods(transactions: Iterable[Transaction]) -> list[str]:
    """``"All"`` followed by every month present, newest first."""

    keys = {k for k in (period_of(t) for t in transactions) if k is not None}
    return [ALL_PERIODS, *sorted(keys, reverse=True)]


class PeriodView(NamedTuple):
    transactions: tuple[Transaction, ...]
    undated: tuple[str, ...]


def filter_period(transactions: Iterable[Transaction], period: str | None = ALL_PERIODS) -> PeriodView:
    key = normalize_period(period)
    items = tuple(transactions)
    undated = tuple(t.id for t in items if period_of(t) is None)
    if key == ALL_PERIODS:
        return PeriodView(items, undated)
    if undated:
        _logger.warning(
            "%d transaction(s) with unparseable dates excluded from period %s",
            len(undated),
            key,
        )
    return PeriodView(tuple(t for t in items if period_of(t) == key), undated)


def filter_table(
    transactions: Iterable[Transaction],
    *,
    category: str | None = None,
    type: str | None = None,
) -> tuple[Transaction, ...]:
    """Keep transactions matching a category and a type; ``None`` or ``"All"`` matches anything.

    Category names compare case-insensitively. An unknown type raises
    ``ValueError``.
    """

    items = tuple(transactions)
    if type is not None and type.strip().lower() not in {"", "all"}:
        try:
            wanted = TransactionType(type.strip().title())
        except ValueError:
            raise ValueError(f"invalid type: {type!r}") from None
        items = tuple(t for t in items if t.type is wanted)
    if category is not None and category.strip().lower() not in {"", "all"}:
        name = " ".join(category.split()).casefold()
        items = tuple(t for t in items if t.category.casefold() == name)
    return items


def summarize(
    transactions: Iterable[Transaction],
    period: str | None = ALL_PERIODS,
    *,
    fixed_category: str = DEFAULT_RULES.fixed_category,
) -> AggregateSummary:
    """Compute income/expense totals and the flexible-spending breakdown.

    Only included transactions count. Refunds and transfers contribute to
    neither total.
    """

    key = normalize_period(period)
    view = filter_period(transactions, key)

    income = Decimal("0.00")
    expense = Decimal("0.00")
    fixed = Decimal("0.00")
    by_category: dict[str, Decimal] = defaultdict(lambda: Decimal("0.00"))

    for tx in view.transactions:
        if not tx.is_included:
            continue
        if tx.type is TransactionType.INCOME:
            income += tx.amount
        elif tx.type is TransactionType.EXPENSE:
            expense += tx.amount
            if tx.category == fixed_category:
                fixed += tx.amount
            else:
                by_category[tx.category] += tx.amount

    breakdown = tuple(
        CategoryTotal(cat, amt)
        for cat, amt in sorted(by_category.items(), key=lambda kv: (-kv[1], kv[0]))
    )
    return AggregateSummary(
        period=key,
        total_income=income,
        total_expense=expense,
        housing_total=fixed,
        breakdown=breakdown,
        transaction_count=len(view.transactions),
        undated=view.undated,
    )


__all__ = [
    "ALL_PERIODS",
    "PeriodView",
    "available_periods",
    "filter_period",
    "filter_table",
    "normalize_period",
    "period_label",
    "period_of",
    "summarize",
]
