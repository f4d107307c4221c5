"""Data models and type aliases for ``budget_ledger``.

The pipeline moves data strictly forward:

``RawEntry`` (validated statement line) -> ``Transaction`` (classified,
normalized ledger record) -> ``AggregateSummary`` (derived totals).

``Transaction`` is immutable. The only permitted edits (category override and
amount correction) go through :meth:`Transaction.with_category` and
:meth:`Transaction.with_amount`, which return new instances.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import NamedTuple
from uuid import uuid4

_CENT = Decimal("0.01")


def to_cents(value: Decimal) -> Decimal:
    """Quantize ``value`` to two decimal places (half-up)."""

    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def new_transaction_id() -> str:
    """Return a fresh opaque transaction id (never reused)."""

    return uuid4().hex


# ---------------------------------------------------------------------------
# Enumerations (values are the exact exported spellings)
# ---------------------------------------------------------------------------


class TransactionType(StrEnum):
    EXPENSE = "Expense"
    INCOME = "Income"
    TRANSFER = "Transfer"
    REFUND = "Refund"


class TransactionStatus(StrEnum):
    INCLUDE = "Include"
    EXCLUDE = "Exclude"


class ConfidenceLevel(StrEnum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# Types that never carry a category.
UNCATEGORIZED_TYPES: frozenset[TransactionType] = frozenset(
    {TransactionType.INCOME, TransactionType.TRANSFER}
)


# ---------------------------------------------------------------------------
# Pipeline input
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawEntry:
    """A validated statement line awaiting classification.

    ``source`` and ``line`` locate the entry in its input for diagnostics;
    they play no part in classification.
    """

    date: date
    description: str
    amount: Decimal
    source: str = ""
    line: int = 0

    def __post_init__(self) -> None:
        if not self.description.strip():
            raise ValueError("RawEntry.description must be non-empty")
        if self.amount == 0:
            raise ValueError("RawEntry.amount must be nonzero")


@dataclass(frozen=True, slots=True)
class SkippedEntry:
    """Diagnostic for an input line that could not be turned into a RawEntry."""

    source: str
    line: int
    text: str
    reason: str


# ---------------------------------------------------------------------------
# Ledger record
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """A fully classified budget record.

    Invariants
    ----------
    - ``amount`` is never negative; direction lives in ``type`` only.
    - ``category`` is empty exactly when ``type`` is Income/Transfer or
      ``status`` is Exclude.
    """

    id: str
    date: str
    description: str
    amount: Decimal
    type: TransactionType
    category: str
    status: TransactionStatus
    confidence: ConfidenceLevel
    batch_id: str | None = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"Transaction.amount must be non-negative, got {self.amount}")
        uncategorized = (
            self.type in UNCATEGORIZED_TYPES or self.status is TransactionStatus.EXCLUDE
        )
        if uncategorized and self.category != "":
            raise ValueError(
                f"Transaction {self.id!r}: category must be empty for "
                f"{self.type.value}/{self.status.value}"
            )
        if not uncategorized and not self.category.strip():
            raise ValueError(
                f"Transaction {self.id!r}: included {self.type.value} requires a category"
            )

    @property
    def is_included(self) -> bool:
        return self.status is TransactionStatus.INCLUDE

    def with_category(self, category: str) -> Transaction:
        return replace(self, category=category)

    def with_amount(self, amount: Decimal) -> Transaction:
        return replace(self, amount=to_cents(abs(amount)))


@dataclass(frozen=True, slots=True)
class Batch:
    """One committed submission: every transaction it produced plus diagnostics."""

    id: str
    created_at: datetime
    sources: tuple[str, ...]
    transactions: tuple[Transaction, ...]
    skipped: tuple[SkippedEntry, ...] = ()

    def find(self, tx_id: str) -> Transaction | None:
        for tx in self.transactions:
            if tx.id == tx_id:
                return tx
        return None

    def with_transaction(self, updated: Transaction) -> Batch:
        """Return a copy with the transaction sharing ``updated.id`` replaced."""

        return replace(
            self,
            transactions=tuple(updated if t.id == updated.id else t for t in self.transactions),
        )

    def with_added(self, added: Iterable[Transaction]) -> Batch:
        return replace(self, transactions=tuple(added) + self.transactions)


# ---------------------------------------------------------------------------
# Aggregation output
# ---------------------------------------------------------------------------


class CategoryTotal(NamedTuple):
    category: str
    amount: Decimal


@dataclass(frozen=True, slots=True)
class AggregateSummary:
    """Totals over a filtered transaction view.

    ``breakdown`` covers flexible spending only (the fixed category, Housing
    by default, is reported separately as ``housing_total``). ``undated``
    lists ids of transactions whose date could not be placed in a month.
    """

    period: str
    total_income: Decimal
    total_expense: Decimal
    housing_total: Decimal
    breakdown: tuple[CategoryTotal, ...]
    transaction_count: int
    undated: tuple[str, ...] = field(default=())

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_expense


__all__ = [
    "AggregateSummary",
    "Batch",
    "CategoryTotal",
    "ConfidenceLevel",
    "RawEntry",
    "SkippedEntry",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "UNCATEGORIZED_TYPES",
    "new_transaction_id",
    "to_cents",
]
