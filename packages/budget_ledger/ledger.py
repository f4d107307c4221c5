"""In-memory ledger: committed batches plus the two user patch operations.

The visible transaction set is the concatenation of committed batches, newest
first. Every mutation builds a new batch mapping and swaps it in under one
lock, so readers always see either the old or the new state and a failed
submission leaves nothing behind.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

from .aggregate import available_periods, summarize
from .errors import (
    EmptyClassificationError,
    InvalidOverrideError,
    UnknownBatchError,
    UnknownTransactionError,
)
from .ingest import SourceFile, check_source_sizes
from .logging_setup import get_logger
from .models import (
    AggregateSummary,
    Batch,
    RawEntry,
    Transaction,
    TransactionType,
    new_transaction_id,
)
from .normalizers import to_decimal
from .pipeline import IdFactory, classify_entries, classify_sources, manual_transaction
from .rules import DEFAULT_RULES, RuleTable

_logger = get_logger("budget_ledger.ledger")

MANUAL_SOURCE = "manual"

_CATEGORIZED_TYPES = frozenset({TransactionType.EXPENSE, TransactionType.REFUND})


def new_batch_id() -> str:
    return uuid4().hex


class Ledger:
    """Ordered collection of immutable :class:`Batch` values."""

    def __init__(
        self,
        rules: RuleTable = DEFAULT_RULES,
        *,
        batches: Iterable[Batch] = (),
        id_factory: IdFactory = new_transaction_id,
        max_source_bytes: int | None = None,
    ) -> None:
        self.rules = rules
        self._id_factory = id_factory
        self._max_source_bytes = max_source_bytes
        self._lock = threading.Lock()
        self._batches: dict[str, Batch] = {b.id: b for b in batches}

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def batches(self) -> tuple[Batch, ...]:
        """Committed batches, oldest first."""

        return tuple(self._batches.values())

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        """Every visible transaction, newest batch first."""

        snapshot = self._batches
        return tuple(tx for b in reversed(snapshot.values()) for tx in b.transactions)

    def get(self, tx_id: str) -> Transaction:
        return self._locate(self._batches, tx_id)[1]

    def batch(self, batch_id: str) -> Batch:
        try:
            return self._batches[batch_id]
        except KeyError:
            raise UnknownBatchError(batch_id) from None

    def summary(self, period: str | None = "All") -> AggregateSummary:
        return summarize(self.transactions, period, fixed_category=self.rules.fixed_category)

    def periods(self) -> list[str]:
        return available_periods(self.transactions)

    # ------------------------------------------------------------------
    # Batch submission
    # ------------------------------------------------------------------

    def submit(self, sources: Sequence[SourceFile], *, concurrency: int | None = None) -> Batch:
        """Classify ``sources`` and commit them as one batch.

        Oversized sources are rejected before any work starts. A submission
        that yields no transactions raises :class:`EmptyClassificationError`.
        Either way the visible state is unchanged on failure.
        """

        check_source_sizes(sources, limit=self._max_source_bytes)
        batch_id = new_batch_id()
        result = classify_sources(
            sources,
            self.rules,
            batch_id=batch_id,
            id_factory=self._id_factory,
            concurrency=concurrency,
        )
        names = tuple(s.name for s in sources)
        if not result.transactions:
            raise EmptyClassificationError(
                "No transactions found in " + (", ".join(names) or "an empty submission")
            )
        batch = Batch(
            id=batch_id,
            created_at=datetime.now(UTC),
            sources=names,
            transactions=tuple(result.transactions),
            skipped=tuple(result.skipped),
        )
        self._commit(batch)
        return batch

    def submit_entries(self, entries: Iterable[RawEntry], *, source: str = "") -> Batch:
        """Commit already-normalized entries as one batch."""

        items = list(entries)
        batch_id = new_batch_id()
        transactions = classify_entries(
            items, self.rules, batch_id=batch_id, id_factory=self._id_factory
        )
        if not transactions:
            raise EmptyClassificationError("No transactions to commit")
        sources = (source,) if source else tuple(dict.fromkeys(e.source for e in items if e.source))
        batch = Batch(
            id=batch_id,
            created_at=datetime.now(UTC),
            sources=sources,
            transactions=tuple(transactions),
        )
        self._commit(batch)
        return batch

    def add_manual(
        self,
        date: str,
        description: str,
        amount: Decimal | int | float | str,
        type: TransactionType | str = TransactionType.EXPENSE,
        category: str | None = None,
    ) -> Transaction:
        """Record a user-entered transaction as its own single-entry batch."""

        batch_id = new_batch_id()
        tx = manual_transaction(
            date,
            description,
            amount,
            type,
            category,
            batch_id=batch_id,
            id_factory=self._id_factory,
        )
        self._commit(
            Batch(
                id=batch_id,
                created_at=datetime.now(UTC),
                sources=(MANUAL_SOURCE,),
                transactions=(tx,),
            )
        )
        return tx

    def remove_batch(self, batch_id: str) -> Batch:
        with self._lock:
            if batch_id not in self._batches:
                raise UnknownBatchError(batch_id)
            updated = dict(self._batches)
            removed = updated.pop(batch_id)
            self._batches = updated
        _logger.info("Removed batch %s (%d transactions)", batch_id, len(removed.transactions))
        return removed

    # ------------------------------------------------------------------
    # Patches
    # ------------------------------------------------------------------

    def override_category(self, tx_id: str, category: str) -> Transaction:
        """Replace the category of an included Expense/Refund transaction."""

        name = " ".join((category or "").split())
        if not name:
            raise InvalidOverrideError("category must be non-empty")

        def patch(tx: Transaction) -> Transaction:
            if not tx.is_included or tx.type not in _CATEGORIZED_TYPES:
                raise InvalidOverrideError(
                    f"transaction {tx.id} is {tx.type.value}/{tx.status.value}; "
                    "only included Expense or Refund transactions carry a category"
                )
            return tx.with_category(name)

        return self._patch(tx_id, patch)

    def override_amount(self, tx_id: str, amount: Decimal | int | float | str) -> Transaction:
        """Correct an amount; the absolute value is stored, quantized to cents."""

        value = to_decimal(amount)
        return self._patch(tx_id, lambda tx: tx.with_amount(value))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _locate(batches: dict[str, Batch], tx_id: str) -> tuple[Batch, Transaction]:
        for batch in batches.values():
            tx = batch.find(tx_id)
            if tx is not None:
                return batch, tx
        raise UnknownTransactionError(tx_id)

    def _patch(self, tx_id: str, fn) -> Transaction:
        with self._lock:
            batch, tx = self._locate(self._batches, tx_id)
            updated_tx = fn(tx)
            updated = dict(self._batches)
            updated[batch.id] = batch.with_transaction(updated_tx)
            self._batches = updated
        _logger.info("Patched transaction %s", tx_id)
        return updated_tx

    def _commit(self, batch: Batch) -> None:
        with self._lock:
            updated = dict(self._batches)
            updated[batch.id] = batch
            self._batches = updated
        _logger.info(
            "Committed batch %s: %d transactions, %d skipped (%s)",
            batch.id,
            len(batch.transactions),
            len(batch.skipped),
            ", ".join(batch.sources) or "-",
        )


__all__ = ["MANUAL_SOURCE", "Ledger", "new_batch_id"]
