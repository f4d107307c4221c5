"""Database persistence for committed batches.

Tables
------
- ``bl_batches``: one row per committed batch (sources and skipped-entry
  diagnostics stored as JSON).
- ``bl_transactions``: one row per transaction, ordered within its batch by
  ``position``. Deleting a batch deletes its transactions.

Functions take an open ``Session`` (see :func:`budget_ledger.db.session_scope`)
and never commit on their own.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, Numeric, String, Text, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .db import Base
from .errors import UnknownBatchError, UnknownTransactionError
from .logging_setup import get_logger
from .models import (
    Batch,
    ConfidenceLevel,
    SkippedEntry,
    Transaction,
    TransactionStatus,
    TransactionType,
    to_cents,
)

_logger = get_logger("budget_ledger.persistence")


class BlBatch(Base):
    __tablename__ = "bl_batches"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sources: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    skipped: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    transactions: Mapped[list[BlTransaction]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="BlTransaction.position",
    )


class BlTransaction(Base):
    __tablename__ = "bl_transactions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    batch_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("bl_batches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    confidence: Mapped[str] = mapped_column(String(16), nullable=False)

    batch: Mapped[BlBatch] = relationship(back_populates="transactions")


# ---------------------------------------------------------------------------
# Row <-> model conversion
# ---------------------------------------------------------------------------


def _tx_row(tx: Transaction, batch_id: str, position: int) -> BlTransaction:
    return BlTransaction(
        id=tx.id,
        batch_id=batch_id,
        position=position,
        date=tx.date,
        description=tx.description,
        amount=tx.amount,
        type=tx.type.value,
        category=tx.category,
        status=tx.status.value,
        confidence=tx.confidence.value,
    )


def _tx_from_row(row: BlTransaction) -> Transaction:
    return Transaction(
        id=row.id,
        date=row.date,
        description=row.description,
        amount=to_cents(Decimal(str(row.amount))),
        type=TransactionType(row.type),
        category=row.category or "",
        status=TransactionStatus(row.status),
        confidence=ConfidenceLevel(row.confidence),
        batch_id=row.batch_id,
    )


def _skipped_to_json(entries: Iterable[SkippedEntry]) -> list[dict[str, Any]]:
    return [
        {"source": s.source, "line": s.line, "text": s.text, "reason": s.reason} for s in entries
    ]


def _skipped_from_json(raw: list[dict[str, Any]] | None) -> tuple[SkippedEntry, ...]:
    return tuple(
        SkippedEntry(
            source=str(item.get("source", "")),
            line=int(item.get("line", 0)),
            text=str(item.get("text", "")),
            reason=str(item.get("reason", "")),
        )
        for item in raw or []
    )


def _aware(dt: datetime) -> datetime:
    # SQLite drops tzinfo; stored values are always UTC.
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def save_batch(session: Session, batch: Batch) -> None:
    """Insert a committed batch and all of its transactions."""

    row = BlBatch(
        id=batch.id,
        created_at=batch.created_at,
        sources=list(batch.sources),
        skipped=_skipped_to_json(batch.skipped),
    )
    row.transactions = [_tx_row(tx, batch.id, i) for i, tx in enumerate(batch.transactions)]
    session.add(row)
    session.flush()
    _logger.info("Saved batch %s (%d transactions)", batch.id, len(batch.transactions))


def load_batches(session: Session) -> list[Batch]:
    """Load every stored batch, oldest first."""

    rows = session.scalars(select(BlBatch).order_by(BlBatch.created_at, BlBatch.id)).all()
    return [
        Batch(
            id=row.id,
            created_at=_aware(row.created_at),
            sources=tuple(row.sources or ()),
            transactions=tuple(_tx_from_row(t) for t in row.transactions),
            skipped=_skipped_from_json(row.skipped),
        )
        for row in rows
    ]


def delete_batch(session: Session, batch_id: str) -> None:
    row = session.get(BlBatch, batch_id)
    if row is None:
        raise UnknownBatchError(batch_id)
    session.delete(row)
    session.flush()
    _logger.info("Deleted batch %s", batch_id)


def save_transaction(session: Session, tx: Transaction) -> None:
    """Write back the mutable fields of an already stored transaction."""

    row = session.get(BlTransaction, tx.id)
    if row is None:
        raise UnknownTransactionError(tx.id)
    row.amount = tx.amount
    row.category = tx.category
    session.flush()


__all__ = [
    "BlBatch",
    "BlTransaction",
    "delete_batch",
    "load_batches",
    "save_batch",
    "save_transaction",
]
