"""Classification pipeline: ``RawEntry`` -> ``Transaction``.

Stages run strictly forward and each is a pure function of its input plus the
read-only rule table:

direction -> exclusion -> category (included Expense/Refund only) -> confidence

Sources are independent, so :func:`classify_sources` fans them out over a
bounded thread pool and concatenates the results in source order.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable, Sequence
from decimal import Decimal
from typing import NamedTuple

from .categorization import match_category
from .confidence import score_confidence
from .direction import classify_direction
from .errors import MalformedEntryError, UnsupportedSourceError
from .exclusion import detect_exclusion
from .export import from_csv
from .ingest import TEXT_MEDIA_TYPES, SourceFile
from .logging_setup import get_logger
from .models import (
    UNCATEGORIZED_TYPES,
    ConfidenceLevel,
    RawEntry,
    SkippedEntry,
    Transaction,
    TransactionStatus,
    TransactionType,
    new_transaction_id,
    to_cents,
)
from .normalizers import (
    canonical_date,
    entries_from_source,
    is_export_csv,
    parse_date,
    to_decimal,
)
from .pmap import p_map
from .rules import DEFAULT_RULES, RuleTable

_logger = get_logger("budget_ledger.pipeline")

type IdFactory = Callable[[], str]


def classify_entry(
    entry: RawEntry,
    rules: RuleTable = DEFAULT_RULES,
    *,
    batch_id: str | None = None,
    id_factory: IdFactory = new_transaction_id,
) -> Transaction:
    """Run one entry through every classification stage."""

    direction = classify_direction(entry.description, entry.amount, rules)
    exclusion = detect_exclusion(entry.description, direction.type, rules)

    category_match = None
    category = ""
    if not exclusion.excluded and exclusion.type not in UNCATEGORIZED_TYPES:
        category_match = direction.merchant or match_category(entry.description, rules)
        category = category_match.category

    confidence = score_confidence(entry.description, direction, exclusion, category_match)

    if direction.is_transfer_candidate and not exclusion.excluded:
        _logger.debug(
            "Transfer-like description kept as %s: %r", exclusion.type.value, entry.description
        )

    tx = Transaction(
        id=id_factory(),
        date=canonical_date(entry.date),
        description=entry.description,
        # Sign is discarded once the direction is fixed.
        amount=to_cents(abs(entry.amount)),
        type=exclusion.type,
        category=category,
        status=exclusion.status,
        confidence=confidence,
        batch_id=batch_id,
    )
    _logger.debug(
        "Classified %r -> %s/%s/%r (%s)",
        entry.description,
        tx.type.value,
        tx.status.value,
        tx.category,
        tx.confidence.value,
    )
    return tx


def classify_entries(
    entries: Iterable[RawEntry],
    rules: RuleTable = DEFAULT_RULES,
    *,
    batch_id: str | None = None,
    id_factory: IdFactory = new_transaction_id,
) -> list[Transaction]:
    return [classify_entry(e, rules, batch_id=batch_id, id_factory=id_factory) for e in entries]


class SourceResult(NamedTuple):
    transactions: list[Transaction]
    skipped: list[SkippedEntry]


def classify_source(
    source: SourceFile,
    rules: RuleTable = DEFAULT_RULES,
    *,
    batch_id: str | None = None,
    id_factory: IdFactory = new_transaction_id,
) -> SourceResult:
    """Normalize and classify one source.

    Files in the ledger's own export format are re-imported as-is rather than
    re-classified.
    """

    if source.media_type not in TEXT_MEDIA_TYPES:
        raise UnsupportedSourceError(
            f"{source.name}: {source.media_type} sources must be converted to text first"
        )
    if is_export_csv(source.content):
        imported = from_csv(
            source.content, source=source.name, batch_id=batch_id, id_factory=id_factory
        )
        return SourceResult(imported.transactions, imported.skipped)

    normalized = entries_from_source(source.content, source=source.name)
    transactions = classify_entries(
        normalized.entries, rules, batch_id=batch_id, id_factory=id_factory
    )
    _logger.info(
        "Source %s: %d transactions, %d skipped",
        source.name,
        len(transactions),
        len(normalized.skipped),
    )
    return SourceResult(transactions, normalized.skipped)


def resolve_max_workers(n_sources: int) -> int:
    """Resolve a worker count for per-source classification.

    Honors ``BUDGET_LEDGER_MAX_WORKERS``, caps to ``n_sources`` and to 32, and
    never returns less than 1.
    """

    env_workers = os.getenv("BUDGET_LEDGER_MAX_WORKERS")
    try:
        max_workers = int(env_workers) if env_workers else None
    except ValueError:
        max_workers = None

    if max_workers is not None and max_workers > 0:
        return max(1, min(max_workers, n_sources, 32))
    return max(1, min(8, n_sources))


def classify_sources(
    sources: Sequence[SourceFile],
    rules: RuleTable = DEFAULT_RULES,
    *,
    batch_id: str | None = None,
    id_factory: IdFactory = new_transaction_id,
    concurrency: int | None = None,
) -> SourceResult:
    """Classify several sources concurrently and merge by concatenation.

    Any source-level failure propagates and no partial result is returned.
    """

    workers = concurrency or resolve_max_workers(len(sources))
    per_source = p_map(
        sources,
        lambda s: classify_source(s, rules, batch_id=batch_id, id_factory=id_factory),
        concurrency=workers,
    )
    transactions: list[Transaction] = []
    skipped: list[SkippedEntry] = []
    for result in per_source:
        transactions.extend(result.transactions)
        skipped.extend(result.skipped)
    return SourceResult(transactions, skipped)


def manual_transaction(
    date: str,
    description: str,
    amount: Decimal | int | float | str,
    type: TransactionType | str = TransactionType.EXPENSE,
    category: str | None = None,
    *,
    batch_id: str | None = None,
    id_factory: IdFactory = new_transaction_id,
) -> Transaction:
    """Build a user-entered transaction; it bypasses classification entirely.

    Manual entries are always included and always High confidence. Income and
    Transfer entries carry no category; Expense/Refund default to ``"Other"``.
    """

    tx_type = TransactionType(type)
    desc = " ".join(description.split())
    if not desc:
        raise MalformedEntryError("description is empty")
    value = to_decimal(amount)
    try:
        date_str = canonical_date(parse_date(date))
    except MalformedEntryError:
        _logger.warning("Manual entry %r has an unrecognized date %r", desc, date)
        date_str = date.strip()

    if tx_type in UNCATEGORIZED_TYPES:
        cat = ""
    else:
        cat = (category or "").strip() or DEFAULT_RULES.fallback_category

    return Transaction(
        id=id_factory(),
        date=date_str,
        description=desc,
        amount=to_cents(abs(value)),
        type=tx_type,
        category=cat,
        status=TransactionStatus.INCLUDE,
        confidence=ConfidenceLevel.HIGH,
        batch_id=batch_id,
    )


__all__ = [
    "IdFactory",
    "SourceResult",
    "classify_entries",
    "classify_entry",
    "classify_source",
    "classify_sources",
    "manual_transaction",
    "new_transaction_id",
    "resolve_max_workers",
]
