"""Row-oriented export (CSV) and a plain-text report.

CSV columns (exact order): ``Date, Description, Category, Amount, Type,
Confidence``. Amounts use two decimals; descriptions are always quoted with
embedded quotes doubled. ``status`` is not exported, so re-importing a file
yields included transactions with fresh ids.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable, Iterator
from datetime import date
from io import StringIO
from typing import NamedTuple

from .aggregate import ALL_PERIODS, filter_period, normalize_period, period_label, summarize
from .errors import MalformedEntryError, UnrecognizedFormatError
from .logging_setup import get_logger
from .models import (
    ConfidenceLevel,
    SkippedEntry,
    Transaction,
    TransactionStatus,
    TransactionType,
    new_transaction_id,
    to_cents,
)
from .normalizers import (
    EXPORT_HEADER,
    clean_description,
    strip_leading_blank_lines,
    to_decimal,
)

_logger = get_logger("budget_ledger.export")


def _fmt_amount(tx: Transaction) -> str:
    return f"{to_cents(tx.amount):.2f}"


def to_rows(transactions: Iterable[Transaction]) -> Iterator[list[str]]:
    """Yield one ``[Date, Description, Category, Amount, Type, Confidence]`` row per item."""

    for tx in transactions:
        yield [
            tx.date,
            tx.description,
            tx.category,
            _fmt_amount(tx),
            tx.type.value,
            tx.confidence.value,
        ]


def _quoted(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def _csv_field(value: str) -> str:
    if any(c in value for c in ',"\r\n'):
        return _quoted(value)
    return value


def to_csv(transactions: Iterable[Transaction]) -> str:
    lines = [",".join(EXPORT_HEADER)]
    for row in to_rows(transactions):
        date_s, desc, category, amount, type_s, conf = row
        lines.append(
            ",".join(
                [
                    _csv_field(date_s),
                    _quoted(desc),
                    _csv_field(category),
                    amount,
                    type_s,
                    conf,
                ]
            )
        )
    return "\n".join(lines) + "\n"


class ImportResult(NamedTuple):
    transactions: list[Transaction]
    skipped: list[SkippedEntry]


def _row_to_transaction(
    row: dict[str, str], *, batch_id: str | None, id_factory
) -> Transaction:
    desc = clean_description(row.get("Description"))
    if not desc:
        raise MalformedEntryError("description is empty")
    try:
        tx_type = TransactionType((row.get("Type") or "").strip())
        confidence = ConfidenceLevel((row.get("Confidence") or "").strip())
    except ValueError as exc:
        raise MalformedEntryError(str(exc)) from exc
    try:
        return Transaction(
            id=id_factory(),
            date=(row.get("Date") or "").strip(),
            description=desc,
            amount=to_cents(abs(to_decimal(row.get("Amount")))),
            type=tx_type,
            category=(row.get("Category") or "").strip(),
            status=TransactionStatus.INCLUDE,
            confidence=confidence,
            batch_id=batch_id,
        )
    except MalformedEntryError:
        raise
    except ValueError as exc:
        raise MalformedEntryError(str(exc)) from exc


def from_csv(
    text: str,
    *,
    source: str = "",
    batch_id: str | None = None,
    id_factory=new_transaction_id,
) -> ImportResult:
    """Re-import a file written by :func:`to_csv`.

    Raises :class:`~budget_ledger.errors.UnrecognizedFormatError` when the
    header is not the export header. Bad rows are skipped and reported.
    """

    body = strip_leading_blank_lines(text)
    offset = text[: len(text) - len(body)].count("\n")
    transactions: list[Transaction] = []
    skipped: list[SkippedEntry] = []
    with StringIO(body) as f:
        reader = csv.DictReader(f)
        if tuple(h.strip() for h in reader.fieldnames or []) != EXPORT_HEADER:
            raise UnrecognizedFormatError(f"not a ledger export (header={reader.fieldnames})")
        for row in reader:
            line = reader.line_num + offset
            values = {k.strip(): (v or "") for k, v in row.items() if k is not None}
            if all(not v.strip() for v in values.values()):
                continue
            try:
                transactions.append(
                    _row_to_transaction(values, batch_id=batch_id, id_factory=id_factory)
                )
            except MalformedEntryError as exc:
                _logger.warning("Skipping %s line %d: %s", source or "<export>", line, exc)
                skipped.append(
                    SkippedEntry(
                        source=source,
                        line=line,
                        text=",".join(values.values()),
                        reason=str(exc),
                    )
                )
    return ImportResult(transactions, skipped)


# ---------------------------------------------------------------------------
# Plain-text report
# ---------------------------------------------------------------------------

_REPORT_COLUMNS = ("Date", "Description", "Category", "Type", "Amount")
_MAX_DESCRIPTION = 40


def _truncate(s: str, width: int) -> str:
    return s if len(s) <= width else s[: width - 3] + "..."


def render_report(
    transactions: Iterable[Transaction],
    period: str | None = ALL_PERIODS,
    *,
    title: str = "HomeBudget Analysis",
    generated_on: date | None = None,
) -> str:
    """Render the summary block followed by a fixed-width transaction table."""

    items = list(transactions)
    key = normalize_period(period)
    summary = summarize(items, key)
    view = filter_period(items, key).transactions
    generated = (generated_on or date.today()).strftime("%m/%d/%Y")

    out: list[str] = [
        title,
        f"Generated on {generated} | Period: {period_label(key)}",
        "",
        f"Total Income:   ${summary.total_income:.2f}",
        f"Total Expenses: ${summary.total_expense:.2f}",
        f"Net Savings:    ${summary.net:.2f}",
        "",
    ]

    rows = [
        (
            tx.date,
            _truncate(tx.description, _MAX_DESCRIPTION),
            tx.category,
            tx.type.value,
            f"${_fmt_amount(tx)}",
        )
        for tx in view
    ]
    widths = [
        max([len(h)] + [len(r[i]) for r in rows]) for i, h in enumerate(_REPORT_COLUMNS)
    ]

    def _line(cells: tuple[str, ...]) -> str:
        parts = [c.ljust(w) for c, w in zip(cells[:-1], widths[:-1], strict=True)]
        parts.append(cells[-1].rjust(widths[-1]))
        return " | ".join(parts).rstrip()

    out.append(_line(_REPORT_COLUMNS))
    out.append("-+-".join("-" * w for w in widths))
    out.extend(_line(r) for r in rows)
    if summary.undated and key != ALL_PERIODS:
        out.append("")
        out.append(f"Note: {len(summary.undated)} transaction(s) without a valid date omitted.")
    return "\n".join(out) + "\n"


__all__ = ["ImportResult", "from_csv", "render_report", "to_csv", "to_rows"]
