"""Statement text/CSV -> ``RawEntry`` normalizers.

Two input shapes are supported:

- CSV exports with a recognizable header (date, description, and either an
  amount column or a debit/credit pair). Columns are located by name
  patterns rather than a fixed schema. Parsing follows RFC 4180 via the
  stdlib :mod:`csv` module.
- Free text (pasted statements, text extracted from PDFs): a new entry begins
  at each date token; the last amount token before the next date is the
  amount and the text in between is the description.

Lines that cannot be normalized are returned as
:class:`~budget_ledger.models.SkippedEntry` diagnostics; they never abort the
rest of the source.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from io import StringIO
from typing import NamedTuple

from .errors import MalformedEntryError, UnrecognizedFormatError
from .logging_setup import get_logger
from .models import RawEntry, SkippedEntry, to_cents

_logger = get_logger("budget_ledger.normalizers")

# ---------------------------------------------------------------------------
# Field helpers (amount/date/description)
# ---------------------------------------------------------------------------

# Matches the Numeric(18, 2) amount column.
_MAX_AMOUNT = Decimal("1e16")

_DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%y", "%m-%d-%Y", "%m-%d-%y", "%Y-%m-%d", "%Y/%m/%d")


def _checked_amount(d: Decimal, raw: object) -> Decimal:
    if not d.is_finite():
        raise MalformedEntryError(f"invalid amount: {raw!r}")
    if abs(d) >= _MAX_AMOUNT:
        raise MalformedEntryError(f"amount out of range: {raw!r}")
    return d


def to_decimal(raw: str | int | float | Decimal | None) -> Decimal:
    """Parse a statement amount into a signed ``Decimal``.

    Accepts a leading ``+``/``-``, ``$``, thousands separators, surrounding
    parentheses (negative), a trailing minus, and trailing ``CR``/``DR``
    markers (credit positive, debit negative).
    """

    if raw is None:
        raise MalformedEntryError("amount is required")
    if isinstance(raw, (int, float, Decimal)):
        return _checked_amount(raw if isinstance(raw, Decimal) else Decimal(str(raw)), raw)

    s = raw.strip()
    if not s:
        raise MalformedEntryError("amount is empty")
    negative = False

    marker = s[-2:].upper()
    if marker in {"CR", "DR"}:
        negative = marker == "DR"
        s = s[:-2].rstrip()
    if s.endswith("-"):
        negative = True
        s = s[:-1].rstrip()

    # Strip leading sign, currency symbol and surrounding parentheses in any
    # order until stable, so "-($1,234.56)" and "$(1.00)" both work.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s.startswith("$"):
            s = s[1:].lstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = s.replace(",", "").strip()
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise MalformedEntryError(f"invalid amount: {raw!r}") from exc
    d = _checked_amount(d, raw)
    return -abs(d) if negative else d


def parse_date(raw: str | date | None) -> date:
    """Parse a statement date in any of the supported formats."""

    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if raw is None or not raw.strip():
        raise MalformedEntryError("date is empty")
    # Drop any time component ("12/05/2025 10:31", "2025-12-05T10:31:00").
    first = raw.strip().split()[0].split("T", 1)[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(first, fmt).date()
        except ValueError:
            continue
    raise MalformedEntryError(f"invalid date: {raw!r}")


def canonical_date(d: date) -> str:
    """Format ``d`` as ``MM/DD/YYYY``."""

    return d.strftime("%m/%d/%Y")


def clean_description(value: str | None) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", value).strip()


def normalize_entry(
    date_raw: str | date | None,
    description: str | None,
    amount_raw: str | int | float | Decimal | None,
    *,
    source: str = "",
    line: int = 0,
) -> RawEntry:
    """Validate and canonicalize one (date, description, amount) triple.

    Raises :class:`~budget_ledger.errors.MalformedEntryError` on any invalid
    field, including a zero amount.
    """

    d = parse_date(date_raw)
    desc = clean_description(description)
    if not desc:
        raise MalformedEntryError("description is empty")
    amount = to_cents(to_decimal(amount_raw))
    if amount == 0:
        raise MalformedEntryError(f"amount is zero: {amount_raw!r}")
    return RawEntry(date=d, description=desc, amount=amount, source=source, line=line)


class NormalizedSource(NamedTuple):
    entries: list[RawEntry]
    skipped: list[SkippedEntry]


def _skip(source: str, line: int, text: str, reason: str) -> SkippedEntry:
    _logger.warning("Skipping %s line %d: %s", source or "<input>", line, reason)
    return SkippedEntry(source=source, line=line, text=text, reason=reason)


# ---------------------------------------------------------------------------
# Free text
# ---------------------------------------------------------------------------

_DATE_TOKEN = re.compile(
    r"(?<![\d/.-])(\d{1,2}[/-]\d{1,2}[/-]\d{2,4}|\d{4}[/-]\d{1,2}[/-]\d{1,2})(?![\d/.-])"
)
# Amounts must carry cents so store numbers ("STARBUCKS 402") are never taken
# for money.
_AMOUNT_TOKEN = re.compile(
    r"[-+(]*\$?\s?\d{1,3}(?:,\d{3})*\.\d{2}\)?(?:\s?(?:CR|DR)\b|-)?"
    r"|[-+(]*\$?\s?\d+\.\d{2}\)?(?:\s?(?:CR|DR)\b|-)?",
    re.IGNORECASE,
)
_SEPARATORS = " \t\r\n,;|"


def entries_from_text(text: str, *, source: str = "") -> NormalizedSource:
    """Split free statement text into entries at each date token.

    Text before the first date (headers, account banners) is ignored.
    """

    entries: list[RawEntry] = []
    skipped: list[SkippedEntry] = []
    starts = list(_DATE_TOKEN.finditer(text))
    for i, m in enumerate(starts):
        end = starts[i + 1].start() if i + 1 < len(starts) else len(text)
        line = text.count("\n", 0, m.start()) + 1
        segment = text[m.start() : end].strip()
        rest = text[m.end() : end]
        amounts = list(_AMOUNT_TOKEN.finditer(rest))
        if not amounts:
            skipped.append(_skip(source, line, segment, "no amount found"))
            continue
        amt = amounts[-1]
        description = rest[: amt.start()].strip(_SEPARATORS)
        try:
            entries.append(
                normalize_entry(
                    m.group(1), description, amt.group(0), source=source, line=line
                )
            )
        except MalformedEntryError as exc:
            skipped.append(_skip(source, line, segment, str(exc)))
    return NormalizedSource(entries, skipped)


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

DATE_PATTERNS = ("transaction date", "posted date", "post date", "posting date", "date")
AMOUNT_PATTERNS = ("amount", "amt")
DEBIT_PATTERNS = ("debit", "withdrawal")
CREDIT_PATTERNS = ("credit", "deposit")
DESCRIPTION_PATTERNS = ("description", "details", "payee", "merchant", "name", "memo")

EXPORT_HEADER = ("Date", "Description", "Category", "Amount", "Type", "Confidence")


class CsvColumns(NamedTuple):
    date: str
    description: str
    amount: str | None
    debit: str | None
    credit: str | None


def _infer_column(
    headers: Sequence[str], patterns: Sequence[str], taken: set[str]
) -> str | None:
    for pattern in patterns:
        for col in headers:
            if col in taken:
                continue
            if pattern in col.lower():
                return col
    return None


def detect_columns(headers: Sequence[str]) -> CsvColumns | None:
    """Locate the statement columns in a CSV header, or ``None``."""

    taken: set[str] = set()
    date_col = _infer_column(headers, DATE_PATTERNS, taken)
    if date_col is None:
        return None
    taken.add(date_col)
    # A debit/credit pair wins over a signed amount column ("Debit Amount").
    debit_col = _infer_column(headers, DEBIT_PATTERNS, taken)
    if debit_col is not None:
        taken.add(debit_col)
    credit_col = _infer_column(headers, CREDIT_PATTERNS, taken)
    if credit_col is not None:
        taken.add(credit_col)
    amount_col = None
    if debit_col is None and credit_col is None:
        amount_col = _infer_column(headers, AMOUNT_PATTERNS, taken)
        if amount_col is None:
            return None
        taken.add(amount_col)
    desc_col = _infer_column(headers, DESCRIPTION_PATTERNS, taken)
    if desc_col is None:
        return None
    return CsvColumns(date_col, desc_col, amount_col, debit_col, credit_col)


def strip_leading_blank_lines(text: str) -> str:
    """Drop blank or whitespace-only lines before the header row."""

    lines = text.splitlines(keepends=True)
    for i, line in enumerate(lines):
        if line.strip():
            return "".join(lines[i:])
    return ""


def _header_of(text: str) -> list[str]:
    body = strip_leading_blank_lines(text)
    if not body:
        return []
    return [h.strip() for h in next(csv.reader([body.splitlines()[0]]), [])]


def is_export_csv(text: str) -> bool:
    """True when ``text`` starts with the ledger's own export header."""

    return tuple(_header_of(text)) == EXPORT_HEADER


def _row_amount(row: dict[str, str], cols: CsvColumns) -> str | Decimal:
    if cols.amount is not None:
        return row.get(cols.amount) or ""
    debit = (row.get(cols.debit) or "").strip() if cols.debit else ""
    credit = (row.get(cols.credit) or "").strip() if cols.credit else ""
    if debit and to_decimal(debit) != 0:
        return -abs(to_decimal(debit))
    if credit and to_decimal(credit) != 0:
        return abs(to_decimal(credit))
    raise MalformedEntryError("debit and credit are both empty")


def entries_from_csv(text: str, *, source: str = "") -> NormalizedSource:
    """Normalize a headed CSV statement export.

    Raises :class:`~budget_ledger.errors.UnrecognizedFormatError` (a
    ``csv.Error``) when the header cannot be mapped to statement
    columns; callers that accept arbitrary text use
    :func:`entries_from_source`, which falls back to free-text splitting.
    """

    headers = _header_of(text)
    cols = detect_columns(headers)
    if cols is None:
        raise UnrecognizedFormatError(
            f"CSV header has no recognizable date/description/amount columns: {headers}"
        )

    body = strip_leading_blank_lines(text)
    # Line numbers in diagnostics refer to the original text.
    offset = text[: len(text) - len(body)].count("\n")
    entries: list[RawEntry] = []
    skipped: list[SkippedEntry] = []
    with StringIO(body) as f:
        reader = csv.DictReader(f, skipinitialspace=True)
        # DictReader keeps header names verbatim; strip them to match ``cols``.
        reader.fieldnames = [h.strip() for h in reader.fieldnames or []]
        for row in reader:
            line = reader.line_num + offset
            values = {k: (v or "") for k, v in row.items() if k is not None}
            if all(not v.strip() for v in values.values()):
                continue
            raw_text = ",".join(values.values())
            try:
                entries.append(
                    normalize_entry(
                        values.get(cols.date),
                        values.get(cols.description),
                        _row_amount(values, cols),
                        source=source,
                        line=line,
                    )
                )
            except MalformedEntryError as exc:
                skipped.append(_skip(source, line, raw_text, str(exc)))
    return NormalizedSource(entries, skipped)


def entries_from_source(text: str, *, source: str = "") -> NormalizedSource:
    """Normalize statement text, choosing CSV or free-text parsing."""

    if detect_columns(_header_of(text)) is not None:
        _logger.debug("Parsing %s as headed CSV", source or "<input>")
        return entries_from_csv(text, source=source)
    _logger.debug("Parsing %s as free text", source or "<input>")
    return entries_from_text(text, source=source)


__all__ = [
    "EXPORT_HEADER",
    "CsvColumns",
    "NormalizedSource",
    "canonical_date",
    "clean_description",
    "detect_columns",
    "entries_from_csv",
    "entries_from_source",
    "entries_from_text",
    "is_export_csv",
    "normalize_entry",
    "parse_date",
    "strip_leading_blank_lines",
    "to_decimal",
]
