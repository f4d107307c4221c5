"""Exception types raised by ``budget_ledger``."""

from __future__ import annotations

import csv
from collections.abc import Sequence


class LedgerError(Exception):
    """Base class for ledger failures surfaced to callers."""


class MalformedEntryError(LedgerError, ValueError):
    """A raw entry has an unparseable date, amount or description.

    Raised inside the normalizer and converted into a skipped-entry diagnostic;
    it never aborts a batch.
    """


class EmptyClassificationError(LedgerError):
    """A batch produced no transactions; nothing is committed."""


class OversizedInputError(LedgerError):
    """One or more sources exceed the per-file size limit."""

    def __init__(self, names: Sequence[str], limit: int) -> None:
        self.names = tuple(names)
        self.limit = limit
        super().__init__(
            f"Some files are too large (>{limit} bytes): {', '.join(self.names)}"
        )


class UnsupportedSourceError(LedgerError):
    """A source file has a media type the normalizer cannot read."""


class UnrecognizedFormatError(LedgerError, csv.Error):
    """A CSV source has no header the importer can map."""


class UnknownTransactionError(LedgerError, KeyError):
    """No transaction with the given id exists in the ledger."""

    def __str__(self) -> str:
        return f"unknown transaction id: {self.args[0]!r}"


class UnknownBatchError(LedgerError, KeyError):
    def __str__(self) -> str:
        return f"unknown batch id: {self.args[0]!r}"


class InvalidOverrideError(LedgerError, ValueError):
    """A user patch would break the transaction invariants."""


class RuleConfigError(LedgerError, ValueError):
    """The rule table configuration is invalid."""
