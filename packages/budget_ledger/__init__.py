"""Public interface for the ``budget_ledger`` package.

Statement lines go through a deterministic pipeline (direction, exclusion,
category, confidence) and land in a :class:`Ledger` of immutable batches. This
module only re-exports the stable import surface.
"""

from .aggregate import available_periods, filter_period, filter_table, period_of, summarize
from .categorization import classify_category
from .confidence import is_code_like, score_confidence
from .direction import classify_direction
from .errors import (
    EmptyClassificationError,
    InvalidOverrideError,
    LedgerError,
    MalformedEntryError,
    OversizedInputError,
    RuleConfigError,
    UnknownBatchError,
    UnknownTransactionError,
    UnrecognizedFormatError,
    UnsupportedSourceError,
)
from .exclusion import detect_exclusion
from .export import from_csv, render_report, to_csv, to_rows
from .ingest import SourceFile, check_source_sizes, read_source
from .ledger import Ledger
from .models import (
    AggregateSummary,
    Batch,
    CategoryTotal,
    ConfidenceLevel,
    RawEntry,
    SkippedEntry,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from .normalizers import entries_from_source, normalize_entry
from .pipeline import classify_entries, classify_entry, classify_sources, manual_transaction
from .rules import DEFAULT_RULES, CategoryRule, RuleTable, load_rules, rules_from_env

__all__ = [
    # Pipeline
    "classify_category",
    "classify_direction",
    "classify_entries",
    "classify_entry",
    "classify_sources",
    "detect_exclusion",
    "entries_from_source",
    "is_code_like",
    "manual_transaction",
    "normalize_entry",
    "score_confidence",
    # Aggregation / export
    "available_periods",
    "filter_period",
    "filter_table",
    "from_csv",
    "period_of",
    "render_report",
    "summarize",
    "to_csv",
    "to_rows",
    # Ledger and intake
    "Ledger",
    "SourceFile",
    "check_source_sizes",
    "read_source",
    # Rules
    "CategoryRule",
    "DEFAULT_RULES",
    "RuleTable",
    "load_rules",
    "rules_from_env",
    # Models
    "AggregateSummary",
    "Batch",
    "CategoryTotal",
    "ConfidenceLevel",
    "RawEntry",
    "SkippedEntry",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    # Errors
    "EmptyClassificationError",
    "InvalidOverrideError",
    "LedgerError",
    "MalformedEntryError",
    "OversizedInputError",
    "RuleConfigError",
    "UnknownBatchError",
    "UnknownTransactionError",
    "UnrecognizedFormatError",
    "UnsupportedSourceError",
]
