"""Source intake: statement files handed to the ledger.

Decoding binary formats (PDF layout analysis, OCR) is out of scope; PDFs are
accepted here only so they can be rejected with a clear message when a batch
is submitted. Text and CSV sources are decoded as UTF-8.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass
from os import PathLike
from pathlib import Path

from .errors import OversizedInputError
from .logging_setup import get_logger

_logger = get_logger("budget_ledger.ingest")

DEFAULT_MAX_SOURCE_BYTES = 4 * 1024 * 1024

_MEDIA_TYPES = {
    ".csv": "text/csv",
    ".txt": "text/plain",
    ".pdf": "application/pdf",
}

TEXT_MEDIA_TYPES = frozenset({"text/csv", "text/plain"})


@dataclass(frozen=True, slots=True)
class SourceFile:
    """One statement source: a name, its decoded text and its byte size."""

    name: str
    content: str
    media_type: str = "text/plain"
    size: int | None = None

    @property
    def byte_size(self) -> int:
        if self.size is not None:
            return self.size
        return len(self.content.encode("utf-8"))


def max_source_bytes() -> int:
    """Per-file size limit; ``BUDGET_LEDGER_MAX_SOURCE_BYTES`` overrides."""

    raw = os.getenv("BUDGET_LEDGER_MAX_SOURCE_BYTES")
    try:
        value = int(raw) if raw else None
    except ValueError:
        _logger.warning("Ignoring non-integer BUDGET_LEDGER_MAX_SOURCE_BYTES=%r", raw)
        value = None
    if value is not None and value > 0:
        return value
    return DEFAULT_MAX_SOURCE_BYTES


def read_source(path: str | PathLike[str]) -> SourceFile:
    """Read a statement file from disk."""

    p = Path(path)
    media_type = _MEDIA_TYPES.get(p.suffix.lower(), "text/plain")
    data = p.read_bytes()
    content = data.decode("utf-8-sig", errors="replace") if media_type in TEXT_MEDIA_TYPES else ""
    return SourceFile(name=p.name, content=content, media_type=media_type, size=len(data))


def check_source_sizes(sources: Iterable[SourceFile], *, limit: int | None = None) -> None:
    """Raise :class:`OversizedInputError` naming every file over the limit."""

    cap = limit if limit is not None else max_source_bytes()
    oversized = [s.name for s in sources if s.byte_size > cap]
    if oversized:
        raise OversizedInputError(oversized, cap)


__all__ = [
    "DEFAULT_MAX_SOURCE_BYTES",
    "SourceFile",
    "TEXT_MEDIA_TYPES",
    "check_source_sizes",
    "max_source_bytes",
    "read_source",
]
