"""Confidence grading for a classification decision.

| Decision path                                         | Grade  |
|-------------------------------------------------------|--------|
| exclusion phrase matched                              | High   |
| code-like description (cheque number, no real words)  | Low    |
| income keyword matched                                | High   |
| positive amount with nothing recognized               | Low    |
| category keyword matched                              | High   |
| category inferred from a generic merchant hint        | Medium |
| category fell back to the default                     | Low    |

Manually entered transactions never pass through here; they are always High.
"""

from __future__ import annotations

import re

from .categorization import CategoryMatch, MatchKind
from .direction import DirectionPath, DirectionResult
from .exclusion import ExclusionResult
from .models import ConfidenceLevel

_CHECK_RE = re.compile(r"^\s*(?:check|chk|cheque)\b\s*(?:#|no\.?)?\s*\d+", re.IGNORECASE)
_WORD_RE = re.compile(r"[A-Za-z]{3,}")


def is_code_like(description: str) -> bool:
    """True for descriptions that carry no merchant information."""

    return bool(_CHECK_RE.match(description)) or not _WORD_RE.search(description)


def score_confidence(
    description: str,
    direction: DirectionResult,
    exclusion: ExclusionResult,
    category: CategoryMatch | None,
) -> ConfidenceLevel:
    if exclusion.excluded:
        return ConfidenceLevel.HIGH
    if is_code_like(description):
        return ConfidenceLevel.LOW
    if direction.path is DirectionPath.INCOME_KEYWORD:
        return ConfidenceLevel.HIGH
    if direction.path is DirectionPath.AMBIGUOUS_INCOME or category is None:
        return ConfidenceLevel.LOW
    if category.kind is MatchKind.KEYWORD:
        return ConfidenceLevel.HIGH
    if category.kind is MatchKind.HINT:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


__all__ = ["is_code_like", "score_confidence"]
