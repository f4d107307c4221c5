"""Exclusion detector: keep internal money movement out of spending totals.

A credit-card payment and the purchases made on that card are the same money;
counting both doubles the spend. Descriptions matching an exclusion keyword
are therefore marked ``Exclude`` and forced to ``Transfer`` with no category,
whatever their sign or provisional type.
"""

from __future__ import annotations

from typing import NamedTuple

from .models import TransactionStatus, TransactionType
from .rules import DEFAULT_RULES, RuleTable


class ExclusionResult(NamedTuple):
    status: TransactionStatus
    type: TransactionType
    keyword: str | None = None

    @property
    def excluded(self) -> bool:
        return self.status is TransactionStatus.EXCLUDE


def detect_exclusion(
    description: str,
    provisional_type: TransactionType,
    rules: RuleTable = DEFAULT_RULES,
) -> ExclusionResult:
    text = " ".join(description.lower().split())
    for kw in rules.exclusion_keywords:
        if kw in text:
            return ExclusionResult(TransactionStatus.EXCLUDE, TransactionType.TRANSFER, kw)
    return ExclusionResult(TransactionStatus.INCLUDE, provisional_type)


__all__ = ["ExclusionResult", "detect_exclusion"]
