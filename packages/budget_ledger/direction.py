"""Direction classifier: money out, money in, or money back.

- Negative amounts are expenses.
- Positive amounts are income when the description carries an income keyword
  (salary, interest, direct deposit, ``zelle from <name>`` ...), a refund when
  a category rule recognizes the merchant, and otherwise income by default
  (graded Low downstream).

The classifier never fails. It also flags transfer-looking descriptions; the
exclusion detector makes the binding decision.
"""

from __future__ import annotations

import re
from decimal import Decimal
from enum import Enum
from typing import NamedTuple

from .categorization import CategoryMatch, match_category
from .models import TransactionType
from .rules import DEFAULT_RULES, RuleTable

_TRANSFER_TOKEN = re.compile(r"\b(?:transfer|xfer|payment|pmt)\b", re.IGNORECASE)


class DirectionPath(Enum):
    """Which branch of the decision produced the provisional type."""

    NEGATIVE_AMOUNT = "negative_amount"
    INCOME_KEYWORD = "income_keyword"
    MERCHANT_REFUND = "merchant_refund"
    AMBIGUOUS_INCOME = "ambiguous_income"


class DirectionResult(NamedTuple):
    type: TransactionType
    path: DirectionPath
    is_transfer_candidate: bool
    income_keyword: str | None = None
    merchant: CategoryMatch | None = None


def find_income_keyword(description: str, rules: RuleTable = DEFAULT_RULES) -> str | None:
    text = description.lower()
    for kw in rules.income_keywords:
        if kw in text:
            return kw
    for pattern in rules.income_patterns:
        m = pattern.search(description)
        if m:
            return m.group(0).lower()
    return None


def classify_direction(
    description: str, amount: Decimal, rules: RuleTable = DEFAULT_RULES
) -> DirectionResult:
    transfer_like = bool(_TRANSFER_TOKEN.search(description))
    if amount < 0:
        return DirectionResult(TransactionType.EXPENSE, DirectionPath.NEGATIVE_AMOUNT, transfer_like)

    kw = find_income_keyword(description, rules)
    if kw is not None:
        return DirectionResult(
            TransactionType.INCOME, DirectionPath.INCOME_KEYWORD, transfer_like, income_keyword=kw
        )

    merchant = match_category(description, rules)
    if merchant.is_merchant:
        return DirectionResult(
            TransactionType.REFUND, DirectionPath.MERCHANT_REFUND, transfer_like, merchant=merchant
        )
    return DirectionResult(TransactionType.INCOME, DirectionPath.AMBIGUOUS_INCOME, transfer_like)


__all__ = ["DirectionPath", "DirectionResult", "classify_direction", "find_income_keyword"]
