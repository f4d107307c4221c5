"""Category classifier: ordered, first-match-wins keyword rules.

Two passes run over the rule table in priority order:

1. keyword pass: the first rule with a keyword contained in the description
   wins (``MatchKind.KEYWORD``);
2. hint pass (only when no keyword matched anywhere): the first rule with a
   generic merchant token wins (``MatchKind.HINT``).

No match resolves to the table's fallback category (``"Other"``). The result
is never empty.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

from .rules import DEFAULT_RULES, RuleTable


class MatchKind(Enum):
    KEYWORD = "keyword"
    HINT = "hint"
    FALLBACK = "fallback"


class CategoryMatch(NamedTuple):
    category: str
    kind: MatchKind
    pattern: str | None = None

    @property
    def is_merchant(self) -> bool:
        """True when a rule (keyword or hint) recognized the description."""

        return self.kind is not MatchKind.FALLBACK


def match_category(description: str, rules: RuleTable = DEFAULT_RULES) -> CategoryMatch:
    """Return the highest-priority category match for ``description``."""

    text = description.lower()
    for rule in rules.categories:
        kw = rule.first_keyword(text)
        if kw is not None:
            return CategoryMatch(rule.name, MatchKind.KEYWORD, kw)
    for rule in rules.categories:
        hint = rule.first_hint(text)
        if hint is not None:
            return CategoryMatch(rule.name, MatchKind.HINT, hint)
    return CategoryMatch(rules.fallback_category, MatchKind.FALLBACK)


def classify_category(description: str, rules: RuleTable = DEFAULT_RULES) -> str:
    return match_category(description, rules).category


__all__ = ["CategoryMatch", "MatchKind", "classify_category", "match_category"]
