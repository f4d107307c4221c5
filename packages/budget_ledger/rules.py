"""Rule tables driving classification.

The category table is an ordered list: rules are evaluated top to bottom and
the first match wins, so position encodes tie-break priority. Each rule has

- ``keywords``: direct merchant/category keywords (a hit grades High);
- ``hints``: generic merchant tokens consulted only when no keyword of any
  rule matched (a hit grades Medium).

All patterns are case-insensitive substrings. Tables are loaded once and
never mutated; a JSON file can replace the built-in table without touching
any pipeline stage.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from os import PathLike
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from .errors import RuleConfigError
from .logging_setup import get_logger

_logger = get_logger("budget_ledger.rules")


@dataclass(frozen=True, slots=True)
class CategoryRule:
    name: str
    keywords: tuple[str, ...] = ()
    hints: tuple[str, ...] = ()

    def first_keyword(self, text: str) -> str | None:
        """Return the first keyword contained in lowercased ``text``."""

        for kw in self.keywords:
            if kw in text:
                return kw
        return None

    def first_hint(self, text: str) -> str | None:
        for hint in self.hints:
            if hint in text:
                return hint
        return None


@dataclass(frozen=True, slots=True)
class RuleTable:
    """The complete, read-only configuration for one classification run."""

    categories: tuple[CategoryRule, ...]
    income_keywords: tuple[str, ...]
    exclusion_keywords: tuple[str, ...]
    income_patterns: tuple[re.Pattern[str], ...] = ()
    fixed_category: str = "Housing"
    fallback_category: str = "Other"

    @property
    def category_names(self) -> tuple[str, ...]:
        return tuple(r.name for r in self.categories)


# ---------------------------------------------------------------------------
# Built-in table
# ---------------------------------------------------------------------------

# "zelle from <name>": a counterparty name must follow.
ZELLE_FROM_PATTERN = re.compile(r"\bzelle\s+(?:payment\s+)?from\s+[a-z]", re.IGNORECASE)

DEFAULT_RULES = RuleTable(
    categories=(
        CategoryRule(
            "Baby",
            ("baby", "diaper", "wipes", "pampers", "formula", "infant", "toddler"),
            ("kids", "nursery"),
        ),
        CategoryRule(
            "Groceries",
            (
                "cereal",
                "oats",
                "whole foods",
                "wholefoods",
                "costco",
                "trader joe",
                "weee",
                "grocery",
            ),
            ("market", "foods", "grocer", "supermarket", "produce"),
        ),
        CategoryRule(
            "Home & Kitchen",
            ("detergent", "trash bag", "paper towel", "toilet paper", "cookware"),
            ("home goods", "homegoods", "bed bath", "hardware"),
        ),
        CategoryRule(
            "Personal Care",
            ("shampoo", "toothpaste", "skincare"),
            ("salon", "barber", "beauty", "cosmetic", "day spa"),
        ),
        CategoryRule(
            "Health",
            ("vitamin", "medicine", "pharmacy", "walgreens", "cvs"),
            ("clinic", "dental", "medical", "hospital", "urgent care"),
        ),
        CategoryRule(
            "Housing",
            ("mortgage", "rent", "hoa", "property tax", "bilt"),
            ("apartment", "realty", "property mgmt"),
        ),
        CategoryRule(
            "Utilities",
            ("gas", "electric", "internet", "mobile", "verizon", "pse&g"),
            ("power", "water", "wireless", "telecom", "utility"),
        ),
        CategoryRule(
            "Transport",
            ("gas station", "shell", "uber", "lyft", "ez pass", "ezpass", "parking"),
            ("fuel", "oil", "transit", "toll", "taxi", "metro"),
        ),
        CategoryRule(
            "Dining Out",
            ("cafe", "starbucks", "doordash", "ubereats", "pizza"),
            ("restaurant", "grill", "bistro", "diner", "burger", "taco", "sushi", "bakery", "coffee"),
        ),
        CategoryRule(
            "Subscriptions",
            ("prime", "netflix", "icloud", "chatgpt", "claude"),
            ("subscription", "membership", "streaming"),
        ),
        CategoryRule(
            "Electronics",
            ("cable", "charger", "battery", "headphones", "laptop"),
            ("electronics", "best buy"),
        ),
        CategoryRule(
            "Office",
            ("notebook", "pen", "ink", "paper", "books"),
            ("office", "staples", "stationery"),
        ),
        CategoryRule(
            "Clothing",
            ("tshirt", "jeans", "shoes", "uniqlo"),
            ("apparel", "outfitters", "clothing", "boutique"),
        ),
        CategoryRule(
            "Travel",
            ("american dream", "liberty science center"),
            ("hotel", "airline", "airbnb", "museum", "resort"),
        ),
        CategoryRule("Other"),
    ),
    income_keywords=("salary", "payroll", "interest", "direct deposit", "direct dep"),
    income_patterns=(ZELLE_FROM_PATTERN,),
    exclusion_keywords=(
        "automatic payment",
        "autopay",
        "payment to credit card",
        "credit card payment",
        "transfer to savings",
        "transfer from savings",
        "transfer to checking",
        "transfer from checking",
        "online banking transfer",
        "online transfer",
        "internal transfer",
    ),
)


# ---------------------------------------------------------------------------
# JSON configuration
# ---------------------------------------------------------------------------


def _clean_patterns(values: list[str]) -> list[str]:
    out: list[str] = []
    for v in values:
        s = " ".join(v.split()).lower()
        if not s:
            raise ValueError("keyword patterns must be non-empty")
        out.append(s)
    return out


class CategoryRuleConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str
    keywords: list[str] = []
    hints: list[str] = []

    @field_validator("name")
    @classmethod
    def _name_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("category name must be non-empty")
        return v

    @field_validator("keywords", "hints")
    @classmethod
    def _normalize_patterns(cls, v: list[str]) -> list[str]:
        return _clean_patterns(v)


class RuleTableConfig(BaseModel):
    """Typed, validated shape of a rule table JSON file.

    ``categories`` is a list, never an object, because order is priority.
    Omitted keyword sets fall back to the built-in ones.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    categories: list[CategoryRuleConfig]
    income_keywords: list[str] | None = None
    exclusion_keywords: list[str] | None = None
    fixed_category: str = "Housing"
    fallback_category: str = "Other"

    @field_validator("income_keywords", "exclusion_keywords")
    @classmethod
    def _normalize_keyword_sets(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else _clean_patterns(v)

    @model_validator(mode="after")
    def _check_table(self) -> RuleTableConfig:
        names = [c.name for c in self.categories]
        if not names:
            raise ValueError("categories must not be empty")
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate category names: {dupes}")
        if self.fallback_category not in names:
            raise ValueError(f"fallback category {self.fallback_category!r} is not in the table")
        fallback = self.categories[names.index(self.fallback_category)]
        if fallback.keywords or fallback.hints:
            raise ValueError("the fallback category must not define keywords or hints")
        return self

    def to_rule_table(self) -> RuleTable:
        return RuleTable(
            categories=tuple(
                CategoryRule(c.name, tuple(c.keywords), tuple(c.hints)) for c in self.categories
            ),
            income_keywords=(
                tuple(self.income_keywords)
                if self.income_keywords is not None
                else DEFAULT_RULES.income_keywords
            ),
            exclusion_keywords=(
                tuple(self.exclusion_keywords)
                if self.exclusion_keywords is not None
                else DEFAULT_RULES.exclusion_keywords
            ),
            income_patterns=DEFAULT_RULES.income_patterns,
            fixed_category=self.fixed_category,
            fallback_category=self.fallback_category,
        )


def load_rules(path: str | PathLike[str]) -> RuleTable:
    """Load and validate a rule table from a JSON file.

    Raises :class:`~budget_ledger.errors.RuleConfigError` when the file is
    missing, is not JSON, or fails validation.
    """

    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise RuleConfigError(f"rules file not found: {p}") from exc
    except json.JSONDecodeError as exc:
        raise RuleConfigError(f"rules file is not valid JSON: {p}: {exc}") from exc
    try:
        cfg = RuleTableConfig.model_validate(raw)
    except ValidationError as exc:
        raise RuleConfigError(f"invalid rules file {p}: {exc}") from exc
    table = cfg.to_rule_table()
    _logger.info("Loaded %d category rules from %s", len(table.categories), p)
    return table


def rules_from_env() -> RuleTable:
    """Return the table named by ``BUDGET_LEDGER_RULES_FILE`` or the default."""

    path = os.getenv("BUDGET_LEDGER_RULES_FILE")
    if path and path.strip():
        return load_rules(path.strip())
    return DEFAULT_RULES


__all__ = [
    "CategoryRule",
    "CategoryRuleConfig",
    "DEFAULT_RULES",
    "RuleTable",
    "RuleTableConfig",
    "ZELLE_FROM_PATTERN",
    "load_rules",
    "rules_from_env",
]
