import json
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from budget_ledger.errors import RuleConfigError
from budget_ledger.models import ConfidenceLevel, RawEntry, TransactionStatus
from budget_ledger.pipeline import classify_entry
from budget_ledger.rules import DEFAULT_RULES, load_rules, rules_from_env


def _write(tmp_path: Path, payload) -> Path:
    p = tmp_path / "rules.json"
    p.write_text(json.dumps(payload), encoding="utf-8")
    return p


def _entry(description: str, amount: str = "-10.00") -> RawEntry:
    return RawEntry(date=date(2025, 12, 1), description=description, amount=Decimal(amount))


CUSTOM = {
    "categories": [
        {"name": "Coffee", "keywords": ["Starbucks", "  blue   bottle "], "hints": ["coffee"]},
        {"name": "Food", "keywords": ["starbucks", "market"]},
        {"name": "Misc"},
    ],
    "exclusion_keywords": ["venmo cashout"],
    "fallback_category": "Misc",
}


def test_custom_table_changes_classification_without_code_changes(tmp_path):
    rules = load_rules(_write(tmp_path, CUSTOM))
    assert rules.category_names == ("Coffee", "Food", "Misc")
    # Patterns are normalized to lowercase with collapsed whitespace
    assert rules.categories[0].keywords == ("starbucks", "blue bottle")

    tx = classify_entry(_entry("STARBUCKS 402"), rules)
    assert (tx.category, tx.confidence) == ("Coffee", ConfidenceLevel.HIGH)
    assert classify_entry(_entry("BLUE BOTTLE"), rules).category == "Coffee"
    assert classify_entry(_entry("CORNER COFFEE"), rules).confidence is ConfidenceLevel.MEDIUM
    assert classify_entry(_entry("SOMETHING"), rules).category == "Misc"


def test_custom_exclusions_replace_defaults_and_income_defaults_are_kept(tmp_path):
    rules = load_rules(_write(tmp_path, CUSTOM))
    assert classify_entry(_entry("VENMO CASHOUT"), rules).status is TransactionStatus.EXCLUDE
    assert classify_entry(_entry("TRANSFER TO SAVINGS"), rules).status is TransactionStatus.INCLUDE
    assert rules.income_keywords == DEFAULT_RULES.income_keywords


def test_list_order_is_priority(tmp_path):
    flipped = dict(CUSTOM, categories=[CUSTOM["categories"][1], CUSTOM["categories"][0], CUSTOM["categories"][2]])
    rules = load_rules(_write(tmp_path, flipped))
    assert classify_entry(_entry("STARBUCKS"), rules).category == "Food"


@pytest.mark.parametrize(
    "payload",
    [
        {"categories": []},
        {"categories": [{"name": "A"}, {"name": "A"}, {"name": "Other"}]},
        {"categories": [{"name": "A", "keywords": ["x"]}]},
        {"categories": [{"name": "Other", "keywords": ["x"]}]},
        {"categories": [{"name": "Other", "colour": "red"}]},
        {"categories": {"Other": []}},
        {"categories": [{"name": "A", "keywords": ["  "]}, {"name": "Other"}]},
    ],
)
def test_invalid_tables_are_rejected(tmp_path, payload):
    with pytest.raises(RuleConfigError):
        load_rules(_write(tmp_path, payload))


def test_missing_and_malformed_files(tmp_path):
    with pytest.raises(RuleConfigError):
        load_rules(tmp_path / "missing.json")
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(RuleConfigError):
        load_rules(bad)


def test_rules_from_env(tmp_path, monkeypatch):
    assert rules_from_env() is DEFAULT_RULES
    monkeypatch.setenv("BUDGET_LEDGER_RULES_FILE", str(_write(tmp_path, CUSTOM)))
    assert rules_from_env().fallback_category == "Misc"
