import csv
from datetime import date
from decimal import Decimal

import pytest

from budget_ledger.errors import LedgerError, UnrecognizedFormatError
from budget_ledger.export import from_csv, render_report, to_csv, to_rows
from budget_ledger.ingest import SourceFile
from budget_ledger.models import ConfidenceLevel, Transaction, TransactionStatus, TransactionType
from budget_ledger.pipeline import classify_source

HEADER = "Date,Description,Category,Amount,Type,Confidence"


def _tx(description: str, amount: str = "24.99", category: str = "Other") -> Transaction:
    return Transaction(
        id="t1",
        date="12/05/2025",
        description=description,
        amount=Decimal(amount),
        type=TransactionType.EXPENSE,
        category=category,
        status=TransactionStatus.INCLUDE,
        confidence=ConfidenceLevel.LOW,
    )


def test_to_rows_columns_and_amount_format():
    rows = list(to_rows([_tx("AMAZON.COM*H83", "24.9")]))
    assert rows == [["12/05/2025", "AMAZON.COM*H83", "Other", "24.90", "Expense", "Low"]]


def test_to_csv_always_quotes_description():
    text = to_csv([_tx('ACME "BIG" SALE, INC'), _tx("PLAIN", category="Home & Kitchen")])
    lines = text.splitlines()
    assert lines[0] == HEADER
    assert lines[1] == '12/05/2025,"ACME ""BIG"" SALE, INC",Other,24.99,Expense,Low'
    assert lines[2] == '12/05/2025,"PLAIN",Home & Kitchen,24.99,Expense,Low'
    assert text.endswith("\n")


def test_to_csv_is_readable_by_csv_module():
    text = to_csv([_tx('ACME "BIG" SALE, INC')])
    rows = list(csv.reader(text.splitlines()))
    assert rows[1][1] == 'ACME "BIG" SALE, INC'


def test_round_trip_restores_everything_but_status_and_id(demo_statement):
    original = classify_source(SourceFile("demo.txt", demo_statement)).transactions
    imported = from_csv(to_csv(original), source="export.csv")
    assert imported.skipped == []
    assert len(imported.transactions) == len(original)
    for before, after in zip(original, imported.transactions, strict=True):
        assert (after.date, after.description, after.category, after.amount, after.type, after.confidence) == (
            before.date,
            before.description,
            before.category,
            before.amount,
            before.type,
            before.confidence,
        )
        assert after.status is TransactionStatus.INCLUDE
        assert after.id != before.id


def test_from_csv_skips_bad_rows():
    text = (
        HEADER
        + "\n"
        + '12/05/2025,"OK",Other,1.00,Expense,Low\n'
        + '12/05/2025,"BAD TYPE",Other,1.00,Purchase,Low\n'
        + '12/05/2025,"BAD AMOUNT",Other,abc,Expense,Low\n'
        + '12/05/2025,"INCOME WITH CATEGORY",Other,1.00,Income,High\n'
    )
    result = from_csv(text, source="x.csv", batch_id="b")
    assert [t.description for t in result.transactions] == ["OK"]
    assert result.transactions[0].batch_id == "b"
    assert [s.line for s in result.skipped] == [3, 4, 5]


def test_from_csv_requires_export_header():
    with pytest.raises(csv.Error):
        from_csv("Date,Description,Amount\n12/05/2025,X,1.00\n")


def test_render_report(demo_statement):
    txs = classify_source(SourceFile("demo.txt", demo_statement)).transactions
    report = render_report(txs, "December 2025", generated_on=date(2025, 12, 31))
    lines = report.splitlines()
    assert lines[0] == "HomeBudget Analysis"
    assert lines[1] == "Generated on 12/31/2025 | Period: December 2025"
    assert "Total Income:   $3200.00" in lines
    assert "Total Expenses: $195.08" in lines
    assert "Net Savings:    $3004.92" in lines
    header = next(line for line in lines if line.startswith("Date"))
    assert [c.strip() for c in header.split("|")] == ["Date", "Description", "Category", "Type", "Amount"]
    # November rows are filtered out of a December report
    assert not any("WALGREENS" in line for line in lines)
    assert any("STARBUCKS 402" in line and "$6.50" in line for line in lines)


def test_export_with_leading_blank_lines_is_reimported(demo_statement):
    original = classify_source(SourceFile("demo.txt", demo_statement)).transactions
    text = "\r\n\n" + to_csv(original) + "12/05/2025,\"BAD\",Other,abc,Expense,Low\n"
    result = classify_source(SourceFile("export.csv", text, "text/csv"))
    assert [t.description for t in result.transactions] == [t.description for t in original]
    assert [s.line for s in result.skipped] == [2 + 1 + len(original) + 1]


def test_non_export_header_is_a_ledger_error():
    with pytest.raises(UnrecognizedFormatError) as excinfo:
        from_csv("\nDate,Description\n12/05/2025,X\n")
    assert isinstance(excinfo.value, LedgerError)
