import contextlib
from pathlib import Path

import pytest
from prompt_toolkit import PromptSession
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput
from typer.testing import CliRunner

from budget_ledger.cli import app, cmd_review
from budget_ledger.db import session_scope
from budget_ledger.persistence import load_batches
from tests.helpers.db import bootstrap_sqlite_db, count_rows

runner = CliRunner()


@pytest.fixture
def db_url(tmp_path, monkeypatch) -> str:
    # Run from an empty directory so no stray .env is picked up
    monkeypatch.chdir(tmp_path)
    return bootstrap_sqlite_db(tmp_path / "cli.sqlite")


@pytest.fixture
def statement(tmp_path, demo_statement) -> Path:
    p = tmp_path / "demo.txt"
    p.write_text(demo_statement, encoding="utf-8")
    return p


def _run(db_url: str, *args: str):
    return runner.invoke(app, ["--database-url", db_url, *args])


def _tx_id(db_url: str, description: str) -> str:
    result = _run(db_url, "list")
    assert result.exit_code == 0, result.output
    line = next(line for line in result.stdout.splitlines() if f"\t{description}\t" in line)
    return line.split("\t")[0]


def test_ingest_then_summary(db_url, statement):
    result = _run(db_url, "ingest", str(statement))
    assert result.exit_code == 0, result.output
    assert "10 transactions, 0 skipped" in result.stdout
    assert count_rows(db_url) == (1, 10)

    summary = _run(db_url, "summary")
    assert summary.exit_code == 0, summary.output
    assert "Total Income:   3200.00" in summary.stdout
    assert "Housing: 0.00" in summary.stdout

    dec = _run(db_url, "summary", "--period", "2025-12")
    assert "Period: December 2025" in dec.stdout


def test_ingest_missing_file_is_an_error(db_url, tmp_path):
    result = _run(db_url, "ingest", str(tmp_path / "nope.txt"))
    assert result.exit_code == 1
    assert "Error: File not found" in result.output
    assert count_rows(db_url) == (0, 0)


def test_ingest_oversized_file_is_rejected(db_url, statement, monkeypatch):
    monkeypatch.setenv("BUDGET_LEDGER_MAX_SOURCE_BYTES", "16")
    result = _run(db_url, "ingest", str(statement))
    assert result.exit_code == 1
    assert "too large" in result.output
    assert count_rows(db_url) == (0, 0)


def test_ingest_empty_result_is_an_error(db_url, tmp_path):
    junk = tmp_path / "junk.txt"
    junk.write_text("no transactions in here\n", encoding="utf-8")
    result = _run(db_url, "ingest", str(junk))
    assert result.exit_code == 1
    assert "No transactions found" in result.output


def test_override_commands_persist(db_url, statement):
    _run(db_url, "ingest", str(statement))
    amazon = _tx_id(db_url, "AMAZON.COM*H83")

    result = _run(db_url, "override-category", amazon, "Electronics")
    assert result.exit_code == 0, result.output
    result = _run(db_url, "override-amount", amazon, "30.5")
    assert result.exit_code == 0, result.output

    listed = _run(db_url, "list").stdout
    row = next(line for line in listed.splitlines() if line.startswith(amazon))
    assert "\tElectronics\t30.50\t" in row


def test_override_category_on_income_fails(db_url, statement):
    _run(db_url, "ingest", str(statement))
    salary = _tx_id(db_url, "SALARY DEPOSIT")
    result = _run(db_url, "override-category", salary, "Groceries")
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_unknown_transaction_id(db_url):
    result = _run(db_url, "override-amount", "missing", "1.00")
    assert result.exit_code == 1
    assert "unknown transaction id" in result.output


def test_add_and_remove_batch(db_url):
    result = _run(
        db_url, "add", "--date", "12/15/2025", "--description", "Farmers market", "--amount", "18"
    )
    assert result.exit_code == 0, result.output
    assert count_rows(db_url) == (1, 1)

    with session_scope(database_url=db_url) as s:
        (batch,) = load_batches(s)
    assert batch.transactions[0].category == "Other"

    result = _run(db_url, "remove-batch", batch.id)
    assert result.exit_code == 0, result.output
    assert count_rows(db_url) == (0, 0)


def test_export_csv_and_report(db_url, statement, tmp_path):
    _run(db_url, "ingest", str(statement))

    out = tmp_path / "out.csv"
    result = _run(db_url, "export", "--period", "December 2025", "--output", str(out))
    assert result.exit_code == 0, result.output
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "Date,Description,Category,Amount,Type,Confidence"
    assert len(lines) == 1 + 7

    report = _run(db_url, "export", "--format", "report")
    assert report.exit_code == 0, report.output
    assert "Net Savings:    $2946.93" in report.stdout


def test_exported_csv_can_be_ingested_again(db_url, statement, tmp_path):
    _run(db_url, "ingest", str(statement))
    out = tmp_path / "export.csv"
    _run(db_url, "export", "--output", str(out))
    result = _run(db_url, "ingest", str(out))
    assert result.exit_code == 0, result.output
    assert count_rows(db_url) == (2, 20)


def test_bad_period_and_format(db_url):
    assert _run(db_url, "summary", "--period", "someday").exit_code == 1
    assert _run(db_url, "export", "--format", "pdf").exit_code == 1


def test_periods(db_url, statement):
    _run(db_url, "ingest", str(statement))
    result = _run(db_url, "periods")
    assert result.stdout.splitlines() == ["All\tAll", "2025-12\tDecember 2025", "2025-11\tNovember 2025"]


def test_review_updates_low_confidence_categories(db_url, statement, capsys):
    _run(db_url, "ingest", str(statement))
    with contextlib.ExitStack() as stack:
        pipe = stack.enter_context(create_pipe_input())
        sess = PromptSession(input=pipe, output=DummyOutput())
        # AMAZON.COM*H83 is the only Low-confidence expense in the statement
        pipe.send_text("\x01\x0bElectronics\r")
        assert cmd_review(database_url=db_url, session=sess) == 0

    assert "Updated 1 transaction(s)." in capsys.readouterr().out
    with session_scope(database_url=db_url) as s:
        (batch,) = load_batches(s)
    amazon = next(t for t in batch.transactions if t.description == "AMAZON.COM*H83")
    assert amazon.category == "Electronics"


def test_ingest_export_with_leading_blank_line(db_url, statement, tmp_path):
    _run(db_url, "ingest", str(statement))
    out = tmp_path / "export.csv"
    _run(db_url, "export", "--output", str(out))
    out.write_text("\n" + out.read_text(encoding="utf-8"), encoding="utf-8")

    result = _run(db_url, "ingest", str(out))
    assert result.exit_code == 0, result.output
    assert count_rows(db_url) == (2, 20)


def test_list_and_export_filter_by_category_and_type(db_url, statement, tmp_path):
    _run(db_url, "ingest", str(statement))

    dining = _run(db_url, "list", "--category", "dining out")
    assert dining.exit_code == 0, dining.output
    assert [line.split("\t")[2] for line in dining.stdout.splitlines()] == [
        "STARBUCKS 402",
        "DOORDASH*BURGERKING",
    ]

    transfers = _run(db_url, "list", "--type", "Transfer", "--period", "2025-11")
    assert [line.split("\t")[2] for line in transfers.stdout.splitlines()] == ["TRANSFER TO SAVINGS"]

    out = tmp_path / "income.csv"
    result = _run(db_url, "export", "--type", "income", "--output", str(out))
    assert result.exit_code == 0, result.output
    lines = out.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2 and "SALARY DEPOSIT" in lines[1]

    report = _run(db_url, "export", "--format", "report", "--category", "Groceries")
    assert "Total Expenses: $85.20" in report.stdout

    bad = _run(db_url, "list", "--type", "Purchase")
    assert bad.exit_code == 1
    assert "invalid type" in bad.output
