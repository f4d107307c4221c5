"""CLI for the ``budget_ledger`` package.

Command handlers (``cmd_*``) do the work and return a process exit status;
the Typer commands below only parse arguments and forward to them. A local
``.env`` is loaded with ``python-dotenv`` before any command runs, so
``BUDGET_LEDGER_*`` settings can live there.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo

from .aggregate import ALL_PERIODS, filter_period, filter_table, normalize_period, period_label
from .errors import LedgerError
from .export import render_report, to_csv
from .ingest import read_source
from .ledger import Ledger
from .logging_setup import configure_logging
from .models import ConfidenceLevel, Transaction, TransactionType
from .rules import rules_from_env


def _error(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _load_ledger(database_url: str | None) -> Ledger:
    """Rebuild the ledger from the database using the configured rule table."""

    from .db import session_scope
    from .persistence import load_batches

    rules = rules_from_env()
    with session_scope(database_url=database_url) as session:
        batches = load_batches(session)
    return Ledger(rules, batches=batches)


def _format_row(tx: Transaction) -> str:
    return "\t".join(
        [
            tx.id,
            tx.date,
            tx.description,
            tx.category or "-",
            f"{tx.amount:.2f}",
            tx.type.value,
            tx.status.value,
            tx.confidence.value,
        ]
    )


ALL_FILTER = "All"


# ---- Command handlers ---------------------------------------------------------


def cmd_ingest(paths: Sequence[Path], *, database_url: str | None = None) -> int:
    """Classify statement files as one batch and persist it."""

    from .db import session_scope
    from .persistence import save_batch

    try:
        sources = [read_source(p) for p in paths]
    except FileNotFoundError as e:
        return _error(f"File not found: {e.filename}")
    except OSError as e:
        return _error(f"Failed to read {e.filename}: {e.strerror}")

    try:
        ledger = _load_ledger(database_url)
        batch = ledger.submit(sources)
    except LedgerError as e:
        return _error(str(e))

    try:
        with session_scope(database_url=database_url) as session:
            save_batch(session, batch)
    except Exception as e:
        return _error(f"persistence failed: {e}")

    print(
        f"Batch {batch.id}: {len(batch.transactions)} transactions, "
        f"{len(batch.skipped)} skipped"
    )
    for s in batch.skipped:
        print(f"  skipped {s.source}:{s.line}: {s.reason} ({s.text})")
    return 0


def cmd_list(
    *,
    period: str = ALL_PERIODS,
    category: str = ALL_FILTER,
    type: str = ALL_FILTER,
    database_url: str | None = None,
) -> int:
    try:
        ledger = _load_ledger(database_url)
        view = filter_period(ledger.transactions, period)
        rows = filter_table(view.transactions, category=category, type=type)
    except (LedgerError, ValueError) as e:
        return _error(str(e))
    for tx in rows:
        print(_format_row(tx))
    if view.undated and normalize_period(period) != ALL_PERIODS:
        print(f"({len(view.undated)} transaction(s) with unparseable dates not shown)")
    return 0


def cmd_summary(*, period: str = ALL_PERIODS, database_url: str | None = None) -> int:
    try:
        ledger = _load_ledger(database_url)
        summary = ledger.summary(period)
    except (LedgerError, ValueError) as e:
        return _error(str(e))

    print(f"Period: {period_label(summary.period)}")
    print(f"Total Income:   {summary.total_income:.2f}")
    print(f"Total Expenses: {summary.total_expense:.2f}")
    print(f"Net Savings:    {summary.net:.2f}")
    print(f"{ledger.rules.fixed_category}: {summary.housing_total:.2f}")
    for item in summary.breakdown:
        print(f"  {item.category}: {item.amount:.2f}")
    print(f"Transactions: {summary.transaction_count}")
    if summary.undated and summary.period != ALL_PERIODS:
        print(f"({len(summary.undated)} transaction(s) with unparseable dates excluded)")
    return 0


def cmd_export(
    *,
    period: str = ALL_PERIODS,
    fmt: str = "csv",
    output: Path | None = None,
    category: str = ALL_FILTER,
    type: str = ALL_FILTER,
    database_url: str | None = None,
) -> int:
    """Write CSV or the text report; category/type filters apply to both."""

    if fmt not in {"csv", "report"}:
        return _error(f"unknown format {fmt!r} (expected csv or report)")
    try:
        ledger = _load_ledger(database_url)
        items = filter_table(ledger.transactions, category=category, type=type)
        if fmt == "csv":
            text = to_csv(filter_period(items, period).transactions)
        else:
            text = render_report(items, period)
    except (LedgerError, ValueError) as e:
        return _error(str(e))

    if output is None:
        sys.stdout.write(text)
        return 0
    try:
        output.write_text(text, encoding="utf-8")
    except OSError as e:
        return _error(f"failed to write {output}: {e}")
    print(f"Wrote {output}")
    return 0


def cmd_add(
    *,
    date: str,
    description: str,
    amount: str,
    type: str = TransactionType.EXPENSE.value,
    category: str | None = None,
    database_url: str | None = None,
) -> int:
    """Record a manual transaction."""

    from .db import session_scope
    from .persistence import save_batch

    try:
        ledger = _load_ledger(database_url)
        tx = ledger.add_manual(date, description, amount, type, category)
        with session_scope(database_url=database_url) as session:
            save_batch(session, ledger.batch(tx.batch_id))
    except (LedgerError, ValueError) as e:
        return _error(str(e))
    print(tx.id)
    return 0


def cmd_override_category(
    tx_id: str, category: str, *, database_url: str | None = None
) -> int:
    from .db import session_scope
    from .persistence import save_transaction

    try:
        ledger = _load_ledger(database_url)
        tx = ledger.override_category(tx_id, category)
        with session_scope(database_url=database_url) as session:
            save_transaction(session, tx)
    except LedgerError as e:
        return _error(str(e))
    print(_format_row(tx))
    return 0


def cmd_override_amount(tx_id: str, amount: str, *, database_url: str | None = None) -> int:
    from .db import session_scope
    from .persistence import save_transaction

    try:
        ledger = _load_ledger(database_url)
        tx = ledger.override_amount(tx_id, amount)
        with session_scope(database_url=database_url) as session:
            save_transaction(session, tx)
    except LedgerError as e:
        return _error(str(e))
    print(_format_row(tx))
    return 0


def cmd_remove_batch(batch_id: str, *, database_url: str | None = None) -> int:
    from .db import session_scope
    from .persistence import delete_batch

    try:
        ledger = _load_ledger(database_url)
        removed = ledger.remove_batch(batch_id)
        with session_scope(database_url=database_url) as session:
            delete_batch(session, batch_id)
    except LedgerError as e:
        return _error(str(e))
    print(f"Removed batch {removed.id} ({len(removed.transactions)} transactions)")
    return 0


def cmd_periods(*, database_url: str | None = None) -> int:
    try:
        ledger = _load_ledger(database_url)
    except LedgerError as e:
        return _error(str(e))
    for key in ledger.periods():
        print(f"{key}\t{period_label(key)}")
    return 0


def cmd_review(
    *,
    period: str = ALL_PERIODS,
    include_all: bool = False,
    database_url: str | None = None,
    session=None,
) -> int:
    """Walk Low-confidence expenses/refunds and confirm or change each category.

    With ``include_all`` every categorized transaction is reviewed. Ctrl-C or
    Ctrl-D stops the review; changes already confirmed are kept.
    """

    from .db import session_scope
    from .persistence import save_transaction
    from .term_ui import select_category

    try:
        ledger = _load_ledger(database_url)
        view = filter_period(ledger.transactions, period)
    except (LedgerError, ValueError) as e:
        return _error(str(e))

    candidates = [
        tx
        for tx in view.transactions
        if tx.category and (include_all or tx.confidence is ConfidenceLevel.LOW)
    ]
    if not candidates:
        print("Nothing to review.")
        return 0

    names = list(ledger.rules.category_names)
    changed = 0
    for i, tx in enumerate(candidates, start=1):
        print(
            f"[{i}/{len(candidates)}] {tx.date}  {tx.description}  "
            f"{tx.amount:.2f}  ({tx.type.value}, {tx.confidence.value})"
        )
        try:
            choice = select_category(names, default=tx.category, session=session)
        except (KeyboardInterrupt, EOFError):
            print("Review stopped.")
            break
        if choice == tx.category:
            continue
        try:
            updated = ledger.override_category(tx.id, choice)
            with session_scope(database_url=database_url) as db_session:
                save_transaction(db_session, updated)
        except LedgerError as e:
            return _error(str(e))
        changed += 1

    print(f"Updated {changed} transaction(s).")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Classify bank/card statements into a personal budget ledger. "
        "Loads BUDGET_LEDGER_* settings from a local .env before running."
    ),
)


# Module-level argument object to satisfy ruff B008 (no calls in parameter
# defaults).
FILES_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Statement files (.csv or .txt). Sizes are checked before anything runs.",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)


def _db(ctx: typer.Context) -> str | None:
    obj = ctx.obj or {}
    return obj.get("database_url")


def _finish(code: int) -> None:
    if code:
        raise typer.Exit(code)


@app.command("ingest")
def ingest_cmd(ctx: typer.Context, files: Annotated[list[Path], FILES_ARGUMENT]) -> None:
    """Classify files as one batch and save it (all or nothing)."""

    _finish(cmd_ingest(files, database_url=_db(ctx)))


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    period: str = typer.Option(ALL_PERIODS, help="'All', YYYY-MM or e.g. 'December 2025'."),
    category: str = typer.Option(ALL_FILTER, help="Only this category ('All' for any)."),
    type: str = typer.Option(ALL_FILTER, help="Expense, Income, Transfer, Refund or 'All'."),
) -> None:
    """Print transactions as tab-separated rows."""

    _finish(cmd_list(period=period, category=category, type=type, database_url=_db(ctx)))


@app.command("summary")
def summary_cmd(
    ctx: typer.Context,
    period: str = typer.Option(ALL_PERIODS, help="'All', YYYY-MM or e.g. 'December 2025'."),
) -> None:
    """Print income, expense and per-category totals."""

    _finish(cmd_summary(period=period, database_url=_db(ctx)))


@app.command("periods")
def periods_cmd(ctx: typer.Context) -> None:
    """List the months that have transactions, newest first."""

    _finish(cmd_periods(database_url=_db(ctx)))


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    period: str = typer.Option(ALL_PERIODS, help="'All', YYYY-MM or e.g. 'December 2025'."),
    fmt: str = typer.Option("csv", "--format", help="csv or report."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write to a file."),
    category: str = typer.Option(ALL_FILTER, help="Only this category ('All' for any)."),
    type: str = typer.Option(ALL_FILTER, help="Expense, Income, Transfer, Refund or 'All'."),
) -> None:
    """Export transactions as CSV or a plain-text report."""

    _finish(
        cmd_export(
            period=period,
            fmt=fmt,
            output=output,
            category=category,
            type=type,
            database_url=_db(ctx),
        )
    )


@app.command("add")
def add_cmd(
    ctx: typer.Context,
    date: str = typer.Option(..., help="Transaction date, e.g. 12/06/2025."),
    description: str = typer.Option(..., help="Description."),
    amount: str = typer.Option(..., help="Amount; the sign is ignored."),
    type: str = typer.Option(TransactionType.EXPENSE.value, help="Expense, Income, Transfer or Refund."),
    category: str | None = typer.Option(None, help="Category for Expense/Refund (default Other)."),
) -> None:
    """Add a manual transaction (always included, High confidence)."""

    _finish(
        cmd_add(
            date=date,
            description=description,
            amount=amount,
            type=type,
            category=category,
            database_url=_db(ctx),
        )
    )


@app.command("override-category")
def override_category_cmd(ctx: typer.Context, tx_id: str, category: str) -> None:
    """Change the category of an included expense or refund."""

    _finish(cmd_override_category(tx_id, category, database_url=_db(ctx)))


@app.command("override-amount")
def override_amount_cmd(ctx: typer.Context, tx_id: str, amount: str) -> None:
    """Correct the amount of a transaction."""

    _finish(cmd_override_amount(tx_id, amount, database_url=_db(ctx)))


@app.command("remove-batch")
def remove_batch_cmd(ctx: typer.Context, batch_id: str) -> None:
    """Delete a batch and every transaction it produced."""

    _finish(cmd_remove_batch(batch_id, database_url=_db(ctx)))


@app.command("review")
def review_cmd(
    ctx: typer.Context,
    period: str = typer.Option(ALL_PERIODS, help="'All', YYYY-MM or e.g. 'December 2025'."),
    include_all: bool = typer.Option(False, "--all", help="Review every categorized transaction."),
) -> None:
    """Interactively confirm categories of Low-confidence transactions."""

    _finish(cmd_review(period=period, include_all=include_all, database_url=_db(ctx)))


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    database_url: str | None = typer.Option(
        None, help="Override BUDGET_LEDGER_DATABASE_URL (default sqlite:///budget_ledger.db)."
    ),
    log_level: str | None = typer.Option(
        None, help="Override BUDGET_LEDGER_LOG_LEVEL (DEBUG, INFO, WARNING...)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging once.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)
    ctx.obj = {"database_url": database_url}

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
