from decimal import Decimal

import pytest

from budget_ledger.db import session_scope
from budget_ledger.errors import UnknownBatchError, UnknownTransactionError
from budget_ledger.ingest import SourceFile
from budget_ledger.ledger import Ledger
from budget_ledger.persistence import delete_batch, load_batches, save_batch, save_transaction
from tests.helpers.db import bootstrap_sqlite_db, count_rows


@pytest.fixture
def db_url(tmp_path) -> str:
    return bootstrap_sqlite_db(tmp_path / "db" / "ledger.sqlite")


def test_save_and_load_round_trip(db_url, demo_statement):
    ledger = Ledger()
    batch = ledger.submit([SourceFile("demo.txt", demo_statement + "12/07/2025 NO AMOUNT\n")])
    with session_scope(database_url=db_url) as s:
        save_batch(s, batch)

    with session_scope(database_url=db_url) as s:
        (loaded,) = load_batches(s)
    assert loaded.id == batch.id
    assert loaded.sources == batch.sources
    assert loaded.transactions == batch.transactions
    assert loaded.skipped == batch.skipped
    assert loaded.created_at == batch.created_at
    assert count_rows(db_url) == (1, 10)


def test_loaded_batches_rebuild_the_ledger(db_url, demo_statement):
    first = Ledger().submit([SourceFile("demo.txt", demo_statement)])
    with session_scope(database_url=db_url) as s:
        save_batch(s, first)
    with session_scope(database_url=db_url) as s:
        rebuilt = Ledger(batches=load_batches(s))
    assert rebuilt.summary().total_income == Decimal("3200.00")


def test_save_transaction_persists_patches(db_url, demo_statement):
    ledger = Ledger()
    batch = ledger.submit([SourceFile("demo.txt", demo_statement)])
    with session_scope(database_url=db_url) as s:
        save_batch(s, batch)

    amazon = next(t for t in ledger.transactions if t.description == "AMAZON.COM*H83")
    ledger.override_category(amazon.id, "Electronics")
    updated = ledger.override_amount(amazon.id, "30")
    with session_scope(database_url=db_url) as s:
        save_transaction(s, updated)

    with session_scope(database_url=db_url) as s:
        (loaded,) = load_batches(s)
    stored = next(t for t in loaded.transactions if t.id == amazon.id)
    assert (stored.category, stored.amount) == ("Electronics", Decimal("30.00"))


def test_delete_batch_cascades(db_url, demo_statement):
    ledger = Ledger()
    keep = ledger.submit([SourceFile("a.txt", demo_statement)])
    drop = ledger.submit([SourceFile("b.txt", "12/20/2025 UNIQLO -40.00\n")])
    with session_scope(database_url=db_url) as s:
        save_batch(s, keep)
        save_batch(s, drop)
    assert count_rows(db_url) == (2, 11)

    with session_scope(database_url=db_url) as s:
        delete_batch(s, drop.id)
    assert count_rows(db_url) == (1, 10)


def test_failed_write_rolls_back(db_url, demo_statement):
    batch = Ledger().submit([SourceFile("demo.txt", demo_statement)])
    with pytest.raises(RuntimeError):
        with session_scope(database_url=db_url) as s:
            save_batch(s, batch)
            raise RuntimeError("boom")
    assert count_rows(db_url) == (0, 0)


def test_unknown_rows(db_url, demo_statement):
    ledger = Ledger()
    ledger.submit([SourceFile("demo.txt", demo_statement)])
    with pytest.raises(UnknownBatchError):
        with session_scope(database_url=db_url) as s:
            delete_batch(s, "missing")
    with pytest.raises(UnknownTransactionError):
        with session_scope(database_url=db_url) as s:
            save_transaction(s, ledger.transactions[0])
