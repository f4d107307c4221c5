import io
import logging

import pytest

from budget_ledger import logging_setup


@pytest.fixture
def log_stream(monkeypatch):
    """Give ``configure_logging`` a clean slate and capture what it writes."""

    logger = logging.getLogger("budget_ledger")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    stream = io.StringIO()
    monkeypatch.setattr(logging_setup, "_configured", False)
    monkeypatch.setattr(logging_setup, "_STREAM", stream)
    logger.handlers = []
    yield stream
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.mark.parametrize(
    ("level", "expected"),
    [
        ("debug", logging.DEBUG),
        (" Warning ", logging.WARNING),
        ("15", 15),
        (logging.ERROR, logging.ERROR),
        ("loud", logging.INFO),
    ],
)
def test_resolve_level(level, expected):
    assert logging_setup.resolve_level(level) == expected


def test_resolve_level_reads_env(monkeypatch):
    assert logging_setup.resolve_level() == logging.INFO
    monkeypatch.setenv("BUDGET_LEDGER_LOG_LEVEL", "error")
    assert logging_setup.resolve_level() == logging.ERROR


def test_configure_logging_attaches_one_handler_once(log_stream):
    logging_setup.configure_logging("WARNING")
    logging_setup.configure_logging("DEBUG")

    logger = logging.getLogger("budget_ledger")
    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING
    assert logger.propagate is False

    log = logging_setup.get_logger("budget_ledger.ledger")
    log.info("committed batch")
    log.warning("skipping line 3")
    out = log_stream.getvalue()
    assert "budget_ledger.ledger WARNING skipping line 3" in out
    assert "committed batch" not in out


def test_get_logger_is_silent_before_configuration(log_stream):
    logging_setup.get_logger("budget_ledger.export").warning("unseen")
    logger = logging.getLogger("budget_ledger")
    assert [type(h) for h in logger.handlers] == [logging.NullHandler]
    assert log_stream.getvalue() == ""
