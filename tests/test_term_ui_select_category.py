import contextlib

from prompt_toolkit import PromptSession
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

from budget_ledger.rules import DEFAULT_RULES
from budget_ledger.term_ui import select_category

CATEGORIES = list(DEFAULT_RULES.category_names)


@contextlib.contextmanager
def pipe_session():
    with create_pipe_input() as pipe:
        sess = PromptSession(input=pipe, output=DummyOutput())
        yield pipe, sess


def test_select_category_accepts_default_with_enter():
    # Default predicted category is pre-filled; pressing Enter accepts it.
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        assert select_category(CATEGORIES, default="Groceries", session=sess) == "Groceries"


def test_select_category_change_by_typing_full_name():
    # Ctrl-A (home), Ctrl-K (kill to end), type full target, Enter
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bTravel\r")
        assert select_category(CATEGORIES, default="Groceries", session=sess) == "Travel"


def test_first_keystroke_replaces_the_default():
    with pipe_session() as (pipe, sess):
        pipe.send_text("Health\r")
        assert select_category(CATEGORIES, default="Other", session=sess) == "Health"


def test_tab_on_empty_buffer_opens_menu_and_enter_accepts_first():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0b")
        pipe.send_text("\t\r")
        assert select_category(CATEGORIES, default="Other", session=sess) == "Baby"


def test_inline_suggestion_tab_autocompletes_prefix():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bGro\t\r")
        assert select_category(CATEGORIES, default="Other", session=sess) == "Groceries"


def test_enter_commits_prefix_completion_case_insensitively():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bdin\r")
        assert select_category(CATEGORIES, default="Other", session=sess) == "Dining Out"


def test_exact_lowercase_name_returns_canonical_spelling():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bhome & kitchen\r")
        assert select_category(CATEGORIES, default="Other", session=sess) == "Home & Kitchen"
