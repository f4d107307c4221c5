"""Terminal category selector (prompt_toolkit-based).

Kept apart from the ledger so it can be driven in tests with a pipe input.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.filters import Condition
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator


class _PrefixSuggest(AutoSuggest):
    def __init__(self, vocab: Sequence[str]) -> None:
        self._vocab = list(vocab)

    def get_suggestion(self, buffer, document):
        text = document.text
        if not text:
            return None
        lower = text.lower()
        for w in self._vocab:
            if w.lower() == lower:
                return None
        for w in self._vocab:
            if w.lower().startswith(lower):
                remainder = w[len(text) :]
                return Suggestion(remainder) if remainder else None
        return None


class _KnownCategory(Validator):
    def __init__(self, allowed_lower: set[str]) -> None:
        self._allowed_lower = allowed_lower

    def validate(self, document) -> None:
        text = document.text.strip().lower()
        if text and text not in self._allowed_lower:
            raise ValidationError(message="Pick a category from the list.")


def select_category(
    categories: Sequence[str] | Iterable[str],
    *,
    default: str,
    message: str = "Category (Enter to accept): ",
    session: PromptSession | None = None,
) -> str:
    """Prompt for one of ``categories`` with ``default`` pre-filled.

    Typing a prefix shows the completion inline; Tab or Enter accepts it. Tab
    or Down on an empty buffer opens the menu. The returned value is always
    the canonical spelling from ``categories``; empty input returns
    ``default``.
    """

    words = list(categories)
    canonical = {w.lower(): w for w in words}

    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=False)
    auto_suggest = _PrefixSuggest(words)

    kb = KeyBindings()
    _menu_opened = False
    _menu_index = 0
    # First printable keystroke replaces the pre-filled default.
    replace_mode = bool(default)

    def _best_prefix_match(text: str) -> str | None:
        if not text:
            return None
        lower = text.lower()
        for w in words:
            wl = w.lower()
            if wl == lower:
                return None
            if wl.startswith(lower):
                return w
        return None

    def _open_or_advance(b) -> None:
        nonlocal _menu_opened, _menu_index
        if b.complete_state is None:
            b.start_completion(select_first=True)
            _menu_index = 0
        else:
            b.complete_next()
            _menu_index += 1
        _menu_opened = True

    @kb.add("down", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        nonlocal replace_mode
        replace_mode = False
        _open_or_advance(event.app.current_buffer)

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        replace_mode = False
        b = event.app.current_buffer
        suggestion_text = getattr(getattr(b, "suggestion", None), "text", None)
        if not suggestion_text:
            cand = _best_prefix_match(b.document.text)
            if cand:
                suggestion_text = cand[len(b.document.text) :]
        if suggestion_text:
            b.insert_text(suggestion_text)
        else:
            _open_or_advance(b)

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
            b.validate_and_handle()
            return
        suggestion_text = getattr(getattr(b, "suggestion", None), "text", None)
        if not suggestion_text:
            cand = _best_prefix_match(b.document.text)
            if cand:
                suggestion_text = cand[len(b.document.text) :]
        if suggestion_text:
            b.insert_text(suggestion_text)
        elif _menu_opened and not b.document.text and words:
            b.insert_text(words[max(0, min(_menu_index, len(words) - 1))])
        b.validate_and_handle()

    @kb.add("backspace", eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        event.app.current_buffer.delete_before_cursor(1)
        replace_mode = False

    for key in ("left", "right", "home", "end", "c-a", "c-e"):

        @kb.add(key, eager=True)
        def _(event, _key=key) -> None:  # pragma: no cover
            nonlocal replace_mode
            replace_mode = False
            b = event.app.current_buffer
            if _key in ("left",):
                b.cursor_left(1)
            elif _key in ("right",):
                b.cursor_right(1)
            elif _key in ("home", "c-a"):
                b.cursor_home()
            else:
                b.cursor_end()

    @kb.add(Keys.Any, filter=Condition(lambda: replace_mode), eager=True)
    def _(event) -> None:  # pragma: no cover
        nonlocal replace_mode
        data = getattr(event, "data", "") or ""
        if not data or not data.isprintable():
            return
        b = event.app.current_buffer
        if data != " ":
            b.delete_before_cursor(len(b.document.text_before_cursor))
            b.delete(len(b.document.text_after_cursor))
        b.insert_text(data)
        replace_mode = False

    if session is None:
        sess: PromptSession = PromptSession(key_bindings=kb)
    else:
        sess = PromptSession(
            input=getattr(session, "input", None),
            output=getattr(session, "output", None),
            key_bindings=kb,
        )

    prompt_kwargs: dict[str, Any] = {
        "message": message,
        "completer": completer,
        "default": default or "",
        "key_bindings": kb,
        "auto_suggest": auto_suggest,
        "validator": _KnownCategory(set(canonical)),
        "validate_while_typing": False,
        "style": Style.from_dict({"auto-suggestion": "fg:#888888"}),
    }
    result = sess.prompt(**prompt_kwargs).strip()
    if not result:
        return default
    return canonical.get(result.lower(), result)


__all__ = ["select_category"]
