"""Tiny terminal UI helpers (prompt_toolkit-based).

Small, focused prompts used by the interactive review flows. They are kept
apart from the pipeline logic so they can be tested in isolation with a pipe
input and a dummy output.
"""

from __future__ import annotations

from typing import TypeAlias

from collections.abc import Iterable, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator

from .categories import validate_name as _validate_name

# ----------------------------------------------------------------------------
# Category selector with create / skip affordances
# ----------------------------------------------------------------------------

CREATE_SENTINEL = "+ Create new category..."
SKIP_SENTINEL = "- Skip"


class CreateCategoryRequest:
    """Return type for the creation flow: carries the typed candidate name."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:  # pragma: no cover - trivial repr
        return f"CreateCategoryRequest(name={self.name!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, CreateCategoryRequest) and other.name == self.name

    def __hash__(self) -> int:
        return hash(("create", self.name))


CategoryChoice: TypeAlias = str | CreateCategoryRequest | None


def _session_for(session: PromptSession | None, kb: KeyBindings) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


class _PrefixSuggest(AutoSuggest):
    def __init__(self, vocab: Sequence[str], allow_create: bool) -> None:
        self._vocab = list(vocab)
        self._allow_create = allow_create

    def get_suggestion(self, buffer, document):
        text = document.text
        if not text:
            return None
        lower = text.lower()
        if any(w.lower() == lower for w in self._vocab):
            return None
        for w in self._vocab:
            if w.lower().startswith(lower):
                return Suggestion(w[len(text) :]) if len(w) > len(text) else None
        if self._allow_create:
            return Suggestion(f"  [Create '{text}'?]")
        return None


def select_category_or_create(
    categories: Sequence[str] | Iterable[str],
    *,
    default: str = "",
    message: str = "Category (Enter to accept, Tab to complete): ",
    session: PromptSession | None = None,
    allow_create: bool = True,
    allow_skip: bool = True,
) -> CategoryChoice:
    """Prompt for a category name.

    Returns the chosen existing name (canonical casing), a
    ``CreateCategoryRequest`` when the operator typed an unknown name or picked
    the create option, or ``None`` when they chose to skip.
    """

    names = list(categories)
    canonical = {n.lower(): n for n in names}
    words = list(names)
    if allow_create:
        words.append(CREATE_SENTINEL)
    if allow_skip:
        words.append(SKIP_SENTINEL)

    def _best_prefix_match(text: str) -> str | None:
        if not text:
            return None
        lower = text.lower()
        for w in names:
            if w.lower() == lower:
                return None
            if w.lower().startswith(lower):
                return w
        return None

    kb = KeyBindings()

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        b = event.app.current_buffer
        cand = _best_prefix_match(b.document.text)
        if cand:
            b.insert_text(cand[len(b.document.text) :])
        elif b.complete_state is None:
            b.start_completion(select_first=True)
        else:
            b.complete_next()

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            cand = _best_prefix_match(b.document.text)
            if cand:
                b.insert_text(cand[len(b.document.text) :])
        b.validate_and_handle()

    sess = _session_for(session, kb)
    result = sess.prompt(
        message,
        completer=WordCompleter(words, ignore_case=True, match_middle=True, sentence=True),
        default=default,
        key_bindings=kb,
        auto_suggest=_PrefixSuggest(names, allow_create),
        style=Style.from_dict({"auto-suggestion": "fg:#888888"}),
    ).strip()

    if not result:
        result = default.strip()
    if allow_skip and (result == SKIP_SENTINEL or not result):
        return None
    if result.lower() in canonical:
        return canonical[result.lower()]
    if allow_create:
        return CreateCategoryRequest("" if result == CREATE_SENTINEL else result)
    # Unknown names are re-prompted by callers; hand back the raw text.
    return result


def prompt_new_category_name(
    *,
    initial: str = "",
    session: PromptSession | None = None,
    message: str = "New category name (Enter to save, Esc or Ctrl+C to cancel): ",
) -> str | None:
    """Collect a new category name with inline validation.

    Returns the entered name, or ``None`` when canceled via Esc or Ctrl+C.
    """

    kb = KeyBindings()

    @kb.add("escape", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    @kb.add("c-c", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    class _NameValidator(Validator):
        def validate(self, document) -> None:
            v = _validate_name(document.text)
            if not v.ok:
                raise ValidationError(message=v.reason or "Invalid name")

    sess = _session_for(session, kb)
    name = sess.prompt(
        message,
        default=initial,
        validator=_NameValidator(),
        validate_while_typing=False,
        key_bindings=kb,
    )
    return name.strip() if name is not None else None


def prompt_text(
    message: str,
    *,
    initial: str = "",
    session: PromptSession | None = None,
) -> str | None:
    """Free-text prompt; Esc or Ctrl+C cancels and returns ``None``."""

    kb = KeyBindings()

    @kb.add("escape", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    @kb.add("c-c", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    sess = _session_for(session, kb)
    text = sess.prompt(message, default=initial, key_bindings=kb)
    return text.strip() if text is not None else None


def confirm(
    message: str,
    *,
    default: bool = False,
    session: PromptSession | None = None,
) -> bool:
    """Yes/no prompt; empty input returns ``default``."""

    suffix = " [Y/n]: " if default else " [y/N]: "
    sess = _session_for(session, KeyBindings())
    answer = sess.prompt(message + suffix).strip().lower()
    if not answer:
        return default
    return answer in {"y", "yes"}


__all__ = [
    "CREATE_SENTINEL",
    "CategoryChoice",
    "CreateCategoryRequest",
    "SKIP_SENTINEL",
    "confirm",
    "prompt_new_category_name",
    "prompt_text",
    "select_category_or_create",
]
