"""Post-import remediation and operator-approved category writes.

Two stages of the import flow need the operator:

1. Before the batch, aliases the reconciler could not resolve are mapped by
   hand (:func:`review_unresolved_aliases`). Choices may be remembered on the
   category (:func:`remember_alias`) or turned into a new category
   (:func:`create_category_for_alias`).
2. After the batch has reached a terminal state, every transaction left in
   ``Error`` is either resolved with an explicit category or skipped
   (:class:`ReviewSession`, driven interactively by
   :func:`review_failed_transactions`).

A skipped transaction moves to ``Skipped``; import runs only visit ``Idle``
transactions, so it is never retried automatically.
"""

from __future__ import annotations

from typing import TypeAlias

import builtins
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from decimal import Decimal

from .categories import DEFAULT_COLOR_TAG, normalize_alias
from .errors import DEFAULT_IMPORT_ERROR, FieldExtractionError, PersistenceError, error_message
from .ingest.adapters.vb_html import parse_amount
from .logging_setup import get_logger
from .models import (
    FIELD_AMOUNT,
    FIELD_DESCRIPTION,
    FIELD_TIMESTAMP,
    Category,
    CategoryMapping,
    Done,
    Error,
    ExtractedTransaction,
    ImportProgress,
    ReviewInput,
    Skipped,
    index_by_id,
)
from .reconcile import assign_alias
from .store import FinanceStore
from .term_ui import (
    CategoryChoice,
    CreateCategoryRequest,
    prompt_new_category_name,
    prompt_text,
    select_category_or_create,
)

logger = get_logger("statement_import.review")

Selector: TypeAlias = Callable[[Sequence[str], str], CategoryChoice]
NamePrompt: TypeAlias = Callable[[str], str | None]
FieldPrompt: TypeAlias = Callable[[str], str | None]
Confirm: TypeAlias = Callable[[str], bool]


# ----------------------------------------------------------------------------
# Operator-approved category writes
# ----------------------------------------------------------------------------


def remember_alias(store: FinanceStore, category: Category, alias: str) -> Category:
    """Append ``alias`` to ``category`` in the store (no-op when already present)."""

    a = normalize_alias(alias)
    if not a or a in category.aliases:
        return category
    updated = store.update_category(category.id, aliases=[*category.aliases, a])
    logger.info("Remembered alias %r for category %s", a, category.name)
    return updated


def create_category_for_alias(
    store: FinanceStore, name: str, color_tag: str = DEFAULT_COLOR_TAG, alias: str = ""
) -> Category:
    """Create a category whose alias list holds ``alias``."""

    a = normalize_alias(alias)
    return store.create_category(name, color_tag, [a] if a else [])


# ----------------------------------------------------------------------------
# Review session (post-batch)
# ----------------------------------------------------------------------------


class ReviewSession:
    """Resolve or skip the transactions an import run left in ``Error``.

    Parameters
    ----------
    store:
        Persistence backend used for the direct ``create_transaction`` calls.
    transactions:
        The same transaction objects the run processed.
    progress:
        The run's final snapshot; the session refuses to start before the run
        has reached ``cancelled`` or ``completed``.
    """

    def __init__(
        self,
        store: FinanceStore,
        transactions: Sequence[ExtractedTransaction],
        progress: ImportProgress,
    ) -> None:
        if not progress.status.terminal:
            raise RuntimeError(
                f"Review requires a finished import run (status is {progress.status.value!r})"
            )
        self._store = store
        self._transactions = list(transactions)
        self._by_id = index_by_id(self._transactions)

    def pending(self) -> list[ExtractedTransaction]:
        return [tx for tx in self._transactions if isinstance(tx.status, Error)]

    def current(self) -> ExtractedTransaction | None:
        for tx in self._transactions:
            if isinstance(tx.status, Error):
                return tx
        return None

    @property
    def is_complete(self) -> bool:
        return self.current() is None

    def _pending_tx(self, tx_id: str) -> ExtractedTransaction:
        tx = self._by_id.get(tx_id)
        if tx is None:
            raise KeyError(tx_id)
        if not isinstance(tx.status, Error):
            raise ValueError(f"Transaction {tx_id} is not awaiting review")
        return tx

    def resolve(
        self,
        tx_id: str,
        category_id: int,
        *,
        description: str | None = None,
        amount: Decimal | None = None,
        timestamp: datetime | None = None,
        remember: bool = False,
    ) -> ExtractedTransaction:
        """Persist ``tx_id`` under ``category_id``, optionally overriding fields.

        Values not overridden are taken from the extracted fields, except those
        whose extraction failed, which must then be supplied. Invalid input
        raises ``pydantic.ValidationError`` and leaves the transaction as is. A
        store failure keeps it in ``Error`` with the new reason.

        With ``remember`` the transaction's alias is also appended to the
        chosen category; a failure there is logged and the import stands.
        """

        tx = self._pending_tx(tx_id)
        failed = tx.field_errors
        form = ReviewInput(
            description=(
                description
                if description is not None
                else ("" if FIELD_DESCRIPTION in failed else tx.fields.description)
            ),
            category_id=category_id,
            amount=amount if amount is not None else (None if FIELD_AMOUNT in failed else tx.fields.amount),
            timestamp=(
                timestamp
                if timestamp is not None
                else (None if FIELD_TIMESTAMP in failed else tx.fields.timestamp)
            ),
        )
        try:
            record = self._store.create_transaction(
                form.description, form.category_id, form.amount, form.timestamp
            )
        except Exception as e:  # recorded on the transaction, like the batch does
            tx.status = Error(error_message(e, DEFAULT_IMPORT_ERROR))
            logger.warning("Review of %s failed: %s", tx.id, tx.status.reason)
            return tx
        tx.status = Done(record)
        logger.info("Resolved %s into category %s (record %s)", tx.id, category_id, record.id)

        alias = tx.fields.category_alias
        if remember and alias:
            try:
                category = next((c for c in self._store.list_categories() if c.id == category_id), None)
                if category is not None:
                    remember_alias(self._store, category, alias)
            except (ValueError, PersistenceError) as e:
                logger.warning("Could not remember alias %r: %s", alias, e)
        return tx

    def skip(self, tx_id: str) -> ExtractedTransaction:
        tx = self._pending_tx(tx_id)
        tx.status = Skipped()
        logger.info("Skipped %s", tx.id)
        return tx


# ----------------------------------------------------------------------------
# Interactive flows
# ----------------------------------------------------------------------------


def _default_selector(options: Sequence[str], default: str) -> CategoryChoice:
    return select_category_or_create(options, default=default)


def _default_name_prompt(initial: str) -> str | None:
    return prompt_new_category_name(initial=initial)


def _choose_category(
    store: FinanceStore,
    *,
    categories: list[Category],
    default: str,
    alias: str,
    selector: Selector,
    name_prompt: NamePrompt,
    print_fn: Callable[..., None],
) -> tuple[Category | None, bool]:
    """Loop until the operator picks, creates or skips.

    Returns ``(category, created)``; ``category`` is ``None`` on skip.
    """

    while True:
        by_name = {c.name: c for c in categories}
        choice = selector(sorted(by_name), default)
        if choice is None:
            return None, False
        if isinstance(choice, CreateCategoryRequest):
            name = name_prompt(choice.name or alias)
            if name is None:
                continue
            try:
                created = create_category_for_alias(store, name, DEFAULT_COLOR_TAG, alias)
            except (ValueError, PersistenceError) as e:
                print_fn(str(e))
                continue
            categories.append(created)
            print_fn(f"Created '{created.name}'. Selected.")
            return created, True
        if choice in by_name:
            return by_name[choice], False
        print_fn("Invalid category. Enter one of: " + ", ".join(sorted(by_name)))


def review_unresolved_aliases(
    store: FinanceStore,
    mappings: Sequence[CategoryMapping],
    *,
    selector: Selector | None = None,
    name_prompt: NamePrompt | None = None,
    confirm_fn: Confirm | None = None,
    print_fn: Callable[..., None] = builtins.print,
) -> list[CategoryMapping]:
    """Ask the operator to map every unresolved alias; return the edited mappings.

    For each alias the operator may select an existing category, create a new
    one (which then owns the alias), or skip (the alias stays unmapped and its
    transactions fail the batch, ready for review). When ``confirm_fn`` is
    given and returns ``True``, a selected existing category also remembers
    the alias for future imports.
    """

    result = list(mappings)
    pending = [m for m in result if not m.resolved]
    if not pending:
        return result
    categories = store.list_categories()
    select = selector or _default_selector
    ask_name = name_prompt or _default_name_prompt
    for m in pending:
        print_fn(f"Statement category '{m.alias}' is not mapped.")
        category, created = _choose_category(
            store,
            categories=categories,
            default="",
            alias=m.alias,
            selector=select,
            name_prompt=ask_name,
            print_fn=print_fn,
        )
        if category is None:
            logger.info("Alias %r left unmapped", m.alias)
            continue
        result = assign_alias(result, m.alias, category.id)
        if not created and confirm_fn is not None and confirm_fn(
            f"Remember '{m.alias}' as an alias of '{category.name}'?"
        ):
            try:
                updated = remember_alias(store, category, m.alias)
            except (ValueError, PersistenceError) as e:
                print_fn(str(e))
            else:
                categories = [updated if c.id == updated.id else c for c in categories]
        logger.info("Alias %r mapped to category %s", m.alias, category.id)
    return result


def _default_field_prompt(label: str) -> str | None:
    return prompt_text(f"{label}: ")


_FIELD_LABELS = {
    FIELD_DESCRIPTION: "Description",
    FIELD_AMOUNT: "Amount (e.g. -1,200.50)",
    FIELD_TIMESTAMP: "Date and time (YYYY-MM-DD HH:MM)",
}


def _parse_field(name: str, raw: str) -> str | Decimal | datetime:
    if name == FIELD_AMOUNT:
        return parse_amount(raw)
    if name == FIELD_TIMESTAMP:
        try:
            return datetime.fromisoformat(raw.strip())
        except ValueError:
            raise FieldExtractionError(FIELD_TIMESTAMP, "Invalid date") from None
    if not raw.strip():
        raise FieldExtractionError(name, "Description cannot be empty")
    return raw.strip()


def _collect_missing_fields(
    tx: ExtractedTransaction, ask: FieldPrompt, print_fn: Callable[..., None]
) -> dict[str, object] | None:
    """Re-enter every field that failed extraction; ``None`` when cancelled."""

    overrides: dict[str, object] = {}
    for name, label in _FIELD_LABELS.items():
        if name not in tx.field_errors:
            continue
        while True:
            raw = ask(label)
            if raw is None:
                return None
            try:
                overrides[name] = _parse_field(name, raw)
            except FieldExtractionError as e:
                print_fn(f"  {e.message}")
                continue
            break
    return overrides


def _fmt_tx(tx: ExtractedTransaction) -> str:
    f = tx.fields
    when = f.timestamp.strftime("%Y-%m-%d %H:%M") if f.timestamp else "?"
    return f"{when}  {f.amount:>12}  {f.description or '?'}  [{f.category_alias or '-'}]"


def review_failed_transactions(
    session: ReviewSession,
    store: FinanceStore,
    *,
    selector: Selector | None = None,
    name_prompt: NamePrompt | None = None,
    field_prompt: FieldPrompt | None = None,
    print_fn: Callable[..., None] = builtins.print,
) -> int:
    """Walk the session's ``Error`` transactions; return how many were resolved.

    Each transaction first has any field that failed extraction re-entered
    (cancelling that prompt skips the transaction), then gets a category
    prompt (select, create, or skip).
    """

    categories = store.list_categories()
    select = selector or _default_selector
    ask_name = name_prompt or _default_name_prompt
    ask_field = field_prompt or _default_field_prompt
    resolved = 0
    # Snapshot first: resolving or skipping mutates the pending set.
    for tx in list(session.pending()):
        assert isinstance(tx.status, Error)
        print_fn(_fmt_tx(tx))
        print_fn(f"  reason: {tx.status.reason}")
        overrides = _collect_missing_fields(tx, ask_field, print_fn)
        if overrides is None:
            session.skip(tx.id)
            continue
        category, _created = _choose_category(
            store,
            categories=categories,
            default="",
            alias=tx.fields.category_alias,
            selector=select,
            name_prompt=ask_name,
            print_fn=print_fn,
        )
        if category is None:
            session.skip(tx.id)
            continue
        session.resolve(tx.id, category.id, **overrides)
        if isinstance(tx.status, Done):
            resolved += 1
        else:
            print_fn(f"  failed: {tx.status.reason}")
    return resolved


def resolve_all(
    session: ReviewSession, choices: Iterable[tuple[str, int | None]]
) -> list[ExtractedTransaction]:
    """Apply ``(tx_id, category_id | None)`` decisions; ``None`` skips."""

    out: list[ExtractedTransaction] = []
    for tx_id, category_id in choices:
        if category_id is None:
            out.append(session.skip(tx_id))
        else:
            out.append(session.resolve(tx_id, category_id))
    return out


__all__ = [
    "ReviewSession",
    "create_category_for_alias",
    "remember_alias",
    "resolve_all",
    "review_failed_transactions",
    "review_unresolved_aliases",
]
