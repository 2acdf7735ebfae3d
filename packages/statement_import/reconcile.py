"""Resolve statement category aliases against the user's categories.

``reconcile`` is a pure read/derive step: it never writes to the store.
Persisting an operator's manual choice is the job of
:func:`statement_import.review.remember_alias`.

Matching rules
--------------
- Aliases are trimmed and compared case-sensitively.
- One mapping per distinct alias, in first-seen order across the input.
- Transactions without an alias (extraction failed) contribute no mapping.
- If several categories list the same alias, the first one in the order
  given (the store lists by ascending id) wins.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .logging_setup import get_logger
from .models import Category, CategoryMapping, ExtractedTransaction

logger = get_logger("statement_import.reconcile")


def distinct_aliases(transactions: Iterable[ExtractedTransaction]) -> list[str]:
    seen: dict[str, None] = {}
    for tx in transactions:
        alias = tx.fields.category_alias.strip()
        if alias:
            seen.setdefault(alias, None)
    return list(seen)


def reconcile(
    transactions: Sequence[ExtractedTransaction], categories: Sequence[Category]
) -> list[CategoryMapping]:
    """Return one :class:`CategoryMapping` per distinct alias in ``transactions``."""

    index: dict[str, int] = {}
    for cat in categories:
        for alias in cat.aliases:
            index.setdefault(alias.strip(), cat.id)

    mappings = [CategoryMapping(alias=a, category_id=index.get(a)) for a in distinct_aliases(transactions)]
    resolved = sum(1 for m in mappings if m.resolved)
    logger.info(
        "Reconciled %d alias(es): %d resolved, %d unresolved",
        len(mappings),
        resolved,
        len(mappings) - resolved,
    )
    return mappings


def assign_alias(
    mappings: Sequence[CategoryMapping], alias: str, category_id: int | None
) -> list[CategoryMapping]:
    """Return a copy of ``mappings`` with ``alias`` (re)assigned or cleared.

    Order is preserved. An alias not yet present is appended.
    """

    key = alias.strip()
    out: list[CategoryMapping] = []
    found = False
    for m in mappings:
        if m.alias == key:
            out.append(CategoryMapping(alias=key, category_id=category_id))
            found = True
        else:
            out.append(m)
    if not found:
        out.append(CategoryMapping(alias=key, category_id=category_id))
    return out


def mapping_lookup(mappings: Iterable[CategoryMapping]) -> dict[str, int | None]:
    return {m.alias: m.category_id for m in mappings}


def unresolved(mappings: Iterable[CategoryMapping]) -> list[CategoryMapping]:
    return [m for m in mappings if not m.resolved]


__all__ = [
    "assign_alias",
    "distinct_aliases",
    "mapping_lookup",
    "reconcile",
    "unresolved",
]
