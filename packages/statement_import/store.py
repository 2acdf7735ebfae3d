# ruff: noqa: I001
"""Persistence interface consumed by the import pipeline.

``FinanceStore`` is the narrow set of operations the reconciler, the import
run and the review flow need. ``SqlFinanceStore`` implements it on top of the
shared database owned by ``libs/db`` (SQLAlchemy ORM models in
``db.models.finance`` and sessions from ``db.client``).

Every call opens its own short transaction; a failed write is rolled back and
surfaces as :class:`~statement_import.errors.PersistenceError` so callers can
record it against the affected transaction and move on.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.client import session_scope
from db.models.finance import FtCategory, FtTransaction

from .categories import DEFAULT_COLOR_TAG, normalize_aliases, normalize_name, validate_name
from .errors import PersistenceError
from .logging_setup import get_logger
from .models import Category, Page, TransactionRecord, TransactionsQuery

logger = get_logger("statement_import.store")


class FinanceStore(Protocol):
    def list_categories(self) -> list[Category]: ...

    def create_category(
        self, name: str, color_tag: str = DEFAULT_COLOR_TAG, aliases: Sequence[str] = ()
    ) -> Category: ...

    def update_category(
        self,
        category_id: int,
        *,
        name: str | None = None,
        color_tag: str | None = None,
        aliases: Sequence[str] | None = None,
    ) -> Category: ...

    def create_transaction(
        self, description: str, category_id: int, amount: Decimal, timestamp: datetime
    ) -> TransactionRecord: ...

    def list_transactions(self, query: TransactionsQuery | None = None) -> Page[TransactionRecord]: ...


# ---------------------------
# Row → DTO mapping
# ---------------------------


def _category_from_row(row: FtCategory) -> Category:
    return Category(
        id=row.id,
        name=row.name,
        color_tag=row.color,
        aliases=tuple(row.aliases or ()),
    )


def _record_from_row(row: FtTransaction) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        description=row.description,
        category_id=row.category_id,
        amount=row.amount,
        timestamp=row.timestamp,
    )


def _to_decimal_2(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


_ORDER_COLUMNS = {
    "created_at": FtTransaction.created_at,
    "timestamp": FtTransaction.timestamp,
    "amount": FtTransaction.amount,
    "description": FtTransaction.description,
}


class SqlFinanceStore:
    """:class:`FinanceStore` backed by ``ft_categories`` / ``ft_transactions``.

    Parameters
    ----------
    database_url:
        Optional SQLAlchemy URL; defaults to ``DATABASE_URL`` from the
        environment (resolved lazily by ``db.client``).
    """

    def __init__(self, database_url: str | None = None) -> None:
        self._database_url = database_url

    # ---- categories -------------------------------------------------------

    def list_categories(self) -> list[Category]:
        try:
            with session_scope(database_url=self._database_url) as session:
                rows = session.scalars(select(FtCategory).order_by(FtCategory.id.asc())).all()
                return [_category_from_row(r) for r in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list categories: {e}") from e

    def create_category(
        self, name: str, color_tag: str = DEFAULT_COLOR_TAG, aliases: Sequence[str] = ()
    ) -> Category:
        clean_name = _checked_name(name)
        clean_aliases = normalize_aliases(aliases)
        try:
            with session_scope(database_url=self._database_url) as session:
                _assert_aliases_free(session, clean_aliases, owner_id=None)
                row = FtCategory(
                    name=clean_name,
                    color=(color_tag or DEFAULT_COLOR_TAG).strip() or DEFAULT_COLOR_TAG,
                    aliases=clean_aliases,
                )
                session.add(row)
                session.flush()
                created = _category_from_row(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create category {clean_name!r}: {e}") from e
        logger.info("Created category %s (id=%s) with aliases %s", created.name, created.id, list(created.aliases))
        return created

    def update_category(
        self,
        category_id: int,
        *,
        name: str | None = None,
        color_tag: str | None = None,
        aliases: Sequence[str] | None = None,
    ) -> Category:
        try:
            with session_scope(database_url=self._database_url) as session:
                row = session.get(FtCategory, category_id)
                if row is None:
                    raise PersistenceError(f"Category {category_id} does not exist")
                if name is not None:
                    row.name = _checked_name(name)
                if color_tag is not None and color_tag.strip():
                    row.color = color_tag.strip()
                if aliases is not None:
                    clean_aliases = normalize_aliases(aliases)
                    _assert_aliases_free(session, clean_aliases, owner_id=category_id)
                    # Assign a new list so the JSON column is flagged dirty.
                    row.aliases = list(clean_aliases)
                row.updated_at = datetime.now(UTC)
                session.flush()
                updated = _category_from_row(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update category {category_id}: {e}") from e
        logger.debug("Updated category %s", category_id)
        return updated

    # ---- transactions -----------------------------------------------------

    def create_transaction(
        self, description: str, category_id: int, amount: Decimal, timestamp: datetime
    ) -> TransactionRecord:
        try:
            with session_scope(database_url=self._database_url) as session:
                if session.get(FtCategory, category_id) is None:
                    raise PersistenceError(f"Category {category_id} does not exist")
                row = FtTransaction(
                    description=description,
                    category_id=category_id,
                    amount=_to_decimal_2(amount),
                    timestamp=timestamp,
                )
                session.add(row)
                session.flush()
                return _record_from_row(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create transaction: {e}") from e

    def list_transactions(self, query: TransactionsQuery | None = None) -> Page[TransactionRecord]:
        q = query or TransactionsQuery()
        stmt = select(FtTransaction)
        count_stmt = select(func.count()).select_from(FtTransaction)
        if q.filter:
            pattern = f"%{q.filter}%"
            stmt = stmt.where(FtTransaction.description.ilike(pattern))
            count_stmt = count_stmt.where(FtTransaction.description.ilike(pattern))
        col = _ORDER_COLUMNS[q.order_by]
        order = col.asc() if q.order_direction == "asc" else col.desc()
        # Secondary key keeps paging stable when the primary column ties.
        tiebreak = FtTransaction.id.asc() if q.order_direction == "asc" else FtTransaction.id.desc()
        stmt = stmt.order_by(order, tiebreak).offset((q.page - 1) * q.take).limit(q.take)
        try:
            with session_scope(database_url=self._database_url) as session:
                total = session.scalar(count_stmt) or 0
                rows = session.scalars(stmt).all()
                data = [_record_from_row(r) for r in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list transactions: {e}") from e
        return Page[TransactionRecord](data=data, page=q.page, take=q.take, total=total)


def _checked_name(name: str) -> str:
    v = validate_name(name)
    if not v.ok:
        raise ValueError(v.reason or "Invalid name")
    return normalize_name(name)


def _assert_aliases_free(session: Session, aliases: Iterable[str], *, owner_id: int | None) -> None:
    """Raise ``ValueError`` when any alias already belongs to another category."""

    wanted = set(aliases)
    if not wanted:
        return
    for row in session.scalars(select(FtCategory).order_by(FtCategory.id.asc())):
        if owner_id is not None and row.id == owner_id:
            continue
        clash = wanted.intersection(row.aliases or ())
        if clash:
            raise ValueError(
                f"Alias {sorted(clash)[0]!r} already belongs to category {row.name!r}"
            )


__all__ = ["FinanceStore", "SqlFinanceStore"]
