"""In-memory ``FinanceStore`` double with failure injection."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from decimal import Decimal

from statement_import.categories import normalize_aliases
from statement_import.errors import PersistenceError
from statement_import.models import Category, Page, TransactionRecord, TransactionsQuery


class FakeStore:
    def __init__(self, categories: Sequence[Category] = ()) -> None:
        self.categories: list[Category] = list(categories)
        self.records: list[TransactionRecord] = []
        self.calls: list[str] = []
        # description -> exception raised by create_transaction
        self.failures: dict[str, BaseException] = {}
        self.before_create: Callable[[str], None] | None = None

    def list_categories(self) -> list[Category]:
        return sorted(self.categories, key=lambda c: c.id)

    def create_category(self, name, color_tag="gray", aliases=()) -> Category:
        cat = Category(
            id=max((c.id for c in self.categories), default=0) + 1,
            name=name,
            color_tag=color_tag,
            aliases=tuple(normalize_aliases(aliases)),
        )
        self.categories.append(cat)
        return cat

    def update_category(self, category_id, *, name=None, color_tag=None, aliases=None) -> Category:
        for i, c in enumerate(self.categories):
            if c.id == category_id:
                updated = c.model_copy(
                    update={
                        "name": name if name is not None else c.name,
                        "color_tag": color_tag if color_tag is not None else c.color_tag,
                        "aliases": tuple(normalize_aliases(aliases)) if aliases is not None else c.aliases,
                    }
                )
                self.categories[i] = updated
                return updated
        raise PersistenceError(f"Category {category_id} does not exist")

    def create_transaction(
        self, description: str, category_id: int, amount: Decimal, timestamp: datetime
    ) -> TransactionRecord:
        self.calls.append(description)
        if self.before_create is not None:
            self.before_create(description)
        if description in self.failures:
            raise self.failures[description]
        record = TransactionRecord(
            id=len(self.records) + 1,
            description=description,
            category_id=category_id,
            amount=amount,
            timestamp=timestamp,
        )
        self.records.append(record)
        return record

    def list_transactions(self, query: TransactionsQuery | None = None) -> Page[TransactionRecord]:
        q = query or TransactionsQuery()
        start = (q.page - 1) * q.take
        return Page[TransactionRecord](
            data=self.records[start : start + q.take], page=q.page, take=q.take, total=len(self.records)
        )
