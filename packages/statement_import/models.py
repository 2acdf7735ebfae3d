"""Data model for the statement import pipeline.

Two families of types live here:

- In-process pipeline state as ``dataclass`` values: the per-transaction
  status variants, :class:`ExtractedTransaction`, :class:`CategoryMapping` and
  :class:`ImportProgress`. Status is a closed union of small variant classes
  (``Idle | Loading | Done | Skipped | Error``); consumers dispatch with
  ``match`` rather than comparing strings.
- Validated DTOs exchanged with the persistence layer as pydantic models:
  :class:`Category`, :class:`TransactionRecord`, :class:`ReviewInput`,
  :class:`TransactionsQuery` and :class:`Page`.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Generic, Literal, TypeAlias, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Per-transaction status (closed union)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Idle:
    """Not yet visited by an import run."""


@dataclass(frozen=True, slots=True)
class Loading:
    """A persistence call for this transaction is in flight."""


@dataclass(frozen=True, slots=True)
class Done:
    """Persisted; ``record`` is what the store returned."""

    record: TransactionRecord


@dataclass(frozen=True, slots=True)
class Skipped:
    """The operator declined to import this transaction. Terminal."""


@dataclass(frozen=True, slots=True)
class Error:
    """The transaction could not be imported; ``reason`` is operator-facing."""

    reason: str


TransactionStatus: TypeAlias = Idle | Loading | Done | Skipped | Error


def status_label(status: TransactionStatus) -> str:
    match status:
        case Idle():
            return "idle"
        case Loading():
            return "loading"
        case Done():
            return "done"
        case Skipped():
            return "skipped"
        case Error():
            return "error"


# ---------------------------------------------------------------------------
# Extracted transactions
# ---------------------------------------------------------------------------

FIELD_DESCRIPTION = "description"
FIELD_CATEGORY = "category_alias"
FIELD_AMOUNT = "amount"
FIELD_TIMESTAMP = "timestamp"

FieldName: TypeAlias = Literal["description", "category_alias", "amount", "timestamp"]


@dataclass(frozen=True, slots=True)
class TransactionFields:
    """Values extracted from one statement entry.

    A field whose extraction failed keeps its empty value (``""``,
    ``Decimal(0)`` or ``None``) and has a matching entry in
    ``ExtractedTransaction.field_errors``; a zero ``amount`` is therefore only
    meaningful when ``"amount"`` is absent from that mapping.
    """

    description: str = ""
    category_alias: str = ""
    amount: Decimal = Decimal(0)
    timestamp: datetime | None = None


@dataclass(slots=True)
class ExtractedTransaction:
    """One financial operation found in a statement, prior to persistence.

    ``id`` is unique within a parse run and is the only key downstream
    components use to address a transaction. ``status`` is owned by the import
    run while it is active and by the review session afterwards.
    """

    id: str
    fields: TransactionFields
    field_errors: dict[str, str] = field(default_factory=dict)
    status: TransactionStatus = field(default_factory=Idle)

    @property
    def has_field_errors(self) -> bool:
        return bool(self.field_errors)

    def field_error_summary(self) -> str:
        return "; ".join(f"{name}: {reason}" for name, reason in self.field_errors.items())


def new_transaction_id(used: Collection[str] = ()) -> str:
    """Return a short random id not present in ``used``."""

    while True:
        candidate = uuid4().hex[:12]
        if candidate not in used:
            return candidate


def index_by_id(transactions: Sequence[ExtractedTransaction]) -> dict[str, ExtractedTransaction]:
    by_id: dict[str, ExtractedTransaction] = {}
    for tx in transactions:
        if tx.id in by_id:
            raise ValueError(f"Duplicate transaction id: {tx.id!r}")
        by_id[tx.id] = tx
    return by_id


# ---------------------------------------------------------------------------
# Category reconciliation
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategoryMapping:
    """Resolution of one statement alias to an optional category id."""

    alias: str
    category_id: int | None = None

    @property
    def resolved(self) -> bool:
        return self.category_id is not None


# ---------------------------------------------------------------------------
# Import progress
# ---------------------------------------------------------------------------


class RunStatus(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def terminal(self) -> bool:
        return self in (RunStatus.CANCELLED, RunStatus.COMPLETED)


@dataclass(frozen=True, slots=True)
class ImportProgress:
    """Immutable snapshot of one import run's aggregate state."""

    status: RunStatus = RunStatus.IDLE
    total: int = 0
    imported: int = 0
    failed: int = 0

    def __post_init__(self) -> None:
        for name in ("total", "imported", "failed"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"ImportProgress.{name} must be a non-negative integer")
        if self.imported + self.failed > self.total:
            raise ValueError("ImportProgress: imported + failed exceeds total")

    @property
    def processed(self) -> int:
        return self.imported + self.failed

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 0
        return round(self.processed * 100 / self.total)

    def advance(self, *, imported: int = 0, failed: int = 0) -> ImportProgress:
        return replace(self, imported=self.imported + imported, failed=self.failed + failed)

    def with_status(self, status: RunStatus) -> ImportProgress:
        return replace(self, status=status)


# ---------------------------------------------------------------------------
# DTOs for the persistence interface
# ---------------------------------------------------------------------------


class Category(BaseModel):
    """A user category as read from the store."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: int
    name: str
    color_tag: str
    aliases: tuple[str, ...] = ()

    @field_validator("aliases", mode="before")
    @classmethod
    def _strip_aliases(cls, v: Sequence[str] | None) -> tuple[str, ...]:
        if v is None:
            return ()
        return tuple(s.strip() for s in v if isinstance(s, str) and s.strip())


class TransactionRecord(BaseModel):
    """A persisted transaction as returned by ``create_transaction``."""

    model_config = ConfigDict(frozen=True)

    id: int
    description: str
    category_id: int
    amount: Decimal
    timestamp: datetime


class ReviewInput(BaseModel):
    """Operator-confirmed values for a transaction resolved during review."""

    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(min_length=1)
    category_id: int
    amount: Decimal = Field(allow_inf_nan=False)
    timestamp: datetime


OrderBy = Literal["created_at", "timestamp", "amount", "description"]

T = TypeVar("T")


class TransactionsQuery(BaseModel):
    """Filter/sort/page parameters for listing stored transactions."""

    model_config = ConfigDict(str_strip_whitespace=True)

    filter: str | None = None
    page: int = Field(default=1, ge=1)
    take: int = Field(default=10, ge=1, le=500)
    order_by: OrderBy = "created_at"
    order_direction: Literal["asc", "desc"] = "desc"


class Page(BaseModel, Generic[T]):
    data: list[T]
    page: int
    take: int
    total: int


__all__ = [
    "Category",
    "CategoryMapping",
    "Done",
    "Error",
    "ExtractedTransaction",
    "FIELD_AMOUNT",
    "FIELD_CATEGORY",
    "FIELD_DESCRIPTION",
    "FIELD_TIMESTAMP",
    "FieldName",
    "Idle",
    "ImportProgress",
    "Loading",
    "OrderBy",
    "Page",
    "ReviewInput",
    "RunStatus",
    "Skipped",
    "TransactionFields",
    "TransactionRecord",
    "TransactionStatus",
    "TransactionsQuery",
    "index_by_id",
    "new_transaction_id",
    "status_label",
]
