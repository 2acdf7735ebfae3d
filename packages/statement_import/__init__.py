"""Public interface for the ``statement_import`` package.

Bank-statement import pipeline: parse an export into extracted transactions,
reconcile their category aliases against the user's categories, import them
in a cancellable batch, and review whatever failed. There is no runtime logic
here, only symbol re-exports.
"""

from .errors import (
    FatalParseError,
    FieldExtractionError,
    PersistenceError,
    UnmappedCategoryError,
)
from .ingest.utils import BANK_OPTIONS, load_statement, parse
from .models import (
    Category,
    CategoryMapping,
    Done,
    Error,
    ExtractedTransaction,
    Idle,
    ImportProgress,
    Loading,
    RunStatus,
    Skipped,
    TransactionFields,
    TransactionRecord,
    TransactionStatus,
)
from .orchestrator import CancellationToken, ImportRun, start_import
from .reconcile import assign_alias, reconcile
from .review import ReviewSession, create_category_for_alias, remember_alias
from .store import FinanceStore, SqlFinanceStore

__all__ = [
    # Pipeline
    "parse",
    "load_statement",
    "reconcile",
    "assign_alias",
    "start_import",
    "ImportRun",
    "CancellationToken",
    "ReviewSession",
    "remember_alias",
    "create_category_for_alias",
    "BANK_OPTIONS",
    # Persistence
    "FinanceStore",
    "SqlFinanceStore",
    # Models
    "Category",
    "CategoryMapping",
    "ExtractedTransaction",
    "TransactionFields",
    "TransactionRecord",
    "TransactionStatus",
    "Idle",
    "Loading",
    "Done",
    "Skipped",
    "Error",
    "ImportProgress",
    "RunStatus",
    # Errors
    "FatalParseError",
    "FieldExtractionError",
    "PersistenceError",
    "UnmappedCategoryError",
]
