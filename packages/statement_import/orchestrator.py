"""Sequential, cancellable batch import of extracted transactions.

An :class:`ImportRun` walks the transactions in order and writes each one
through a :class:`~statement_import.store.FinanceStore`, one call at a time.
Per-item failures are recorded as an ``Error`` status and counted; they never
stop the loop. Only :meth:`ImportRun.cancel` does, and only between items:
a write already in flight is allowed to finish.

Run lifecycle: ``idle -> running -> cancelled | completed``. A run is
single-use; retrying means building a new run over the same transactions,
which then only visits those still ``Idle``.

Progress is delivered two ways: :meth:`ImportRun.iter_progress` yields an
:class:`~statement_import.models.ImportProgress` snapshot after every state
change, and the optional ``on_progress`` callback receives the same
snapshots. :meth:`ImportRun.run` simply drains the stream.
"""

from __future__ import annotations

from typing import TypeAlias

import threading
from collections import Counter
from collections.abc import Callable, Iterable, Iterator, Sequence

from .errors import DEFAULT_IMPORT_ERROR, UnmappedCategoryError, error_message
from .logging_setup import get_logger
from .models import (
    CategoryMapping,
    Done,
    Error,
    ExtractedTransaction,
    Idle,
    ImportProgress,
    Loading,
    RunStatus,
    index_by_id,
    status_label,
)
from .reconcile import mapping_lookup
from .store import FinanceStore

logger = get_logger("statement_import.orchestrator")

ProgressCallback: TypeAlias = Callable[[ImportProgress], None]


class CancellationToken:
    """Cooperative cancellation flag, safe to set from another thread or a signal handler."""

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ImportRun:
    """One batch import over ``transactions`` using ``mapping``.

    Parameters
    ----------
    store:
        Persistence backend; only ``create_transaction`` is called.
    transactions:
        Transactions to import, in the order they should be written. Their
        ``status`` is mutated in place. Only those ``Idle`` when the run is
        created count towards ``total``; the rest are left untouched.
    mapping:
        Alias resolutions from :func:`statement_import.reconcile.reconcile`
        (possibly edited by the operator).
    on_progress:
        Optional callback invoked with every progress snapshot.
    token:
        Optional externally owned cancellation token.
    """

    def __init__(
        self,
        store: FinanceStore,
        transactions: Sequence[ExtractedTransaction],
        mapping: Iterable[CategoryMapping],
        *,
        on_progress: ProgressCallback | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        index_by_id(transactions)
        self._store = store
        self._transactions = list(transactions)
        self._lookup = mapping_lookup(mapping)
        self._on_progress = on_progress
        self._token = token or CancellationToken()
        self._started = False
        eligible = sum(1 for tx in self._transactions if isinstance(tx.status, Idle))
        self._progress = ImportProgress(status=RunStatus.IDLE, total=eligible)

    @property
    def progress(self) -> ImportProgress:
        return self._progress

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def transactions(self) -> list[ExtractedTransaction]:
        return list(self._transactions)

    def cancel(self) -> None:
        """Request cancellation; observed before the next transaction is visited."""

        if not self._progress.status.terminal:
            logger.info("Cancellation requested")
        self._token.cancel()

    def _emit(self, progress: ImportProgress) -> ImportProgress:
        self._progress = progress
        if self._on_progress is not None:
            self._on_progress(progress)
        return progress

    def _import_one(self, tx: ExtractedTransaction) -> bool:
        """Process one ``Idle`` transaction; return ``True`` when it was imported."""

        tx.status = Loading()
        alias = tx.fields.category_alias.strip()
        category_id = self._lookup.get(alias)
        if category_id is None:
            tx.status = Error(error_message(UnmappedCategoryError(alias)))
            logger.warning("Transaction %s not imported: alias %r is not mapped", tx.id, alias)
            return False
        if tx.has_field_errors or tx.fields.timestamp is None:
            reason = tx.field_error_summary() or "timestamp: Time not found"
            tx.status = Error(reason)
            logger.warning("Transaction %s not imported: %s", tx.id, reason)
            return False
        try:
            record = self._store.create_transaction(
                tx.fields.description,
                category_id,
                tx.fields.amount,
                tx.fields.timestamp,
            )
        except Exception as e:  # failure isolation: record and continue
            reason = error_message(e, DEFAULT_IMPORT_ERROR)
            tx.status = Error(reason)
            logger.warning("Transaction %s failed to import: %s", tx.id, reason)
            return False
        tx.status = Done(record)
        return True

    def iter_progress(self) -> Iterator[ImportProgress]:
        """Execute the run, yielding a snapshot after every state change."""

        if self._started:
            raise RuntimeError("ImportRun is single-use; create a new run to retry")
        self._started = True

        logger.info("Import started: %d transaction(s) to process", self._progress.total)
        yield self._emit(self._progress.with_status(RunStatus.RUNNING))

        for tx in self._transactions:
            if self._token.cancelled:
                break
            if not isinstance(tx.status, Idle):
                logger.debug("Skipping transaction %s in status %s", tx.id, status_label(tx.status))
                continue
            if self._import_one(tx):
                yield self._emit(self._progress.advance(imported=1))
            else:
                yield self._emit(self._progress.advance(failed=1))

        final = RunStatus.CANCELLED if self._token.cancelled else RunStatus.COMPLETED
        done = self._emit(self._progress.with_status(final))
        logger.info(
            "Import %s: %d imported, %d failed, %d not processed (of %d)",
            final.value,
            done.imported,
            done.failed,
            done.total - done.processed,
            done.total,
        )
        yield done

    def run(self) -> ImportProgress:
        """Execute the run to its terminal state and return the final snapshot."""

        for _ in self.iter_progress():
            pass
        return self._progress


def start_import(
    store: FinanceStore,
    transactions: Sequence[ExtractedTransaction],
    mapping: Iterable[CategoryMapping],
    *,
    on_progress: ProgressCallback | None = None,
    token: CancellationToken | None = None,
) -> ImportRun:
    """Create an :class:`ImportRun`; iterate ``iter_progress()`` or call ``run()`` to execute it."""

    return ImportRun(store, transactions, mapping, on_progress=on_progress, token=token)


def status_counts(transactions: Iterable[ExtractedTransaction]) -> Counter[str]:
    """Count transactions by status label (``idle``, ``done``, ``error`` ...)."""

    return Counter(status_label(tx.status) for tx in transactions)


__all__ = [
    "CancellationToken",
    "ImportRun",
    "ProgressCallback",
    "start_import",
    "status_counts",
]
