# ruff: noqa: I001
"""CLI for the ``statement_import`` package.

This module exposes callable command handlers (``cmd_import``, ``cmd_parse``
...) and a Typer-based console interface (``statement-import``). Environment
variables (notably ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before delegating to command logic. Pipeline logic lives in
the ``ingest``, ``reconcile``, ``orchestrator`` and ``review`` modules.
"""

from __future__ import annotations

import builtins
import signal
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .errors import FatalParseError, PersistenceError
from .ingest.utils import load_statement
from .logging_setup import configure_logging
from .models import Error, ImportProgress, RunStatus, TransactionsQuery
from .orchestrator import ImportRun, start_import, status_counts
from .reconcile import reconcile, unresolved
from .review import (
    Confirm,
    FieldPrompt,
    NamePrompt,
    ReviewSession,
    Selector,
    review_failed_transactions,
    review_unresolved_aliases,
)
from .store import FinanceStore, SqlFinanceStore
from .term_ui import confirm


def _err(msg: str) -> None:
    print(f"Error: {msg}", file=sys.stderr)


@contextmanager
def _sigint_cancels(run: ImportRun) -> Iterator[None]:
    """Map Ctrl-C to cooperative cancellation while ``run`` executes."""

    def _handler(_signum, _frame) -> None:  # pragma: no cover - signal path
        run.cancel()

    try:
        previous = signal.signal(signal.SIGINT, _handler)
    except ValueError:  # not in the main thread; leave default handling
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _default_confirm(message: str) -> bool:
    return confirm(message)


def _fmt_progress(p: ImportProgress) -> str:
    return f"[{p.processed}/{p.total}] {p.percentage:3d}%  imported={p.imported} failed={p.failed}"


# ---- Command handlers --------------------------------------------------------


def cmd_parse(
    file: str | Path,
    *,
    bank: str = "vb",
    print_fn: Callable[..., None] = builtins.print,
) -> int:
    """Print the transactions extracted from ``file`` (no store access)."""

    try:
        transactions = load_statement(file, bank)
    except (FatalParseError, OSError) as e:
        _err(str(e))
        return 1
    for tx in transactions:
        f = tx.fields
        when = f.timestamp.isoformat(sep=" ") if f.timestamp else "-"
        print_fn(f"{tx.id}\t{when}\t{f.amount}\t{f.category_alias or '-'}\t{f.description}")
        for name, reason in tx.field_errors.items():
            print_fn(f"\t! {name}: {reason}")
    print_fn(f"{len(transactions)} transaction(s)")
    return 0


def cmd_import(
    file: str | Path,
    *,
    bank: str = "vb",
    database_url: str | None = None,
    assume_yes: bool = False,
    store: FinanceStore | None = None,
    selector: Selector | None = None,
    name_prompt: NamePrompt | None = None,
    confirm_fn: Confirm | None = None,
    field_prompt: FieldPrompt | None = None,
    print_fn: Callable[..., None] = builtins.print,
) -> int:
    """Run the whole pipeline for one statement file.

    Steps: parse, reconcile against the stored categories, ask the operator
    to map unresolved aliases, import with Ctrl-C mapped to cancellation, then
    review the failed transactions. With ``assume_yes`` no prompt is shown:
    unresolved aliases stay unmapped and failures are only reported.
    """

    try:
        transactions = load_statement(file, bank)
    except (FatalParseError, OSError) as e:
        _err(str(e))
        return 1

    backend = store or SqlFinanceStore(database_url)
    try:
        categories = backend.list_categories()
    except PersistenceError as e:
        _err(str(e))
        return 1

    mapping = reconcile(transactions, categories)
    missing = unresolved(mapping)
    print_fn(
        f"Found {len(transactions)} transaction(s); "
        f"{len(mapping) - len(missing)} of {len(mapping)} categories matched."
    )
    if missing and not assume_yes:
        try:
            mapping = review_unresolved_aliases(
                backend,
                mapping,
                selector=selector,
                name_prompt=name_prompt,
                confirm_fn=confirm_fn or _default_confirm,
                print_fn=print_fn,
            )
        except PersistenceError as e:
            _err(str(e))
            return 1

    run = start_import(backend, transactions, mapping, on_progress=lambda p: print_fn(_fmt_progress(p)))
    with _sigint_cancels(run):
        final = run.run()

    counts = status_counts(transactions)
    label = "cancelled" if final.status is RunStatus.CANCELLED else "completed"
    print_fn(
        f"Import {label}: {counts['done']} imported, {counts['error']} failed, "
        f"{counts['idle']} not processed."
    )
    for tx in transactions:
        if isinstance(tx.status, Error):
            print_fn(f"  {tx.id}: {tx.status.reason}")

    if assume_yes or not counts["error"]:
        return 0

    session = ReviewSession(backend, transactions, final)
    try:
        resolved = review_failed_transactions(
            session,
            backend,
            selector=selector,
            name_prompt=name_prompt,
            field_prompt=field_prompt,
            print_fn=print_fn,
        )
    except PersistenceError as e:
        _err(f"Review stopped: {e}")
        return 1
    left = sum(1 for tx in transactions if isinstance(tx.status, Error))
    print_fn(f"Review finished: {resolved} resolved, {left} still failing.")
    return 0


def cmd_categories(
    *,
    database_url: str | None = None,
    store: FinanceStore | None = None,
    print_fn: Callable[..., None] = builtins.print,
) -> int:
    backend = store or SqlFinanceStore(database_url)
    try:
        categories = backend.list_categories()
    except PersistenceError as e:
        _err(str(e))
        return 1
    for c in categories:
        aliases = ", ".join(c.aliases) if c.aliases else "-"
        print_fn(f"{c.id}\t{c.name}\t[{c.color_tag}]\t{aliases}")
    return 0


def cmd_transactions(
    query: TransactionsQuery,
    *,
    database_url: str | None = None,
    store: FinanceStore | None = None,
    print_fn: Callable[..., None] = builtins.print,
) -> int:
    backend = store or SqlFinanceStore(database_url)
    try:
        page = backend.list_transactions(query)
    except PersistenceError as e:
        _err(str(e))
        return 1
    for r in page.data:
        print_fn(f"{r.id}\t{r.timestamp.isoformat(sep=' ')}\t{r.amount}\t{r.category_id}\t{r.description}")
    pages = max(1, -(-page.total // page.take))
    print_fn(f"page {page.page}/{pages} ({page.total} total)")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank statements into the finance database. "
        "Loads DATABASE_URL from a local .env before running."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
FILE_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--file",
    help="Path to the bank statement export",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports a friendly error
)
BANK_OPTION: OptionInfo = typer.Option("--bank", help="Bank key (vb: Victoriabank HTML).")
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    "--database-url", help="Override DATABASE_URL (falls back to env var)."
)


@app.command("import")
def import_cmd(
    file: Annotated[Path, FILE_OPTION],
    bank: Annotated[str, BANK_OPTION] = "vb",
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Do not prompt; unmapped categories stay unmapped."
    ),
) -> None:
    """Parse, map categories, import and review one statement."""

    raise typer.Exit(cmd_import(file, bank=bank, database_url=database_url, assume_yes=yes))


@app.command("parse")
def parse_cmd(
    file: Annotated[Path, FILE_OPTION],
    bank: Annotated[str, BANK_OPTION] = "vb",
) -> None:
    """Show the transactions a statement yields, with per-field errors."""

    raise typer.Exit(cmd_parse(file, bank=bank))


@app.command("categories")
def categories_cmd(
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """List categories and their statement aliases."""

    raise typer.Exit(cmd_categories(database_url=database_url))


@app.command("transactions")
def transactions_cmd(
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    filter_text: str | None = typer.Option(None, "--filter", help="Description substring."),
    page: int = typer.Option(1, "--page", min=1),
    take: int = typer.Option(10, "--take", min=1, max=500),
    order_by: str = typer.Option(
        "created_at", "--order-by", help="created_at, timestamp, amount or description."
    ),
    descending: bool = typer.Option(True, "--desc/--asc"),
) -> None:
    """List stored transactions."""

    try:
        query = TransactionsQuery(
            filter=filter_text,
            page=page,
            take=take,
            order_by=order_by,
            order_direction="desc" if descending else "asc",
        )
    except ValueError as e:
        _err(str(e))
        raise typer.Exit(2) from e
    raise typer.Exit(cmd_transactions(query, database_url=database_url))


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and configure logging."""

    # override=False keeps already-set environment variables
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()


__all__ = ["app", "cmd_categories", "cmd_import", "cmd_parse", "cmd_transactions"]
