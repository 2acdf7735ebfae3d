"""Ingest utilities shared by the CLI and library callers.

Exposes the registry of supported bank exports and two entry points:

- ``parse(document, bank)``: run the bank's adapter over an in-memory
  document and return the extracted transactions.
- ``load_statement(path, bank)``: validate a statement file (extension and
  size) before reading it as UTF-8 and delegating to :func:`parse`.

Both raise :class:`~statement_import.errors.FatalParseError` when the whole
document is unusable; per-entry problems are recorded on the transactions.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from datetime import tzinfo
from os import PathLike
from pathlib import Path

from ..errors import FatalParseError
from ..logging_setup import get_logger
from ..models import ExtractedTransaction
from .adapters.vb_html import VictoriabankHtmlParser

logger = get_logger("statement_import.ingest.utils")

_MAX_FILE_MB_ENV = "STATEMENT_IMPORT_MAX_FILE_MB"
NO_TRANSACTIONS_MESSAGE = "No transactions found in the file."


@dataclass(frozen=True, slots=True)
class BankOption:
    key: str
    label: str
    extensions: tuple[str, ...]
    max_size_mb: float
    parser_factory: Callable[..., VictoriabankHtmlParser]


BANK_OPTIONS: dict[str, BankOption] = {
    "vb": BankOption(
        key="vb",
        label="Victoriabank",
        extensions=(".html", ".htm"),
        max_size_mb=5,
        parser_factory=VictoriabankHtmlParser,
    ),
}


def get_bank(bank: str) -> BankOption:
    option = BANK_OPTIONS.get(bank.strip().lower())
    if option is None:
        supported = ", ".join(sorted(BANK_OPTIONS))
        raise FatalParseError(f"Unsupported bank {bank!r}; supported: {supported}")
    return option


def _max_size_bytes(option: BankOption) -> int:
    raw = os.getenv(_MAX_FILE_MB_ENV)
    mb = option.max_size_mb
    if raw:
        try:
            mb = float(raw)
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", _MAX_FILE_MB_ENV, raw)
    return int(mb * 1024 * 1024)


def validate_statement_file(path: str | PathLike[str], bank: str = "vb") -> Path:
    """Check extension and size of a statement file; return it as a ``Path``.

    ``OSError`` from ``stat`` (missing file, permissions) propagates as-is.
    """

    option = get_bank(bank)
    p = Path(path)
    if p.suffix.lower() not in option.extensions:
        raise FatalParseError(
            f"Invalid file type {p.suffix or '<none>'!r} for {option.label}; "
            f"expected one of: {', '.join(option.extensions)}"
        )
    size = p.stat().st_size
    limit = _max_size_bytes(option)
    if size > limit:
        raise FatalParseError(
            f"File is too large ({size} bytes); {option.label} statements are limited to "
            f"{limit // (1024 * 1024)} MB"
        )
    return p


def parse(
    document: str, bank: str = "vb", *, tz: tzinfo | None = None
) -> list[ExtractedTransaction]:
    """Extract transactions from ``document`` with the adapter for ``bank``."""

    option = get_bank(bank)
    transactions = option.parser_factory(tz=tz).parse(document)
    if not transactions:
        raise FatalParseError(NO_TRANSACTIONS_MESSAGE)
    with_errors = sum(1 for tx in transactions if tx.has_field_errors)
    logger.info(
        "Parsed %d transaction(s) from %s statement (%d with field errors)",
        len(transactions),
        option.label,
        with_errors,
    )
    return transactions


def load_statement(
    path: str | PathLike[str], bank: str = "vb", *, tz: tzinfo | None = None
) -> list[ExtractedTransaction]:
    """Validate, read and parse a statement file."""

    p = validate_statement_file(path, bank)
    try:
        document = p.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise FatalParseError(f"File is not UTF-8 text: {p.name}") from e
    return parse(document, bank, tz=tz)


__all__ = [
    "BANK_OPTIONS",
    "BankOption",
    "NO_TRANSACTIONS_MESSAGE",
    "get_bank",
    "load_statement",
    "parse",
    "validate_statement_file",
]
