"""Error taxonomy for the statement import pipeline.

Field- and transaction-level failures are *recorded* (on
``ExtractedTransaction.field_errors`` or as an ``Error`` status) and never
propagate past the component that observed them. Only
:class:`FatalParseError` and ``OSError`` from reading the source document
reach callers. Cancellation is a terminal run status, not an exception.
"""

from __future__ import annotations

DEFAULT_IMPORT_ERROR = "An error occurred while importing transaction."


class FieldExtractionError(Exception):
    """One field of one statement entry could not be extracted."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class FatalParseError(ValueError):
    """The whole document is unusable (unsupported file or no entries found)."""


class UnmappedCategoryError(LookupError):
    """A transaction's category alias has no resolved category."""

    def __init__(self, alias: str) -> None:
        super().__init__("category not mapped")
        self.alias = alias


class PersistenceError(RuntimeError):
    """The backing store rejected or failed a write."""


def error_message(error: BaseException | str | None, default: str = DEFAULT_IMPORT_ERROR) -> str:
    """Return a human-readable reason for ``error``, falling back to ``default``."""

    if isinstance(error, str):
        return error.strip() or default
    if error is not None:
        text = str(error).strip()
        if text:
            return text
    return default


__all__ = [
    "DEFAULT_IMPORT_ERROR",
    "FatalParseError",
    "FieldExtractionError",
    "PersistenceError",
    "UnmappedCategoryError",
    "error_message",
]
