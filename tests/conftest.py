"""Pytest configuration for test isolation.

The workspace packages are importable without installation: ``packages/``
and ``libs/db/src`` are put on ``sys.path`` ahead of the repo root (which
keeps ``tests.helpers`` importable).

``db.client`` keeps one process-wide engine bound to a single URL, so an
autouse fixture disposes it around every test; store-backed tests each get
their own file-backed SQLite database under ``tmp_path``.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
# `packages/` precedes the repo root so local packages resolve first.
_PATHS = [str(_ROOT / "packages"), str(_ROOT / "libs" / "db" / "src"), str(_ROOT)]
sys.path[:0] = [p for p in _PATHS if p not in sys.path]

from db.client import reset_engine  # noqa: E402
from statement_import.logging_setup import reset_logging  # noqa: E402
from statement_import.store import SqlFinanceStore  # noqa: E402

from tests.helpers.db import bootstrap_sqlite_db  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_engine(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Give every test a fresh engine and no ambient ``DATABASE_URL``."""

    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("STATEMENT_IMPORT_LOG_LEVEL", raising=False)
    monkeypatch.delenv("STATEMENT_IMPORT_MAX_FILE_MB", raising=False)
    reset_engine()
    yield
    reset_engine()
    reset_logging()


@pytest.fixture()
def sqlite_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "ft.sqlite3")


@pytest.fixture()
def sql_store(sqlite_url: str) -> SqlFinanceStore:
    return SqlFinanceStore(sqlite_url)
