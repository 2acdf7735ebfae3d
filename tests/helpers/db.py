"""DB helpers for tests: bootstrap a temporary SQLite DB and seed categories."""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from pathlib import Path

from db.client import init_schema, session_scope
from db.models.finance import FtCategory, FtTransaction
from sqlalchemy import func, select
from sqlalchemy import text as sql_text


def bootstrap_sqlite_db(db_file: Path, *, set_default_env: bool = False) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    init_schema(database_url=url)
    _assert_schema_in_sync(url)
    if set_default_env:
        os.environ.setdefault("DATABASE_URL", url)
    return url


def seed_categories(
    database_url: str, rows: Iterable[tuple[str, Sequence[str]]]
) -> list[int]:
    """Insert ``(name, aliases)`` rows directly, bypassing store validation.

    Returns the new ids in insertion order. Useful to set up states the store
    refuses to create (e.g. an alias shared by two categories).
    """

    ids: list[int] = []
    with session_scope(database_url=database_url) as session:
        for name, aliases in rows:
            row = FtCategory(name=name, aliases=list(aliases))
            session.add(row)
            session.flush()
            ids.append(row.id)
    return ids


def count_transactions(database_url: str) -> int:
    with session_scope(database_url=database_url) as session:
        return session.scalar(select(func.count()).select_from(FtTransaction)) or 0


def _assert_schema_in_sync(database_url: str) -> None:
    """Quick sanity check: ORM column sets match the SQLite tables."""

    for model in (FtCategory, FtTransaction):
        table = model.__tablename__
        expected = {c.name for c in model.__table__.columns}
        with session_scope(database_url=database_url) as session:
            rows = session.execute(sql_text(f"PRAGMA table_info('{table}')")).fetchall()
            got = {row[1] for row in rows}  # (cid, name, type, notnull, dflt_value, pk)
        assert got == expected, f"{table} schema drift: missing={expected - got}, extra={got - expected}"
