from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from tests.helpers.db import count_transactions

ALEMBIC_DIR = Path(__file__).resolve().parents[1] / "libs" / "db" / "alembic"


def _config() -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    return cfg


def test_upgrade_head_creates_tables_matching_orm(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    url = f"sqlite+pysqlite:///{tmp_path / 'migrated.db'}"
    monkeypatch.setenv("DATABASE_URL", url)

    command.upgrade(_config(), "head")

    engine = create_engine(url)
    try:
        insp = inspect(engine)
        assert {"ft_categories", "ft_transactions"} <= set(insp.get_table_names())
        cols = {c["name"] for c in insp.get_columns("ft_transactions")}
        assert cols == {"id", "description", "amount", "timestamp", "category_id", "created_at"}
    finally:
        engine.dispose()
    assert count_transactions(url) == 0


def test_downgrade_base_drops_tables(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    url = f"sqlite+pysqlite:///{tmp_path / 'roundtrip.db'}"
    monkeypatch.setenv("DATABASE_URL", url)

    command.upgrade(_config(), "head")
    command.downgrade(_config(), "base")

    engine = create_engine(url)
    try:
        assert "ft_transactions" not in inspect(engine).get_table_names()
    finally:
        engine.dispose()
