from pathlib import Path

import pytest
from statement_import.errors import FatalParseError
from statement_import.ingest.utils import (
    NO_TRANSACTIONS_MESSAGE,
    get_bank,
    load_statement,
    parse,
    validate_statement_file,
)

from tests.helpers.statements import example_statement, statement


def _write(tmp_path: Path, name: str, content: str | bytes) -> Path:
    p = tmp_path / name
    if isinstance(content, bytes):
        p.write_bytes(content)
    else:
        p.write_text(content, encoding="utf-8")
    return p


def test_load_statement_reads_and_parses(tmp_path: Path):
    p = _write(tmp_path, "statement.HTML", example_statement())

    txs = load_statement(p)

    assert [t.fields.description for t in txs] == ["Salary", "Taxi", "Linella"]


def test_wrong_extension_is_rejected(tmp_path: Path):
    p = _write(tmp_path, "statement.csv", example_statement())
    with pytest.raises(FatalParseError, match="Invalid file type"):
        load_statement(p)


def test_oversize_file_is_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    p = _write(tmp_path, "big.html", example_statement() + " " * 2048)
    monkeypatch.setenv("STATEMENT_IMPORT_MAX_FILE_MB", "0.001")
    with pytest.raises(FatalParseError, match="too large"):
        validate_statement_file(p)


def test_invalid_size_override_falls_back_to_default(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    p = _write(tmp_path, "ok.htm", example_statement())
    monkeypatch.setenv("STATEMENT_IMPORT_MAX_FILE_MB", "lots")
    assert validate_statement_file(p) == p


def test_non_utf8_file_is_fatal(tmp_path: Path):
    p = _write(tmp_path, "latin.html", b"<html>\xff\xfe caf\xe9</html>")
    with pytest.raises(FatalParseError, match="UTF-8"):
        load_statement(p)


def test_missing_file_raises_os_error(tmp_path: Path):
    with pytest.raises(OSError):
        load_statement(tmp_path / "nope.html")


def test_document_without_entries_is_fatal():
    with pytest.raises(FatalParseError) as exc:
        parse(statement())
    assert str(exc.value) == NO_TRANSACTIONS_MESSAGE


def test_unsupported_bank():
    with pytest.raises(FatalParseError, match="Unsupported bank"):
        get_bank("maib")
    assert get_bank(" VB ").label == "Victoriabank"
