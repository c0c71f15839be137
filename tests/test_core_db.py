"""Tests for database connection management and schema migration."""

from contextlib import contextmanager
from unittest.mock import patch

from lpsync.core.db import SCHEMA_ORDER, apply_schemas, execute_query, migrate_all
from lpsync.core.settings import SettingsStore


def test_get_db_sets_row_factory(mock_db):
    row = mock_db.execute("SELECT 1 AS val").fetchone()
    assert row["val"] == 1


def test_get_db_enables_foreign_keys(mock_db):
    fk = mock_db.execute("PRAGMA foreign_keys").fetchone()[0]
    assert fk == 1


def test_execute_query_returns_rows(mock_db):
    rows = execute_query("SELECT 42 AS n")
    assert len(rows) == 1
    assert rows[0]["n"] == 42


def test_schema_order():
    assert SCHEMA_ORDER == ["competency"]


def test_schema_creates_tables(memory_db):
    names = {
        r["name"]
        for r in memory_db.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }
    assert {"lpsync_settings", "scales", "competency_frameworks",
            "competencies", "related_competencies"} <= names


def test_apply_schemas_is_idempotent(memory_db):
    apply_schemas(memory_db)
    apply_schemas(memory_db)


def test_migrate_all_seeds_once(memory_db):
    @contextmanager
    def _get_db(readonly=False):
        yield memory_db

    with patch("lpsync.core.db.get_db", _get_db):
        assert migrate_all() is True
        assert migrate_all() is False

    assert SettingsStore(memory_db).get("idnumber") == "idnumber"
