"""
Shared test fixtures for lpsync.

Provides an in-memory database with all schemas, a patched get_db, a CLI
runner, and builders for import files.
"""

import csv
import io
import sqlite3
import pytest
from pathlib import Path
from unittest.mock import patch
from contextlib import contextmanager

from lpsync.core.db import SCHEMA_ORDER
from lpsync.core.settings import ImportConfig
from lpsync.imports.mapping import FIELDS


@pytest.fixture
def memory_db():
    """Provide an in-memory SQLite database with ALL schemas applied in FK order."""
    conn = sqlite3.connect(":memory:")
    conn.execute("PRAGMA foreign_keys = ON")
    conn.row_factory = sqlite3.Row

    schema_dir = Path(__file__).parent.parent / "lpsync"
    for module in SCHEMA_ORDER:
        schema_file = schema_dir / module / "schema.sql"
        if schema_file.exists():
            conn.executescript(schema_file.read_text(encoding="utf-8"))

    yield conn
    conn.close()


@pytest.fixture
def mock_db(memory_db):
    """Patch get_db everywhere to return the in-memory database."""

    @contextmanager
    def _get_db(readonly=False):
        yield memory_db

    with patch("lpsync.core.db.get_db", _get_db), \
         patch("lpsync.core.get_db", _get_db):
        yield memory_db


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture
def api(memory_db):
    from lpsync.competency.api import CompetencyApi

    return CompetencyApi(memory_db)


@pytest.fixture
def import_config():
    """Config with fixed owner/context so assertions don't depend on config.yaml."""
    return ImportConfig(context_id=1, user_id=2)


SCALE_VALUES = "Not yet competent,Competent"
SCALE_CONFIG = '[{"scaleid":"99"},{"id":1,"scaledefault":1,"proficient":0},{"id":2,"scaledefault":0,"proficient":1}]'


def competency_row(idnumber, shortname, parent="", **extra):
    """A data row in the positional layout (fields in FIELDS order)."""
    values = {"parentidnumber": parent, "idnumber": idnumber, "shortname": shortname}
    values.update(extra)
    return [str(values.get(name, "")) for name in FIELDS]


def framework_row(idnumber="FW1", shortname="Framework One", **extra):
    extra.setdefault("scalevalues", SCALE_VALUES)
    extra.setdefault("scaleconfiguration", SCALE_CONFIG)
    return competency_row(idnumber, shortname, isframework="1", **extra)


def to_csv(rows, headers=None, delimiter=","):
    out = io.StringIO()
    writer = csv.writer(out, delimiter=delimiter, lineterminator="\n")
    writer.writerow(headers if headers is not None else FIELDS)
    writer.writerows(rows)
    return out.getvalue()


@pytest.fixture
def rows():
    """Row builders: rows.fw(...), rows.comp(...), rows.csv([...])."""

    class _Rows:
        fw = staticmethod(framework_row)
        comp = staticmethod(competency_row)
        csv = staticmethod(to_csv)
        scale_values = SCALE_VALUES
        scale_config = SCALE_CONFIG

    return _Rows
