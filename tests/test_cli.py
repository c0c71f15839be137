"""Tests for the lpsync CLI."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from unittest.mock import patch

import pytest

import lpsync
import lpsync.competency.importer  # noqa: F401  (module loggers bound before the runner swaps stdout)
from lpsync.cli.main import app
from lpsync.competency.rules import RULE_POINTS
from lpsync.core.logging import get_logger, set_log_level
from lpsync.core.settings import SettingsStore
from lpsync.imports.mapping import COLUMNS
from lpsync.imports.reader import _FILE_CACHE

get_logger("lpsync.migrate")


def _json_output(result):
    return json.loads(result.output[result.output.index("{"):])


@pytest.fixture
def export_file(tmp_path, rows):
    path = tmp_path / "framework.csv"
    path.write_text(rows.csv([rows.fw(), rows.comp("A", "Alpha"), rows.comp("A1", "Child", parent="A")]))
    return path


class TestMainCommands:
    def test_version(self, cli_runner):
        result = cli_runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert lpsync.__version__ in result.output

    def test_migrate_seeds_once(self, cli_runner, mock_db):
        first = cli_runner.invoke(app, ["migrate"])
        assert first.exit_code == 0
        assert "Default import settings seeded" in first.output

        second = cli_runner.invoke(app, ["migrate"])
        assert second.exit_code == 0
        assert "seeded" not in second.output
        assert SettingsStore(mock_db).get("idnumber") == "idnumber"

    def test_verbose_flag(self, cli_runner):
        try:
            result = cli_runner.invoke(app, ["-v", "version"])
            assert result.exit_code == 0
        finally:
            set_log_level(logging.INFO)


class TestImportCommand:
    def test_import_json(self, cli_runner, mock_db, export_file):
        result = cli_runner.invoke(app, ["framework", "import", str(export_file), "--format", "json"])
        assert result.exit_code == 0, result.output

        summary = _json_output(result)
        assert summary["framework_idnumber"] == "FW1"
        assert summary["competencies_created"] == 2
        count = mock_db.execute("SELECT COUNT(*) AS n FROM competencies").fetchone()["n"]
        assert count == 2
        assert _FILE_CACHE == {}

    def test_dry_run_creates_nothing(self, cli_runner, mock_db, export_file):
        result = cli_runner.invoke(app, ["framework", "import", str(export_file), "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "FW1  Framework One" in result.output
        assert "    A1  Child" in result.output
        assert mock_db.execute("SELECT COUNT(*) AS n FROM competencies").fetchone()["n"] == 0

    def test_invalid_file(self, cli_runner, mock_db, tmp_path, rows):
        path = tmp_path / "nofw.csv"
        path.write_text(rows.csv([rows.comp("A", "Alpha")]))
        result = cli_runner.invoke(app, ["framework", "import", str(path)])
        assert result.exit_code == 1
        assert "Import file was not valid" in result.output

    def test_unsupported_extension(self, cli_runner, mock_db, tmp_path):
        path = tmp_path / "framework.json"
        path.write_text("{}")
        result = cli_runner.invoke(app, ["framework", "import", str(path)])
        assert result.exit_code == 1

    def test_bad_columns_mode(self, cli_runner, mock_db, export_file):
        result = cli_runner.invoke(app, ["framework", "import", str(export_file), "--columns", "magic"])
        assert result.exit_code == 1

    def test_failed_import_rolls_back(self, cli_runner, mock_db, tmp_path, rows):
        path = tmp_path / "badscale.csv"
        path.write_text(rows.csv([rows.fw(scaleconfiguration="oops"), rows.comp("A", "Alpha")]))
        result = cli_runner.invoke(app, ["framework", "import", str(path)])
        assert result.exit_code == 1
        assert "nothing saved" in result.output
        assert mock_db.execute("SELECT COUNT(*) AS n FROM scales").fetchone()["n"] == 0

    def test_badly_shaped_rule_config_rolls_back(self, cli_runner, mock_db, tmp_path, rows):
        path = tmp_path / "badrule.csv"
        path.write_text(rows.csv([
            rows.fw(),
            rows.comp("A", "Alpha", ruletype=RULE_POINTS, ruleoutcome="1",
                      ruleconfig='{"competencies": null}'),
        ]))
        result = cli_runner.invoke(app, ["framework", "import", str(path)])
        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "nothing saved" in result.output
        assert mock_db.execute("SELECT COUNT(*) AS n FROM competencies").fetchone()["n"] == 0
        assert mock_db.execute("SELECT COUNT(*) AS n FROM competency_frameworks").fetchone()["n"] == 0

    def test_uninitialised_database(self, cli_runner, export_file):
        bare = sqlite3.connect(":memory:")

        @contextmanager
        def _get_db(readonly=False):
            yield bare

        with patch("lpsync.core.get_db", _get_db):
            result = cli_runner.invoke(app, ["framework", "import", str(export_file)])
        bare.close()
        assert result.exit_code == 1
        assert "lpsync migrate" in result.output


class TestSettingsCommands:
    def test_empty_settings(self, cli_runner, mock_db):
        result = cli_runner.invoke(app, ["framework", "settings"])
        assert result.exit_code == 0
        assert "No settings saved" in result.output

    def test_set_and_list(self, cli_runner, mock_db):
        result = cli_runner.invoke(app, ["framework", "set", "shortname", "Title"])
        assert result.exit_code == 0
        assert SettingsStore(mock_db).get("shortname") == "Title"

        listing = cli_runner.invoke(app, ["framework", "settings"])
        assert "Title" in listing.output

    def test_settings_mapping_import(self, cli_runner, mock_db, tmp_path, rows):
        cli_runner.invoke(app, ["migrate"])
        cli_runner.invoke(app, ["framework", "set", "idnumber", "Code"])
        headers = ["Code" if c.name == "idnumber" else c.name for c in COLUMNS]
        path = tmp_path / "renamed.csv"
        path.write_text(rows.csv([rows.fw(), rows.comp("A", "Alpha")], headers=headers))

        result = cli_runner.invoke(
            app, ["framework", "import", str(path), "--columns", "settings", "--format", "json"]
        )
        assert result.exit_code == 0, result.output
        assert _json_output(result)["competencies_created"] == 1

    def test_rules(self, cli_runner):
        result = cli_runner.invoke(app, ["framework", "rules"])
        assert result.exit_code == 0
        assert RULE_POINTS in result.output


class TestHeadersCommand:
    def test_reports_found_and_missing(self, cli_runner, tmp_path, rows):
        labels = [c.label for c in COLUMNS if c.name != "exportid"]
        path = tmp_path / "export.csv"
        path.write_text(rows.csv([], headers=labels))

        result = cli_runner.invoke(app, ["framework", "headers", str(path)])
        assert result.exit_code == 0, result.output
        assert "column 2 (ID number)" in result.output
        assert "-- missing --" in result.output


class TestListCommand:
    def test_no_frameworks(self, cli_runner, mock_db):
        result = cli_runner.invoke(app, ["framework", "list"])
        assert result.exit_code == 0
        assert "No frameworks imported" in result.output

    def test_lists_imported_framework(self, cli_runner, mock_db, export_file):
        cli_runner.invoke(app, ["framework", "import", str(export_file)])
        result = cli_runner.invoke(app, ["framework", "list"])
        assert result.exit_code == 0
        line = next(l for l in result.output.splitlines() if "FW1" in l)
        assert "Framework One" in line
        assert " 2 " in line


class TestUninitialisedDatabase:
    @pytest.fixture
    def bare_db(self):
        bare = sqlite3.connect(":memory:")

        @contextmanager
        def _get_db(readonly=False):
            yield bare

        with patch("lpsync.core.get_db", _get_db), patch("lpsync.core.db.get_db", _get_db):
            yield bare
        bare.close()

    def test_settings(self, cli_runner, bare_db):
        result = cli_runner.invoke(app, ["framework", "settings"])
        assert result.exit_code == 1
        assert "lpsync migrate" in result.output

    def test_list(self, cli_runner, bare_db):
        result = cli_runner.invoke(app, ["framework", "list"])
        assert result.exit_code == 1
        assert "lpsync migrate" in result.output
