"""Competency framework CLI sub-commands."""

import sqlite3
from typing import Dict, Optional

import typer

from lpsync.core.output import OutputFormat, format_result

app = typer.Typer(no_args_is_help=True)

COLUMN_MODES = ("positional", "settings", "auto")


def _load_or_exit(file: str):
    from lpsync.imports.reader import read_upload

    try:
        return read_upload(file)
    except (OSError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)


def _echo_tree(framework) -> None:
    from lpsync.competency.tree import walk

    typer.echo(f"{framework.idnumber}  {framework.shortname}")
    depth: Dict[int, int] = {}
    for record, parent in walk(framework):
        level = depth[id(parent)] + 1 if parent is not None else 1
        depth[id(record)] = level
        typer.echo(f"{'  ' * level}{record.idnumber}  {record.shortname}")


@app.command()
def headers(
    file: str = typer.Argument(..., help="Path to CSV or XLSX export"),
    encoding: Optional[str] = typer.Option(None, "--encoding", help="File encoding"),
    delimiter: Optional[str] = typer.Option(None, "--delimiter", help="comma, semicolon, colon, tab or a character"),
):
    """Compare the file's header row with the columns the importer expects."""
    from lpsync.core.settings import ImportConfig
    from lpsync.imports.mapping import COLUMNS, auto_map_columns, read_mapping_data
    from lpsync.imports.reader import TabularImportReader

    file_format, content = _load_or_exit(file)
    config = ImportConfig.load()
    reader = TabularImportReader(TabularImportReader.new_import_id("headers"), "headers")
    try:
        if file_format == "xlsx":
            loaded = reader.load_xlsx(content)
        else:
            loaded = reader.load(content, encoding or config.encoding, delimiter or config.delimiter)
        if not loaded or not reader.init():
            typer.echo(f"Error: {reader.error}", err=True)
            raise typer.Exit(1)
        found = reader.columns()
    finally:
        reader.cleanup()

    auto = read_mapping_data(auto_map_columns(found), found)
    typer.echo(f"{'Field':<20} {'Expected header':<42} Found at")
    typer.echo("-" * 75)
    for col in COLUMNS:
        idx = auto[col.name]
        location = f"column {idx + 1} ({found[idx]})" if idx >= 0 else "-- missing --"
        typer.echo(f"{col.name:<20} {col.label:<42} {location}")


@app.command("import")
def import_framework(
    file: str = typer.Argument(..., help="Path to CSV or XLSX export"),
    encoding: Optional[str] = typer.Option(None, "--encoding", help="File encoding"),
    delimiter: Optional[str] = typer.Option(None, "--delimiter", help="comma, semicolon, colon, tab or a character"),
    columns: str = typer.Option("positional", "--columns", help="positional, settings or auto"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Parse and show the tree only"),
    fmt: OutputFormat = typer.Option(OutputFormat.HUMAN, "--format", "-f", help="Output format"),
):
    """Import a competency framework export."""
    from lpsync.competency.api import CompetencyApi
    from lpsync.competency.importer import FrameworkImporter
    from lpsync.core import get_db
    from lpsync.core.settings import ImportConfig

    if columns not in COLUMN_MODES:
        typer.echo(f"Error: --columns must be one of {', '.join(COLUMN_MODES)}", err=True)
        raise typer.Exit(1)

    file_format, content = _load_or_exit(file)
    mapping = None if columns == "positional" else columns

    with get_db() as conn:
        try:
            config = ImportConfig.load(conn)
        except sqlite3.OperationalError:
            typer.echo("Error: database is not initialised, run 'lpsync migrate' first", err=True)
            raise typer.Exit(1)

        with FrameworkImporter(CompetencyApi(conn), config) as importer:
            if not importer.parse(
                content, encoding, delimiter, mapping=mapping, file_format=file_format
            ):
                typer.echo(f"Error: {importer.get_error()}", err=True)
                raise typer.Exit(1)

            if dry_run:
                _echo_tree(importer.framework)
                if importer.omitted:
                    typer.echo(f"\n{len(importer.omitted)} competencies not attached to the tree")
                return

            try:
                result = importer.import_framework()
                conn.commit()
            except (sqlite3.Error, ValueError) as exc:
                conn.rollback()
                typer.echo(f"Import failed, nothing saved: {exc}", err=True)
                raise typer.Exit(1)

    typer.echo(format_result(result, fmt, title="Framework import"))


@app.command("settings")
def list_settings():
    """Show saved import settings."""
    from lpsync.core import get_db
    from lpsync.core.settings import SettingsStore

    try:
        with get_db(readonly=True) as conn:
            values = SettingsStore(conn).all()
    except sqlite3.OperationalError:
        typer.echo("Error: database is not initialised, run 'lpsync migrate' first", err=True)
        raise typer.Exit(1)

    if not values:
        typer.echo("No settings saved. Run 'lpsync migrate' to seed defaults.")
        return
    for name, value in values.items():
        typer.echo(f"{name:<20} {value}")


@app.command("set")
def set_setting(
    name: str = typer.Argument(..., help="Setting name, e.g. shortname"),
    value: str = typer.Argument(..., help="New value, e.g. a header name"),
):
    """Save one import setting (e.g. the header name of a field)."""
    from lpsync.core import get_db
    from lpsync.core.settings import SettingsStore

    with get_db() as conn:
        SettingsStore(conn).set(name, value)
        conn.commit()
    typer.echo(f"{name} = {value}")


@app.command("rules")
def list_rule_types():
    """List rule types whose configs are migrated on import."""
    from lpsync.competency.rules import list_rules

    for name, label in list_rules().items():
        typer.echo(f"{name:<45} {label}")


@app.command("list")
def list_frameworks():
    """List imported frameworks with their competency counts."""
    from lpsync.core import execute_query

    try:
        rows = execute_query(
            """SELECT f.id, f.idnumber, f.shortname, COUNT(c.id) AS competencies
               FROM competency_frameworks f
               LEFT JOIN competencies c ON c.competencyframeworkid = f.id
               GROUP BY f.id ORDER BY f.id"""
        )
    except sqlite3.OperationalError:
        typer.echo("Error: database is not initialised, run 'lpsync migrate' first", err=True)
        raise typer.Exit(1)

    if not rows:
        typer.echo("No frameworks imported.")
        return
    typer.echo(f"{'ID':<6} {'ID number':<20} {'Competencies':>12}  Short name")
    typer.echo("-" * 60)
    for r in rows:
        typer.echo(f"{r['id']:<6} {r['idnumber']:<20} {r['competencies']:>12}  {r['shortname']}")
