"""
lpsync CLI - Main Entry Point

Unified Typer CLI that assembles all module sub-commands.

Usage:
    lpsync version
    lpsync migrate
    lpsync framework [command]
"""

import importlib
import logging

import typer

import lpsync

app = typer.Typer(
    name="lpsync",
    help="Competency framework import.",
    no_args_is_help=True,
)


@app.callback()
def main_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Competency framework import."""
    if verbose:
        from lpsync.core.logging import set_log_level

        set_log_level(logging.DEBUG)


@app.command()
def version():
    """Show lpsync version."""
    typer.echo(f"lpsync {lpsync.__version__}")


@app.command()
def migrate():
    """Apply the database schema and seed default import settings."""
    from lpsync.core.db import migrate_all

    seeded = migrate_all()
    typer.echo("Database migration complete.")
    if seeded:
        typer.echo("Default import settings seeded.")


def _register_modules():
    """Register module CLI sub-apps."""
    module_registry = [
        ("lpsync.competency.cli", "framework", "Competency framework import"),
    ]

    for module_path, name, help_text in module_registry:
        mod = importlib.import_module(module_path)
        app.add_typer(mod.app, name=name, help=help_text)


_register_modules()


def main():
    """Entry point for the lpsync CLI."""
    app()


if __name__ == "__main__":
    main()
