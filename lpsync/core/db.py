"""
Database access for lpsync.

Provides connection management, query execution, and schema migration.
Callers own transactions: nothing in the import pipeline commits on its own.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from lpsync.core.config import LPSYNC_PATHS


def get_db_path() -> Path:
    """Get database path from config."""
    return LPSYNC_PATHS.database


@contextmanager
def get_db(readonly: bool = False) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.

    Enables foreign keys and Row factory automatically.

    Args:
        readonly: Open in read-only mode (useful for queries)

    Yields:
        sqlite3.Connection with Row factory enabled
    """
    db_path = get_db_path()

    if readonly:
        uri = f"file:{db_path}?mode=ro"
        conn = sqlite3.connect(uri, uri=True)
    else:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(db_path))

    try:
        conn.execute("PRAGMA foreign_keys = ON")
        conn.row_factory = sqlite3.Row
        yield conn
    finally:
        conn.close()


def execute_query(query: str, params: tuple = (), readonly: bool = True) -> list:
    """
    Execute a query and return results as list of Row objects.

    Args:
        query: SQL query
        params: Query parameters
        readonly: Use read-only connection

    Returns:
        List of sqlite3.Row objects
    """
    with get_db(readonly=readonly) as conn:
        cursor = conn.execute(query, params)
        return cursor.fetchall()


# Schema dependency order: foreign keys flow downhill through this list.
SCHEMA_ORDER = [
    "competency",
]


def apply_schemas(conn: sqlite3.Connection) -> None:
    """Run every module schema.sql in SCHEMA_ORDER against an open connection."""
    from lpsync.core.logging import get_logger

    logger = get_logger("lpsync.migrate")
    package_dir = Path(__file__).parent.parent

    for module_name in SCHEMA_ORDER:
        schema_file = package_dir / module_name / "schema.sql"
        if schema_file.exists():
            logger.info(f"Applying schema: {module_name}/schema.sql")
            conn.executescript(schema_file.read_text(encoding="utf-8"))
        else:
            logger.debug(f"No schema for module: {module_name}")


def migrate_all() -> bool:
    """
    Apply all schemas, then seed default settings when none exist.

    Each schema.sql uses CREATE TABLE IF NOT EXISTS, making this safe to run
    repeatedly (idempotent).

    Returns:
        True when default settings were seeded on this run
    """
    from lpsync.core.logging import get_logger
    from lpsync.core.settings import bootstrap_settings

    logger = get_logger("lpsync.migrate")

    with get_db() as conn:
        apply_schemas(conn)
        seeded = bootstrap_settings(conn)
        conn.commit()

    logger.info("All schemas applied successfully")
    if seeded:
        logger.info("Default import settings seeded")
    return seeded
