"""
Import settings store.

A name/value table holding the saved header name for every logical import
field, plus the connection details of the external sync source. The table is
seeded once by bootstrap_settings() (run from ``lpsync migrate``); the
importer only ever receives an ImportConfig built from it.
"""

import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from lpsync.core.config import get_config_value, get_string
from lpsync.core.logging import get_logger

logger = get_logger("lpsync.core.settings")

# External sync source connection (kept for parity with existing installs).
CONNECTION_DEFAULTS = {
    "type": "mysqli",
    "host": "localhost",
    "user": "",
    "pass": "",
    "name": "",
    "table": "",
}

# Header name saved for each logical field, in column order.
COLUMN_NAME_DEFAULTS = {
    "parentidnumber": "parentidnumber",
    "idnumber": "idnumber",
    "shortname": "shortname",
    "description": "description",
    "descriptionformat": "descriptionformat",
    "scalevalues": "scalevalues",
    "scaleconfiguration": "scaleconfiguration",
    "ruletype": "ruletype",
    "ruleoutcome": "ruleoutcome",
    "ruleconfig": "ruleconfig",
    "relatedidnumbers": "relatedidnumbers",
    "exportid": "exportid",
    "isframework": "isframework",
    "taxonomies": "taxonomies",
}


class SettingsStore:
    """get/set access to the lpsync_settings table on an open connection."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        row = self.conn.execute(
            "SELECT value FROM lpsync_settings WHERE name = ?", (name,)
        ).fetchone()
        return row["value"] if row else default

    def set(self, name: str, value: Any) -> None:
        self.conn.execute(
            """INSERT INTO lpsync_settings (name, value) VALUES (?, ?)
               ON CONFLICT(name) DO UPDATE SET value = excluded.value""",
            (name, "" if value is None else str(value)),
        )

    def all(self) -> Dict[str, str]:
        rows = self.conn.execute(
            "SELECT name, value FROM lpsync_settings ORDER BY name"
        ).fetchall()
        return {r["name"]: r["value"] for r in rows}

    def is_configured(self) -> bool:
        """True once any setting has been stored."""
        row = self.conn.execute("SELECT COUNT(*) AS n FROM lpsync_settings").fetchone()
        return row["n"] > 0


def bootstrap_settings(conn: sqlite3.Connection) -> bool:
    """
    Seed default settings if the table is empty.

    Returns:
        True if defaults were inserted, False if settings already existed
    """
    store = SettingsStore(conn)
    if store.is_configured():
        return False

    for name, value in {**CONNECTION_DEFAULTS, **COLUMN_NAME_DEFAULTS}.items():
        store.set(name, value)
    logger.info("Seeded %d default settings", len(CONNECTION_DEFAULTS) + len(COLUMN_NAME_DEFAULTS))
    return True


@dataclass
class ImportConfig:
    """Everything the importer needs from configuration, resolved up front."""

    column_names: Dict[str, str] = field(default_factory=lambda: dict(COLUMN_NAME_DEFAULTS))
    context_id: int = 1
    user_id: int = 2
    encoding: str = "utf-8"
    delimiter: str = "comma"
    invalid_file_message: str = "Import file was not valid"
    scale_name_template: str = "Competency scale: {name}"
    scale_description: str = "A competency scale created by the framework importer."

    def scale_name(self, display_name: str) -> str:
        return self.scale_name_template.format(name=display_name)

    @classmethod
    def load(cls, conn: Optional[sqlite3.Connection] = None) -> "ImportConfig":
        """Build from config.yaml and, when a connection is given, saved column names."""
        column_names = dict(COLUMN_NAME_DEFAULTS)
        if conn is not None:
            saved = SettingsStore(conn).all()
            for name in COLUMN_NAME_DEFAULTS:
                if name in saved:
                    column_names[name] = saved[name]

        return cls(
            column_names=column_names,
            context_id=int(get_config_value("import", "context_id", default=1)),
            user_id=int(get_config_value("import", "user_id", default=2)),
            encoding=get_config_value("import", "encoding", default="utf-8"),
            delimiter=get_config_value("import", "delimiter", default="comma"),
            invalid_file_message=get_string("invalidimportfile"),
            scale_name_template=get_config_value(
                "strings", "competencyscale", default="Competency scale: {name}"
            ),
            scale_description=get_string("competencyscaledescription"),
        )
