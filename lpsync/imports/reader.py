"""
Tabular import reader: CSV/XLSX parsing behind a per-import cursor.

Uploaded content is parsed once and kept in an in-memory cache keyed by
import id, so a later request can reopen the same import by id. Callers must
cleanup() on every exit path to release the cached rows.
"""

import csv
import io
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from lpsync.core.logging import get_logger

logger = get_logger("lpsync.imports.reader")

# ---------------------------------------------------------------------------
# In-memory import cache (keyed by import id, cleared on cleanup)
# ---------------------------------------------------------------------------
_FILE_CACHE: Dict[str, Tuple[List[str], List[List[str]]]] = {}

DELIMITERS = {
    "comma": ",",
    "semicolon": ";",
    "colon": ":",
    "tab": "\t",
}


def _cache_key(import_id: str, kind: str) -> str:
    return f"{kind}:{import_id}"


def resolve_delimiter(delimiter: Optional[str]) -> str:
    """Map a delimiter name (comma, tab, ...) or literal character to a character."""
    if not delimiter:
        return ","
    if delimiter in DELIMITERS:
        return DELIMITERS[delimiter]
    if len(delimiter) == 1:
        return delimiter
    raise ValueError(f"Unsupported delimiter: {delimiter!r}")


class TabularImportReader:
    """Reader over one stored import: load once, then init/next_row/close."""

    def __init__(self, import_id: str, kind: str):
        self.import_id = import_id
        self.kind = kind
        self.error: Optional[str] = None
        self._headers: List[str] = []
        self._rows: List[List[str]] = []
        self._position: Optional[int] = None

    @staticmethod
    def new_import_id(kind: str) -> str:
        """Fresh id for a new import of the given kind."""
        return uuid.uuid4().hex

    # -- loading -----------------------------------------------------------

    def _fail(self, msg: str) -> bool:
        self.error = msg
        logger.warning("Import %s rejected: %s", self.import_id, msg)
        return False

    def _store(self, all_rows: List[List[str]]) -> bool:
        rows_raw = [r for r in all_rows if any(cell.strip() for cell in r)]
        if not rows_raw:
            return self._fail("File is empty")

        headers = [h.strip() for h in rows_raw[0]]
        if len(headers) < 2:
            return self._fail("File must have at least two columns")

        seen = set()
        for header in headers:
            key = header.lower()
            if key and key in seen:
                return self._fail(f"Duplicate column name: {header}")
            seen.add(key)

        _FILE_CACHE[_cache_key(self.import_id, self.kind)] = (headers, rows_raw[1:])
        logger.info(
            "Loaded import %s: %d columns, %d rows", self.import_id, len(headers), len(rows_raw) - 1
        )
        return True

    def load(
        self,
        content: Union[str, bytes],
        encoding: Optional[str] = None,
        delimiter: Optional[str] = None,
    ) -> bool:
        """Parse CSV content and store it under this import id."""
        if isinstance(content, bytes):
            enc = encoding or "utf-8"
            if enc.lower().replace("_", "-") in ("utf-8", "utf8"):
                enc = "utf-8-sig"
            try:
                content = content.decode(enc)
            except (UnicodeDecodeError, LookupError) as exc:
                return self._fail(f"Cannot decode file as {encoding}: {exc}")
        elif content.startswith("\ufeff"):
            content = content[1:]

        if not content or not content.strip():
            return self._fail("File is empty")

        try:
            sep = resolve_delimiter(delimiter)
        except ValueError as exc:
            return self._fail(str(exc))

        reader = csv.reader(io.StringIO(content), delimiter=sep)
        try:
            rows = [list(r) for r in reader]
        except csv.Error as exc:
            return self._fail(f"Malformed CSV: {exc}")
        return self._store(rows)

    def load_xlsx(self, content: bytes) -> bool:
        """Parse the active sheet of an XLSX workbook and store it."""
        from openpyxl import load_workbook

        try:
            wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except Exception as exc:  # openpyxl raises several unrelated types
            return self._fail(f"Cannot read workbook: {exc}")

        try:
            ws = wb.active
            rows = [
                ["" if c is None else str(c) for c in row]
                for row in ws.iter_rows(values_only=True)
            ]
        finally:
            wb.close()

        return self._store(rows)

    # -- cursor ------------------------------------------------------------

    def init(self) -> bool:
        """Position the cursor on the first data row. False if nothing is stored."""
        cached = _FILE_CACHE.get(_cache_key(self.import_id, self.kind))
        if cached is None:
            self.error = f"No stored import with id {self.import_id}"
            return False
        self._headers, self._rows = cached
        self._position = 0
        return True

    def columns(self) -> List[str]:
        return list(self._headers)

    def next_row(self) -> Optional[List[str]]:
        """Return the next data row, or None at the end."""
        if self._position is None or self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        return list(row)

    def close(self) -> None:
        self._position = None

    def cleanup(self) -> None:
        """Drop the stored rows for this import."""
        _FILE_CACHE.pop(_cache_key(self.import_id, self.kind), None)
        self._headers, self._rows = [], []
        self._position = None


def read_upload(path: Union[str, Path]) -> Tuple[str, Union[str, bytes]]:
    """Read a file for import; returns (format, content) where format is csv or xlsx."""
    path = Path(path)
    ext = path.suffix.lower().lstrip(".")

    if ext in ("csv", "txt"):
        return "csv", path.read_bytes()
    elif ext in ("xlsx", "xlsm"):
        return "xlsx", path.read_bytes()
    else:
        raise ValueError(f"Unsupported file type: .{ext} (expected .csv or .xlsx)")
