"""
Column mapping: which cell of a row holds which logical import field.

Two layouts are supported: the positional default (field N is cell N) and a
header-driven selection saved from the mapping form or from settings, where
each field names a column index or a header.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

ABSENT = -1


@dataclass
class ColumnDef:
    """Definition for a single importable column/field."""

    name: str                          # Internal field name (e.g. "parentidnumber")
    label: str                         # Header written by the framework exporter
    aliases: List[str] = field(default_factory=list)  # Alternative header names

    def all_names(self) -> List[str]:
        """Return all possible names for header matching (lowercase)."""
        names = [self.name.lower(), self.label.lower()]
        names.extend(a.lower() for a in self.aliases)
        return list(dict.fromkeys(names))  # dedupe, preserve order


COLUMNS: List[ColumnDef] = [
    ColumnDef("parentidnumber", "Parent ID number", ["parent idnumber", "parent"]),
    ColumnDef("idnumber", "ID number", ["id number"]),
    ColumnDef("shortname", "Short name", ["name"]),
    ColumnDef("description", "Description"),
    ColumnDef("descriptionformat", "Description format"),
    ColumnDef("scalevalues", "Scale values"),
    ColumnDef("scaleconfiguration", "Scale configuration"),
    ColumnDef("ruletype", "Rule type (optional)", ["rule type"]),
    ColumnDef("ruleoutcome", "Rule outcome (optional)", ["rule outcome"]),
    ColumnDef("ruleconfig", "Rule config (optional)", ["rule config"]),
    ColumnDef("relatedidnumbers", "Cross-referenced competency ID numbers", ["related idnumbers"]),
    ColumnDef("exportid", "Exported ID (optional)", ["exported id", "export id"]),
    ColumnDef("isframework", "Is framework", ["framework"]),
    ColumnDef("taxonomies", "Taxonomy", ["taxonomy"]),
]

FIELDS: List[str] = [c.name for c in COLUMNS]


@dataclass
class MappingSelection:
    """
    Saved column selections, one per field in FIELDS order.

    Each value is a column index (int or numeric string) or a header name.
    None, "" and unknown names mean the column was not supplied.
    """

    header0: Any = None
    header1: Any = None
    header2: Any = None
    header3: Any = None
    header4: Any = None
    header5: Any = None
    header6: Any = None
    header7: Any = None
    header8: Any = None
    header9: Any = None
    header10: Any = None
    header11: Any = None
    header12: Any = None
    header13: Any = None

    def values(self) -> List[Any]:
        return [getattr(self, f"header{i}") for i in range(len(FIELDS))]

    @classmethod
    def from_fields(cls, selections: Mapping[str, Any]) -> "MappingSelection":
        """Build from a {field_name: index-or-header} dict."""
        return cls(**{f"header{i}": selections.get(name) for i, name in enumerate(FIELDS)})


def default_mapping() -> Dict[str, int]:
    """Positional layout: field N is read from cell N."""
    return {name: idx for idx, name in enumerate(FIELDS)}


def _resolve_selection(value: Any, headers: Sequence[str]) -> int:
    if value is None or isinstance(value, bool):
        return ABSENT
    if isinstance(value, int):
        return value if value >= 0 else ABSENT

    text = str(value).strip()
    if not text:
        return ABSENT
    if text.lstrip("-").isdigit():
        idx = int(text)
        return idx if idx >= 0 else ABSENT

    wanted = text.lower()
    for idx, header in enumerate(headers):
        if header.strip().lower() == wanted:
            return idx
    return ABSENT


def read_mapping_data(
    selection: Optional[MappingSelection], headers: Sequence[str] = ()
) -> Dict[str, int]:
    """
    Resolve a selection into a field -> cell index table.

    Args:
        selection: Saved selections, or None for the positional default
        headers: Header row of the import, used to resolve header names

    Returns:
        Dict of every field in FIELDS to a cell index (ABSENT when not supplied)
    """
    if selection is None:
        return default_mapping()
    return {
        name: _resolve_selection(value, headers)
        for name, value in zip(FIELDS, selection.values())
    }


def selection_from_settings(column_names: Mapping[str, str]) -> MappingSelection:
    """Selection using the header names saved in the settings table."""
    return MappingSelection.from_fields({name: column_names.get(name) for name in FIELDS})


def auto_map_columns(headers: Sequence[str]) -> MappingSelection:
    """Match header names against each field's name, label and aliases."""
    selections: Dict[str, int] = {}

    for idx, header in enumerate(headers):
        h = header.lower().strip()
        if not h:
            continue

        for col_def in COLUMNS:
            if col_def.name in selections:
                continue
            if h in col_def.all_names():
                selections[col_def.name] = idx
                break

    return MappingSelection.from_fields(selections)


def get_row_data(row: Sequence[str], index: int) -> str:
    """Cell at index, or "" when the index is absent or past the end of the row."""
    if index is None or index < 0 or index >= len(row):
        return ""
    value = row[index]
    return "" if value is None else value


def list_required_headers() -> List[str]:
    """Header names the exporter writes, in column order (exported id is optional)."""
    return [c.label for c in COLUMNS if c.name != "exportid"]
