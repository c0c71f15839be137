"""
Row records: classify each import row and build sanitized records.

A row is either the framework definition (``isframework`` set) or one
competency. Sanitizing here never touches the database or the filesystem.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from lpsync.core.logging import get_logger
from lpsync.imports.mapping import get_row_data

logger = get_logger("lpsync.imports.records")

MAX_IDENTIFIER_LENGTH = 100

_TAG_RE = re.compile(r"<[^>]*>")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_INT_RE = re.compile(r"^\s*([+-]?\d+)")
# Wider than plain string truthiness: "false", "no" and "n" also mark a competency row.
_FALSE_FLAGS = {"", "0", "false", "no", "n"}


# ---------------------------------------------------------------------------
# Sanitizers
# ---------------------------------------------------------------------------

def clean_text(value: Optional[str]) -> str:
    """Plain text: markup and control characters removed, outer whitespace trimmed."""
    if not value:
        return ""
    value = _CONTROL_RE.sub("", value)
    value = _TAG_RE.sub("", value)
    return value.strip()


def clean_raw(value: Optional[str]) -> str:
    """Rich text body: kept verbatim apart from NUL bytes."""
    if not value:
        return ""
    return value.replace("\x00", "")


def shorten_text(value: str, length: int = MAX_IDENTIFIER_LENGTH) -> str:
    """Truncate to at most ``length`` characters, marking the cut with '...'."""
    if len(value) <= length:
        return value
    return value[: length - 3].rstrip() + "..."


def clean_identifier(value: Optional[str]) -> str:
    """idnumber / shortname sanitizer. Applying it twice changes nothing."""
    return shorten_text(clean_text(value))


def clean_int(value: Optional[str]) -> int:
    """Leading integer of the value, 0 when there is none."""
    if value is None:
        return 0
    match = _INT_RE.match(str(value))
    return int(match.group(1)) if match else 0


def is_flag_set(value: Optional[str]) -> bool:
    return (value or "").strip().lower() not in _FALSE_FLAGS


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class CompetencyRecord:
    """One competency row. ``children`` is filled by the tree builder only."""

    parentidnumber: str
    idnumber: str
    shortname: str
    description: str = ""
    descriptionformat: int = 0
    ruletype: str = ""
    ruleoutcome: int = 0
    ruleconfig: str = ""
    relatedidnumbers: str = ""
    exportid: str = ""
    scalevalues: str = ""
    scaleconfiguration: str = ""
    children: List["CompetencyRecord"] = field(default_factory=list, repr=False)


@dataclass
class FrameworkRecord:
    """The single framework row; its children are the top-level competencies."""

    idnumber: str
    shortname: str
    description: str = ""
    descriptionformat: int = 0
    scalevalues: str = ""
    scaleconfiguration: str = ""
    taxonomies: str = ""
    children: List[CompetencyRecord] = field(default_factory=list, repr=False)


Record = Union[FrameworkRecord, CompetencyRecord]


def build_record(row: Sequence[str], mapping: Mapping[str, int]) -> Record:
    """Classify one row and build its sanitized record."""

    def cell(name: str) -> str:
        return get_row_data(row, mapping.get(name, -1))

    if is_flag_set(cell("isframework")):
        return FrameworkRecord(
            idnumber=clean_identifier(cell("idnumber")),
            shortname=clean_identifier(cell("shortname")),
            description=clean_raw(cell("description")),
            descriptionformat=clean_int(cell("descriptionformat")),
            scalevalues=cell("scalevalues"),
            scaleconfiguration=cell("scaleconfiguration"),
            taxonomies=cell("taxonomies"),
        )

    return CompetencyRecord(
        parentidnumber=clean_identifier(cell("parentidnumber")),
        idnumber=clean_identifier(cell("idnumber")),
        shortname=clean_identifier(cell("shortname")),
        description=clean_raw(cell("description")),
        descriptionformat=clean_int(cell("descriptionformat")),
        ruletype=cell("ruletype"),
        ruleoutcome=clean_int(cell("ruleoutcome")),
        ruleconfig=cell("ruleconfig"),
        relatedidnumbers=cell("relatedidnumbers"),
        exportid=cell("exportid"),
        scalevalues=cell("scalevalues"),
        scaleconfiguration=cell("scaleconfiguration"),
    )


def collect_records(
    rows: Iterable[Sequence[str]], mapping: Mapping[str, int]
) -> Tuple[Optional[FrameworkRecord], Dict[str, CompetencyRecord]]:
    """
    Build the framework record and the flat idnumber -> competency map.

    The last framework row wins; a repeated idnumber overwrites the earlier
    competency (logged).
    """
    framework: Optional[FrameworkRecord] = None
    flat: Dict[str, CompetencyRecord] = {}

    for row in rows:
        record = build_record(row, mapping)
        if isinstance(record, FrameworkRecord):
            if framework is not None:
                logger.warning(
                    "Framework row '%s' replaces earlier framework row '%s'",
                    record.idnumber, framework.idnumber,
                )
            framework = record
            continue

        if record.idnumber in flat:
            logger.warning("Duplicate idnumber '%s' -- later row wins", record.idnumber)
        flat[record.idnumber] = record

    return framework, flat
