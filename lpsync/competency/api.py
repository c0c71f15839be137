"""
Competency persistence API over sqlite.

Creates frameworks, competencies and scales and links related
competencies. Nothing here commits: the caller owns the transaction and rolls
back when an import fails part way.
"""

import sqlite3
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from lpsync.core.logging import get_logger

logger = get_logger("lpsync.competency.api")


def parse_scale_values(raw: str) -> Tuple[str, ...]:
    """Ordered scale labels from a comma separated definition."""
    if not raw:
        return ()
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass
class ScaleHandle:
    id: int
    name: str
    values: Tuple[str, ...]


@dataclass
class FrameworkHandle:
    id: int
    idnumber: str
    shortname: str
    scaleid: Optional[int] = None
    contextid: int = 0


@dataclass
class CompetencyHandle:
    id: int
    competencyframeworkid: int
    idnumber: str
    shortname: str
    parentid: int = 0
    path: str = "/0/"
    ruletype: Optional[str] = None
    ruleoutcome: int = 0
    ruleconfig: Optional[str] = None


@dataclass
class FrameworkPayload:
    shortname: str
    idnumber: str
    scaleid: int
    scaleconfiguration: str
    contextid: int
    description: str = ""
    descriptionformat: int = 0
    taxonomies: str = ""


@dataclass
class CompetencyPayload:
    competencyframeworkid: int
    shortname: str
    idnumber: str
    parentid: int = 0
    description: str = ""
    descriptionformat: int = 0
    scaleid: Optional[int] = None
    scaleconfiguration: Optional[str] = None


def _row_to_competency(row: sqlite3.Row) -> CompetencyHandle:
    return CompetencyHandle(
        id=row["id"],
        competencyframeworkid=row["competencyframeworkid"],
        idnumber=row["idnumber"],
        shortname=row["shortname"],
        parentid=row["parentid"],
        path=row["path"],
        ruletype=row["ruletype"],
        ruleoutcome=row["ruleoutcome"],
        ruleconfig=row["ruleconfig"],
    )


class CompetencyApi:
    """Persistence operations used by the framework importer."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # -- scales ------------------------------------------------------------

    def fetch_all_scales(self) -> List[ScaleHandle]:
        """Every global (site-level) scale, oldest first."""
        rows = self.conn.execute(
            "SELECT id, name, scale FROM scales WHERE courseid = 0 ORDER BY id"
        ).fetchall()
        return [ScaleHandle(r["id"], r["name"], parse_scale_values(r["scale"])) for r in rows]

    def create_scale(
        self, name: str, owner: int, values: Sequence[str], description: str
    ) -> ScaleHandle:
        values = tuple(values)
        if not values:
            raise ValueError("A scale needs at least one value")
        cursor = self.conn.execute(
            """INSERT INTO scales (name, courseid, userid, scale, description)
               VALUES (?, 0, ?, ?, ?)""",
            (name, owner, ",".join(values), description),
        )
        logger.debug("Created scale %d '%s'", cursor.lastrowid, name)
        return ScaleHandle(cursor.lastrowid, name, values)

    # -- frameworks --------------------------------------------------------

    def create_framework(self, payload: FrameworkPayload) -> FrameworkHandle:
        if not payload.idnumber or not payload.shortname:
            raise ValueError("Framework needs an idnumber and a shortname")
        cursor = self.conn.execute(
            """INSERT INTO competency_frameworks
               (shortname, idnumber, description, descriptionformat, scaleid,
                scaleconfiguration, taxonomies, contextid)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                payload.shortname, payload.idnumber, payload.description,
                payload.descriptionformat, payload.scaleid,
                payload.scaleconfiguration, payload.taxonomies, payload.contextid,
            ),
        )
        return FrameworkHandle(
            id=cursor.lastrowid,
            idnumber=payload.idnumber,
            shortname=payload.shortname,
            scaleid=payload.scaleid,
            contextid=payload.contextid,
        )

    # -- competencies ------------------------------------------------------

    def get_competency(self, competency_id: int) -> Optional[CompetencyHandle]:
        row = self.conn.execute(
            "SELECT * FROM competencies WHERE id = ?", (competency_id,)
        ).fetchone()
        return _row_to_competency(row) if row else None

    def create_competency(self, payload: CompetencyPayload) -> CompetencyHandle:
        """Insert one competency, deriving its path and sibling sort order."""
        path = "/0/"
        if payload.parentid:
            parent = self.get_competency(payload.parentid)
            if parent is None:
                raise ValueError(f"Parent competency {payload.parentid} does not exist")
            if parent.competencyframeworkid != payload.competencyframeworkid:
                raise ValueError("Parent competency belongs to another framework")
            path = f"{parent.path}{parent.id}/"

        row = self.conn.execute(
            """SELECT COALESCE(MAX(sortorder) + 1, 0) AS next
               FROM competencies WHERE competencyframeworkid = ? AND parentid = ?""",
            (payload.competencyframeworkid, payload.parentid or 0),
        ).fetchone()

        cursor = self.conn.execute(
            """INSERT INTO competencies
               (competencyframeworkid, shortname, idnumber, description,
                descriptionformat, parentid, path, sortorder, scaleid,
                scaleconfiguration)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                payload.competencyframeworkid, payload.shortname, payload.idnumber,
                payload.description, payload.descriptionformat,
                payload.parentid or 0, path, row["next"], payload.scaleid,
                payload.scaleconfiguration,
            ),
        )
        return CompetencyHandle(
            id=cursor.lastrowid,
            competencyframeworkid=payload.competencyframeworkid,
            idnumber=payload.idnumber,
            shortname=payload.shortname,
            parentid=payload.parentid or 0,
            path=path,
        )

    def update_rule(
        self,
        competency_id: int,
        ruletype: Optional[str],
        ruleoutcome: int,
        ruleconfig: Optional[str],
    ) -> None:
        cursor = self.conn.execute(
            "UPDATE competencies SET ruletype = ?, ruleoutcome = ?, ruleconfig = ? WHERE id = ?",
            (ruletype, ruleoutcome, ruleconfig, competency_id),
        )
        if cursor.rowcount == 0:
            raise ValueError(f"Competency {competency_id} does not exist")

    # -- related competencies ----------------------------------------------

    def add_related(self, competency_id: int, related_id: int) -> bool:
        """
        Link two competencies of the same framework.

        The link is symmetric and stored once. Returns False when it already existed.
        """
        if competency_id == related_id:
            raise ValueError("A competency cannot be related to itself")

        first = self.get_competency(competency_id)
        second = self.get_competency(related_id)
        if first is None or second is None:
            raise ValueError("Related competency does not exist")
        if first.competencyframeworkid != second.competencyframeworkid:
            raise ValueError("Related competencies must belong to the same framework")

        low, high = sorted((competency_id, related_id))
        cursor = self.conn.execute(
            """INSERT OR IGNORE INTO related_competencies (competencyid, relatedcompetencyid)
               VALUES (?, ?)""",
            (low, high),
        )
        return cursor.rowcount > 0

    def list_related(self, competency_id: int) -> List[int]:
        rows = self.conn.execute(
            """SELECT relatedcompetencyid AS other FROM related_competencies WHERE competencyid = ?
               UNION
               SELECT competencyid AS other FROM related_competencies WHERE relatedcompetencyid = ?
               ORDER BY other""",
            (competency_id, competency_id),
        ).fetchall()
        return [r["other"] for r in rows]

    def list_competencies(self, framework_id: int) -> List[CompetencyHandle]:
        rows = self.conn.execute(
            "SELECT * FROM competencies WHERE competencyframeworkid = ? ORDER BY path, sortorder",
            (framework_id,),
        ).fetchall()
        return [_row_to_competency(r) for r in rows]
