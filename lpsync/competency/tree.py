"""
Flat-to-tree builder.

Competency rows arrive flat, each naming its parent by idnumber ('' for
top level). The tree is rebuilt from a parent index in one pass, walked with
an explicit stack; siblings keep their row order.
"""

from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from lpsync.core.logging import get_logger
from lpsync.imports.records import CompetencyRecord, FrameworkRecord

logger = get_logger("lpsync.competency.tree")

Node = Union[FrameworkRecord, CompetencyRecord]


class TreeCycleError(ValueError):
    """A competency was reached twice while building the tree."""

    def __init__(self, idnumber: str):
        super().__init__(f"Competency '{idnumber}' is its own ancestor")
        self.idnumber = idnumber


def index_by_parent(flat: Mapping[str, CompetencyRecord]) -> Dict[str, List[CompetencyRecord]]:
    """parentidnumber -> child records, in flat map order."""
    index: Dict[str, List[CompetencyRecord]] = {}
    for record in flat.values():
        index.setdefault(record.parentidnumber, []).append(record)
    return index


def build_tree(
    framework: FrameworkRecord, flat: Mapping[str, CompetencyRecord]
) -> List[CompetencyRecord]:
    """
    Attach every reachable competency under the framework.

    Children lists are rebuilt from scratch. Raises TreeCycleError when a
    record is reached twice.

    Returns:
        Records never reached from the framework (orphans), in flat map order
    """
    index = index_by_parent(flat)
    seen = set()
    stack: List[Tuple[Node, str]] = [(framework, "")]

    while stack:
        node, key = stack.pop()
        children = index.get(key, [])
        for child in children:
            if id(child) in seen:
                raise TreeCycleError(child.idnumber)
            seen.add(id(child))
        node.children = list(children)
        for child in reversed(children):
            # '' names the top level, so a record without idnumber has no children
            if child.idnumber:
                stack.append((child, child.idnumber))
            else:
                child.children = []

    orphans = [r for r in flat.values() if id(r) not in seen]
    for record in orphans:
        logger.warning(
            "Competency '%s' omitted: parent '%s' not found in import",
            record.idnumber, record.parentidnumber,
        )
    return orphans


def walk(
    root: Node,
) -> Iterator[Tuple[CompetencyRecord, Optional[CompetencyRecord]]]:
    """Pre-order (record, parent record) pairs below root; parent is None at top level."""
    stack: List[Tuple[CompetencyRecord, Optional[CompetencyRecord]]] = [
        (child, None) for child in reversed(root.children)
    ]
    while stack:
        record, parent = stack.pop()
        yield record, parent
        for child in reversed(record.children):
            stack.append((child, record))


def count_nodes(root: Node) -> int:
    return sum(1 for _ in walk(root))
