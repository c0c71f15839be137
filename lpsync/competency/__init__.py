"""
lpsync Competency Module

Framework import pipeline: tree building, scale resolution, rule
registry, persistence API and the import session.
"""

from lpsync.competency.api import CompetencyApi
from lpsync.competency.importer import FrameworkImporter, ImportResult
from lpsync.competency.rules import get_rule, list_rules, register_rule

__all__ = [
    "CompetencyApi",
    "FrameworkImporter",
    "ImportResult",
    "get_rule",
    "list_rules",
    "register_rule",
]
