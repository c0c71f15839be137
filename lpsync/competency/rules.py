"""
Competency rule registry.

Rule types register a config migration at import time via register_rule().
During an import the migration rewrites exported competency ids embedded in
a rule config into the ids created by this import. Unknown rule types are
not an error: get_rule() returns None and the caller leaves the rule unset.
"""

import json
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from lpsync.core.logging import get_logger

logger = get_logger("lpsync.competency.rules")

RULE_ALL = "core_competency\\competency_rule_all"
RULE_POINTS = "core_competency\\competency_rule_points"

# (old_config, export_mapping) -> new_config
MigrateFn = Callable[[Optional[str], Mapping[str, Any]], Optional[str]]

# Rule registry: type_name -> (migrate_fn, label)
_RULES: Dict[str, Tuple[MigrateFn, str]] = {}


class RuleConfigError(ValueError):
    """Rule config is not JSON or does not have the shape its rule type expects."""


def normalize_rule_type(type_name: str) -> str:
    """Strip whitespace and a leading namespace separator."""
    return (type_name or "").strip().lstrip("\\")


def register_rule(type_name: str, migrate_fn: MigrateFn, label: str) -> None:
    """Register the config migration for a rule type."""
    _RULES[normalize_rule_type(type_name)] = (migrate_fn, label)
    logger.debug("Registered rule type '%s' (%s)", type_name, label)


def get_rule(type_name: str) -> Optional[MigrateFn]:
    entry = _RULES.get(normalize_rule_type(type_name))
    return entry[0] if entry else None


def list_rules() -> Dict[str, str]:
    """type_name -> label for every registered rule type."""
    return {name: label for name, (_, label) in _RULES.items()}


def migrate_rule_config(
    type_name: str, old_config: Optional[str], mappings: Mapping[str, Any]
) -> Optional[str]:
    """
    Translate exported competency ids in a rule config to the ids of this import.

    An empty config or the literal "null" is treated as no config. Unknown
    rule types have nothing to migrate and return None.
    """
    migrate = get_rule(type_name)
    if migrate is None:
        return None
    if old_config in ("", "null"):
        old_config = None
    return migrate(old_config, mappings)


# ---------------------------------------------------------------------------
# Built-in rule types
# ---------------------------------------------------------------------------

def migrate_all_config(
    config: Optional[str], mappings: Mapping[str, Any]
) -> Optional[str]:
    """'Complete when all children complete' carries no competency references."""
    return config


def migrate_points_config(
    config: Optional[str], mappings: Mapping[str, Any]
) -> Optional[str]:
    """
    Remap the competencies of a points rule.

    Config shape:
        {"base": {"points": 2},
         "competencies": [{"id": <exported id>, "points": 1, "required": 0}, ...]}

    Entries whose exported id has no counterpart in this import are dropped.
    """
    if not config:
        return config

    try:
        data = json.loads(config)
    except json.JSONDecodeError as exc:
        raise RuleConfigError(f"Points rule config is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise RuleConfigError("Points rule config must be a JSON object")
    competencies = data.get("competencies", [])
    if not isinstance(competencies, list) or not all(isinstance(c, dict) for c in competencies):
        raise RuleConfigError("Points rule 'competencies' must be a list of objects")

    migrated = []
    for comp in competencies:
        created = mappings.get(str(comp.get("id")))
        if created is None:
            logger.debug("Points rule drops unmapped competency id %s", comp.get("id"))
            continue
        migrated.append({**comp, "id": created.id})
    data["competencies"] = migrated
    return json.dumps(data, separators=(",", ":"))


register_rule(RULE_ALL, migrate_all_config, "Complete when all children are complete")
register_rule(RULE_POINTS, migrate_points_config, "Complete when points are reached")
