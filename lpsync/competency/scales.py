"""
Scale resolver: reuse global scales by value, create on miss.

Scales are matched on their ordered label sequence, never on name or id, so
two frameworks imported separately share a scale when their labels agree.
"""

import json
from typing import Dict, Tuple

from lpsync.competency.api import CompetencyApi, parse_scale_values
from lpsync.core.logging import get_logger
from lpsync.core.settings import ImportConfig

logger = get_logger("lpsync.competency.scales")


class ScaleConfigurationError(ValueError):
    """Scale configuration payload is not JSON or not a list of objects."""


def rewrite_scale_configuration(scale_id: int, raw_config: str) -> str:
    """
    Point a scale configuration payload at ``scale_id``.

    The payload is a JSON list whose first element carries the scale id;
    the remaining elements describe individual scale values.
    """
    try:
        config = json.loads(raw_config)
    except (TypeError, json.JSONDecodeError) as exc:
        raise ScaleConfigurationError(f"Scale configuration is not valid JSON: {exc}") from exc

    if not isinstance(config, list) or not config or not isinstance(config[0], dict):
        raise ScaleConfigurationError(
            "Scale configuration must be a JSON list starting with an object"
        )

    config[0]["scaleid"] = scale_id
    return json.dumps(config, separators=(",", ":"))


class ScaleResolver:
    """Value-equality scale lookup for one import session."""

    def __init__(self, api: CompetencyApi, config: ImportConfig):
        self.api = api
        self.config = config
        self._resolved: Dict[Tuple[str, ...], int] = {}
        self.created = 0
        self.reused = 0

    def resolve(self, scalevalues: str, display_name: str) -> int:
        """Id of the first global scale with the same labels, creating one if none."""
        values = parse_scale_values(scalevalues)
        if values in self._resolved:
            self.reused += 1
            return self._resolved[values]

        for scale in self.api.fetch_all_scales():
            if scale.values == values:
                logger.info("Reusing scale %d '%s'", scale.id, scale.name)
                self._resolved[values] = scale.id
                self.reused += 1
                return scale.id

        scale = self.api.create_scale(
            name=self.config.scale_name(display_name),
            owner=self.config.user_id,
            values=values,
            description=self.config.scale_description,
        )
        logger.info("Created scale %d '%s' (%d values)", scale.id, scale.name, len(values))
        self._resolved[values] = scale.id
        self.created += 1
        return scale.id

    def resolve_with_configuration(
        self, scalevalues: str, raw_config: str, display_name: str
    ) -> Tuple[int, str]:
        """Resolve the scale and rewrite its configuration payload to match."""
        scale_id = self.resolve(scalevalues, display_name)
        return scale_id, rewrite_scale_configuration(scale_id, raw_config)
