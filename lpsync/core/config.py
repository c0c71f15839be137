"""
Configuration management for lpsync.

Loads config.yaml and provides access to settings. Import behaviour is
bundled into an ImportConfig value object by the caller, so the importer
itself never reads global state.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, Optional

# Config file lives inside the lpsync package
_PACKAGE_DIR = Path(__file__).parent.parent.resolve()
CONFIG_PATH = _PACKAGE_DIR / "config.yaml"

# Cache for loaded config
_config_cache: Optional[Dict[str, Any]] = None

_STRING_DEFAULTS = {
    "invalidimportfile": "Import file was not valid",
    "competencyscale": "Competency scale: {name}",
    "competencyscaledescription": "A competency scale created by the framework importer.",
}


def get_config(reload: bool = False) -> Dict[str, Any]:
    """
    Load configuration from config.yaml.

    Args:
        reload: Force reload even if cached

    Returns:
        Configuration dictionary
    """
    global _config_cache

    if _config_cache is not None and not reload:
        return _config_cache

    if not CONFIG_PATH.exists():
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as f:
        _config_cache = yaml.safe_load(f) or {}

    return _config_cache


def get_config_value(*keys: str, default: Any = None) -> Any:
    """
    Get a nested config value safely.

    Args:
        *keys: Path of keys to traverse (e.g., 'import', 'delimiter')
        default: Value to return if key not found

    Example:
        user_id = get_config_value('import', 'user_id', default=2)
    """
    config = get_config()

    for key in keys:
        if isinstance(config, dict) and key in config:
            config = config[key]
        else:
            return default

    return config


def get_string(key: str, **params: Any) -> str:
    """Message lookup against the ``strings`` section, formatted with params."""
    template = get_config_value("strings", key, default=_STRING_DEFAULTS.get(key, key))
    return template.format(**params) if params else template


class LPSyncPaths:
    """
    Centralized path access for lpsync.

    Usage:
        from lpsync.core.config import LPSYNC_PATHS
        db = LPSYNC_PATHS.database
    """

    def __init__(self):
        self._config = None

    def _ensure_config(self):
        if self._config is None:
            self._config = get_config()

    def _resolve(self, raw: str) -> Path:
        """Resolve a path: if relative, resolve against _PACKAGE_DIR."""
        p = Path(raw)
        if not p.is_absolute():
            p = _PACKAGE_DIR / p
        return p

    @property
    def database(self) -> Path:
        self._ensure_config()
        raw = self._config.get("destinations", {}).get("database", "data/lpsync.db")
        return self._resolve(raw)

    @property
    def root(self) -> Path:
        return _PACKAGE_DIR


# Singleton instance
LPSYNC_PATHS = LPSyncPaths()
