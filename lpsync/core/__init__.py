"""
lpsync Core - Shared services for all modules.

Usage:
    from lpsync.core import get_db, get_config, get_logger, LPSYNC_PATHS
"""

from lpsync.core.config import get_config, get_config_value, get_string, LPSYNC_PATHS
from lpsync.core.db import get_db, execute_query, migrate_all
from lpsync.core.logging import get_logger

__all__ = [
    "get_config",
    "get_config_value",
    "get_string",
    "LPSYNC_PATHS",
    "get_db",
    "execute_query",
    "migrate_all",
    "get_logger",
]
