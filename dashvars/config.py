"""Runtime configuration read from environment variables.

Every setting has a getter so tests can patch the environment per call.
"""

import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "dashvars.db"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MAX_URL_LENGTH = 8192
DEFAULT_SEARCH_WILDCARD = "*"
DEFAULT_DATASOURCE_TIMEOUT = 30.0
DEFAULT_DATASOURCE_RETRIES = 3


def _get_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("[CONFIG] Invalid integer for %s: %r, using %d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("[CONFIG] %s must be positive, got %d, using %d", name, value, default)
        return default
    return value


def _get_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("[CONFIG] Invalid number for %s: %r, using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("[CONFIG] %s must be positive, got %s, using %s", name, value, default)
        return default
    return value


def get_db_path() -> str:
    """Path of the SQLite database holding saved dashboard variables."""
    return os.environ.get("DASHVARS_DB_PATH") or DEFAULT_DB_PATH


def get_log_level() -> str:
    level = (os.environ.get("DASHVARS_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
    if level not in logging.getLevelNamesMapping():
        logger.warning("[CONFIG] Unknown log level %r, using %s", level, DEFAULT_LOG_LEVEL)
        return DEFAULT_LOG_LEVEL
    return level


def get_max_url_length() -> int:
    """Longest encoded query string the location service will accept."""
    return _get_int("DASHVARS_MAX_URL_LENGTH", DEFAULT_MAX_URL_LENGTH)


def get_search_wildcard() -> str:
    """Wildcard appended to `$__searchFilter` values."""
    return os.environ.get("DASHVARS_SEARCH_WILDCARD") or DEFAULT_SEARCH_WILDCARD


def get_datasource_timeout() -> float:
    return _get_float("DASHVARS_DATASOURCE_TIMEOUT", DEFAULT_DATASOURCE_TIMEOUT)


def get_datasource_retries() -> int:
    return _get_int("DASHVARS_DATASOURCE_RETRIES", DEFAULT_DATASOURCE_RETRIES)
