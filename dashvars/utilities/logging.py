"""Logging setup for dashvars processes."""

import logging
import sys

from dashvars.config import get_log_level

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Marks handlers installed by setup_logging so repeated calls replace them
_HANDLER_NAME = "dashvars"


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger with a single stream handler.

    Args:
        level: Level name (DEBUG, INFO, ...). Defaults to DASHVARS_LOG_LEVEL.
    """
    level_name = (level or get_log_level()).upper()

    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(level_name)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
