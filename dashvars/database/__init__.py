"""SQLite persistence for dashboard variable save models."""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from dashvars.config import get_db_path

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS dashboard_variables (
    dashboard_uid TEXT NOT NULL,
    position INTEGER NOT NULL,
    name TEXT NOT NULL,
    model TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (dashboard_uid, name)
);
CREATE INDEX IF NOT EXISTS idx_dashboard_variables_position
    ON dashboard_variables (dashboard_uid, position);
"""


def connect(db_path: str | None = None) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path or get_db_path())
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db(db_path: str | None = None) -> Iterator[sqlite3.Connection]:
    """Connection that commits on success and rolls back on error."""
    conn = connect(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(conn: sqlite3.Connection) -> None:
    """Create tables if they do not exist."""
    conn.executescript(SCHEMA)
    logger.debug("[DATABASE] Schema initialized")


__all__ = ["SCHEMA", "connect", "get_db", "init_db"]
