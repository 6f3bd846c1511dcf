"""Database operations for dashboard variables.

Each dashboard's templating list is stored one row per variable, in order.
"""

import json
import logging
from sqlite3 import Connection

logger = logging.getLogger(__name__)


def save_variables(conn: Connection, dashboard_uid: str, models: list[dict]) -> int:
    """Replace the stored templating list of a dashboard.

    Args:
        conn: Database connection
        dashboard_uid: Dashboard UID
        models: Save models, in display order

    Returns:
        Number of variables stored
    """
    conn.execute("DELETE FROM dashboard_variables WHERE dashboard_uid = ?", (dashboard_uid,))
    conn.executemany(
        """
        INSERT INTO dashboard_variables (dashboard_uid, position, name, model, updated_at)
        VALUES (?, ?, ?, ?, datetime('now'))
        """,
        [(dashboard_uid, position, model.get("name", ""), json.dumps(model)) for position, model in enumerate(models)],
    )
    logger.info("[DATABASE] Saved %d variables for dashboard %s", len(models), dashboard_uid)
    return len(models)


def load_variables(conn: Connection, dashboard_uid: str) -> list[dict]:
    """Stored templating list of a dashboard, in order. Empty if none."""
    cursor = conn.execute(
        "SELECT model FROM dashboard_variables WHERE dashboard_uid = ? ORDER BY position",
        (dashboard_uid,),
    )
    models = []
    for row in cursor.fetchall():
        try:
            models.append(json.loads(row["model"]))
        except (json.JSONDecodeError, TypeError):
            logger.warning("[DATABASE] Skipping unreadable variable model for dashboard %s", dashboard_uid)
    return models


def delete_variables(conn: Connection, dashboard_uid: str) -> bool:
    cursor = conn.execute("DELETE FROM dashboard_variables WHERE dashboard_uid = ?", (dashboard_uid,))
    return cursor.rowcount > 0


def list_dashboards(conn: Connection) -> list[str]:
    cursor = conn.execute("SELECT DISTINCT dashboard_uid FROM dashboard_variables ORDER BY dashboard_uid")
    return [row["dashboard_uid"] for row in cursor.fetchall()]
