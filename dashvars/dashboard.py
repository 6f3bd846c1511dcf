"""Dashboard collaborator seen by the templating session.

The session only needs the dashboard's identity, the templating list it was
loaded from (to revert removed URL values) and two hooks: one to refresh
panels and one announcing that a variable value changed.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from core import VariableModel

logger = logging.getLogger(__name__)


@dataclass
class Dashboard:
    uid: str | None = None
    title: str = ""
    id: int | None = None
    org_id: int = 1
    org_name: str = "Main Org."
    templating_list: list[VariableModel] = field(default_factory=list)

    refresh_count: int = 0
    value_updated_count: int = 0
    on_refresh: Callable[[], None] | None = field(default=None, repr=False)

    def start_refresh(self) -> None:
        """Ask every panel to re-run its queries."""
        self.refresh_count += 1
        logger.debug("[DASHBOARD] Refresh #%d of %s", self.refresh_count, self.uid)
        if self.on_refresh is not None:
            self.on_refresh()

    def template_variable_value_updated(self) -> None:
        self.value_updated_count += 1
