"""User-visible notifications.

Fetch and storage failures never propagate to callers; they are reported
here instead and the templating state moves on.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from core import VariableIdentifier
from dashvars.state.async_request import message_from_error

logger = logging.getLogger(__name__)

TEMPLATING_TITLE = "Templating"


@dataclass(frozen=True)
class Notification:
    title: str
    text: str
    severity: str = "error"
    variable_id: str | None = None


def create_variable_error_notification(
    message: str,
    error: Any,
    identifier: VariableIdentifier | None = None,
) -> Notification:
    """Error notification whose text is `<message> <reason>`."""
    return Notification(
        title=TEMPLATING_TITLE,
        text=f"{message} {message_from_error(error)}",
        severity="error",
        variable_id=identifier.id if identifier else None,
    )


class NotificationCenter:
    """Collects notifications and fans them out to subscribers."""

    def __init__(self):
        self._notifications: list[Notification] = []
        self._subscribers: list[Callable[[Notification], None]] = []

    def notify(self, notification: Notification) -> None:
        logger.warning("[NOTIFY] %s: %s", notification.title, notification.text)
        self._notifications.append(notification)
        for subscriber in list(self._subscribers):
            subscriber(notification)

    def subscribe(self, subscriber: Callable[[Notification], None]) -> None:
        self._subscribers.append(subscriber)

    @property
    def notifications(self) -> list[Notification]:
        return list(self._notifications)

    def clear(self) -> None:
        self._notifications.clear()
