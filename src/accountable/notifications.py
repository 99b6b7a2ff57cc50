"""Best-effort local notifications.

Reminders and deadline nudges go through a ``Notifier``. Delivery is not
guaranteed: a notifier that fails is logged and the notification dropped.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger("accountable.notifications")


@dataclass(frozen=True, slots=True)
class Notification:
    title: str
    body: str
    tag: str = ""


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...


class LogNotifier:
    """Deliver notifications to the log. The default in headless runs."""

    def notify(self, notification: Notification) -> None:
        logger.info("%s: %s", notification.title, notification.body)


def deliver(notifier: Notifier, notification: Notification) -> bool:
    """Send *notification*, swallowing delivery failures. True if sent."""
    try:
        notifier.notify(notification)
    except Exception:
        logger.warning("Dropped notification %r", notification.tag or notification.title, exc_info=True)
        return False
    return True
