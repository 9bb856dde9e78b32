"""Local alert presentation for the watcher.

The presenter keys every alert by notification id and refuses to show the
same id twice, so a duplicate that slips past the tracker still produces a
single alert.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Protocol

from hookwatch.client.bounded import BoundedOrderedDict

if TYPE_CHECKING:
    from hookwatch.lib.notifications import Notification

logger = logging.getLogger(__name__)


class AlertPresenter(Protocol):
    def present(self, notification: Notification) -> bool:
        """Show an alert. Returns False if one was already shown for this id."""
        ...


class LocalAlertCenter:
    def __init__(
        self,
        sink: Callable[[Notification], None] | None = None,
        capacity: int = 500,
    ) -> None:
        self._sink = sink
        self._presented = BoundedOrderedDict(capacity)

    @property
    def presented(self) -> list[str]:
        return list(self._presented)

    def present(self, notification: Notification) -> bool:
        key = str(notification.id)
        if key in self._presented:
            logger.debug("Alert %s already presented", key)
            return False
        self._presented[key] = True
        if self._sink is not None:
            self._sink(notification)
        return True


def format_alert(notification: Notification) -> str:
    """One-line rendering used by ``hookwatch watch``."""
    stamp = notification.created_at.astimezone().strftime("%H:%M:%S")
    return f"[{stamp}] {notification.title}: {notification.body}"
