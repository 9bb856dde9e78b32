"""Per-session, per-category cooldown for low-priority notifications."""

import time
from typing import Callable

from hookwatch.lib.classifier import HIGH_PRIORITY_CATEGORIES, NotificationCategory


class NotificationCooldown:
    """Suppresses repeat low-priority notifications for the same session.

    Each ``(session_id, category)`` pair has its own bucket holding the
    monotonic time of the last notification allowed through. High-priority
    categories always pass and never touch the buckets. Expired buckets are
    pruned on every check to bound memory.
    """

    def __init__(self, window: float = 30.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.window = window
        self._clock = clock
        self._last_sent: dict[tuple[str, str], float] = {}

    def __len__(self) -> int:
        return len(self._last_sent)

    def _prune(self, now: float) -> None:
        cutoff = now - self.window
        stale = [key for key, sent in self._last_sent.items() if sent <= cutoff]
        for key in stale:
            del self._last_sent[key]

    def check(self, session_id: str, category: NotificationCategory) -> bool:
        """Return True if a notification may be created. Does not record it."""
        if self.window <= 0 or category in HIGH_PRIORITY_CATEGORIES:
            return True

        self._prune(self._clock())
        return (session_id, category.value) not in self._last_sent

    def record(self, session_id: str, category: NotificationCategory) -> None:
        """Start the cooldown for a notification that was actually created."""
        if self.window <= 0 or category in HIGH_PRIORITY_CATEGORIES:
            return
        self._last_sent[(session_id, category.value)] = self._clock()

    def allow(self, session_id: str, category: NotificationCategory) -> bool:
        """Check and record in one step."""
        if not self.check(session_id, category):
            return False
        self.record(session_id, category)
        return True
