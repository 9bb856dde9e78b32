"""Reconciles push and poll deliveries into one deduplicated feed.

Every notification id can reach the client twice: once through an APNs
push and once through the poll path. The tracker remembers ids that arrived
by push for a short retention window; a poll result carrying one of those
ids updates the feed and unread state without raising a second alert.

Read state is local first. ``mark_read`` and friends update the tracker
immediately and then send one best-effort acknowledgment to the relay in
the background; a failed acknowledgment is logged and never rolled back.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from hookwatch.client.bounded import BoundedOrderedDict

if TYPE_CHECKING:
    from hookwatch.client.alerts import AlertPresenter
    from hookwatch.lib.notifications import Notification

logger = logging.getLogger(__name__)

PUSH_RECEIPT_WINDOW = 120.0
FEED_CAPACITY = 100
READ_CAPACITY = 500
PUSH_RECEIPT_CAPACITY = 200


class DedupTracker:
    def __init__(
        self,
        presenter: AlertPresenter | None = None,
        acknowledger: Callable[[list[str]], Awaitable[Any]] | None = None,
        *,
        push_window: float = PUSH_RECEIPT_WINDOW,
        feed_capacity: int = FEED_CAPACITY,
        read_capacity: int = READ_CAPACITY,
        push_capacity: int = PUSH_RECEIPT_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.presenter = presenter
        self.acknowledger = acknowledger
        self.push_window = push_window
        self._clock = clock
        self._lock = asyncio.Lock()
        self._feed = BoundedOrderedDict(feed_capacity)
        self._read = BoundedOrderedDict(read_capacity)
        self._push_receipts = BoundedOrderedDict(push_capacity)
        self._cursor_id: str | None = None
        self._cursor_at: datetime | None = None
        self._poll_requester: Callable[[], None] | None = None
        self._ack_tasks: set[asyncio.Task] = set()

    def set_poll_requester(self, requester: Callable[[], None] | None) -> None:
        self._poll_requester = requester

    async def reset_cursor(self) -> None:
        """Forget the cursor so the next poll is an initial load. Feed and read state are kept."""
        async with self._lock:
            self._cursor_id = None
            self._cursor_at = None

    @property
    def cursor(self) -> str | None:
        """Id of the newest notification seen through the poll path."""
        return self._cursor_id

    @property
    def cursor_created_at(self) -> datetime | None:
        return self._cursor_at

    @property
    def feed(self) -> list[Notification]:
        """All known notifications, newest first."""
        return sorted(self._feed.values(), key=lambda n: n.created_at, reverse=True)

    @property
    def unread(self) -> list[Notification]:
        return [n for n in self.feed if str(n.id) not in self._read]

    @property
    def unread_count(self) -> int:
        return len(self.unread)

    def sessions_with_unread(self) -> set[str]:
        return {n.session_id for n in self.unread}

    def is_read(self, notification_id: str) -> bool:
        return str(notification_id) in self._read

    def push_receipts(self) -> list[str]:
        return list(self._push_receipts)

    def _evict_push_receipts(self, now: float) -> None:
        cutoff = now - self.push_window
        while self._push_receipts:
            key, received_at = next(iter(self._push_receipts.items()))
            if received_at > cutoff:
                break
            del self._push_receipts[key]

    async def receive_via_push(self, notification_id: str) -> None:
        """Record a push delivery. The push itself is the alert; ask for a poll."""
        async with self._lock:
            now = self._clock()
            self._evict_push_receipts(now)
            self._push_receipts[str(notification_id)] = now

        if self._poll_requester is not None:
            self._poll_requester()

    async def receive_via_poll(self, notifications: list[Notification]) -> list[Notification]:
        """Merge a poll result into the feed. Returns the notifications alerted."""
        to_alert: list[Notification] = []

        async with self._lock:
            self._evict_push_receipts(self._clock())

            for notification in sorted(notifications, key=lambda n: n.created_at):
                key = str(notification.id)

                if notification.acknowledged and key not in self._read:
                    self._read[key] = True

                if self._cursor_at is None or notification.created_at > self._cursor_at:
                    self._cursor_id = key
                    self._cursor_at = notification.created_at

                if key in self._feed:
                    continue
                self._feed[key] = notification

                if key in self._read:
                    continue
                if key in self._push_receipts:
                    logger.debug("Suppressed alert for %s (already delivered by push)", key)
                    continue
                to_alert.append(notification)

        if self.presenter is not None:
            for notification in to_alert:
                self.presenter.present(notification)
        return to_alert

    async def mark_read(self, notification_id: str) -> bool:
        """Mark one notification read. Returns False if it was unknown or already read."""
        key = str(notification_id)
        async with self._lock:
            if key not in self._feed or key in self._read:
                return False
            self._read[key] = True
        self._schedule_ack([key])
        return True

    async def mark_session_read(self, session_id: str) -> list[str]:
        """Mark every unread notification of a session read with one acknowledgment."""
        async with self._lock:
            changed = [
                key
                for key, n in self._feed.items()
                if n.session_id == session_id and key not in self._read
            ]
            for key in changed:
                self._read[key] = True
        self._schedule_ack(changed)
        return changed

    async def mark_all_read(self) -> list[str]:
        async with self._lock:
            changed = [key for key in self._feed if key not in self._read]
            for key in changed:
                self._read[key] = True
        self._schedule_ack(changed)
        return changed

    def _schedule_ack(self, ids: list[str]) -> None:
        if not ids or self.acknowledger is None:
            return
        task = asyncio.create_task(self._acknowledge(list(ids)))
        self._ack_tasks.add(task)
        task.add_done_callback(self._ack_tasks.discard)

    async def _acknowledge(self, ids: list[str]) -> None:
        try:
            await self.acknowledger(ids)
        except Exception:
            logger.warning("Failed to acknowledge %d notification(s)", len(ids), exc_info=True)

    async def wait_for_pending_acks(self) -> None:
        if self._ack_tasks:
            await asyncio.gather(*self._ack_tasks)

    async def cancel_pending_acks(self) -> int:
        """Cancel in-flight acknowledgments and return how many. Local read state is kept."""
        tasks = [task for task in self._ack_tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug("Cancelled %d pending acknowledgment(s)", len(tasks))
        return len(tasks)

    def export_state(self) -> dict[str, Any]:
        """Serializable cursor and read state. Push receipts are not persisted."""
        return {
            "cursor": (
                {"id": self._cursor_id, "created_at": self._cursor_at.isoformat()}
                if self._cursor_id and self._cursor_at
                else None
            ),
            "read_ids": list(self._read),
        }

    def load_state(self, state: dict[str, Any]) -> None:
        cursor = state.get("cursor")
        if cursor:
            self._cursor_id = cursor["id"]
            self._cursor_at = datetime.fromisoformat(cursor["created_at"])
        for key in state.get("read_ids", []):
            self._read[str(key)] = True
