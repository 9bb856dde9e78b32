"""Client sync engine: polls the version endpoint and catches up on change.

One loop runs per installation. Each tick fetches ``/version``; when
``notification_version`` moved it pulls everything newer than the tracker's
cursor and hands it to the tracker. Network failures simply skip the tick.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable

from hookwatch.client.api import APIError

if TYPE_CHECKING:
    from hookwatch.client.api import APIClient
    from hookwatch.client.state import StateFile
    from hookwatch.client.tracker import DedupTracker
    from hookwatch.lib.notifications import Notification

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 10.0
DEFAULT_PAGE_LIMIT = 50


class SyncEngine:
    def __init__(
        self,
        api: APIClient,
        tracker: DedupTracker,
        *,
        interval: float = DEFAULT_INTERVAL,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        on_data_changed: Callable[[int], Any] | None = None,
        state_file: StateFile | None = None,
    ) -> None:
        self.api = api
        self.tracker = tracker
        self.interval = interval
        self.page_limit = page_limit
        self.on_data_changed = on_data_changed
        self.state_file = state_file
        self.last_data_version: int | None = None
        self.last_notification_version: int | None = None
        self._task: asyncio.Task | None = None
        self._wake = asyncio.Event()
        tracker.set_poll_requester(self.request_poll)

        if state_file is not None:
            state = state_file.load()
            tracker.load_state(state)
            self.last_notification_version = state.get("notification_version")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the polling loop. No-op if it is already running."""
        if self.running:
            return
        self._wake.clear()
        self._task = asyncio.create_task(self._run(), name="hookwatch-sync")

    async def stop(self) -> None:
        """Cancel the loop and any in-flight acknowledgments."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.tracker.cancel_pending_acks()

    def request_poll(self) -> None:
        """Wake the loop for an out-of-cycle tick."""
        self._wake.set()

    async def _run(self) -> None:
        while True:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Sync tick failed")

            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()

    async def tick(self) -> list[Notification]:
        """Run one poll cycle. Returns the notifications fetched."""
        try:
            info = await self.api.version()
        except APIError as exc:
            logger.debug("Version check failed, skipping tick: %s", exc)
            return []

        await self._check_data_version(info.get("data_version"))

        notification_version = info.get("notification_version")
        if notification_version is None or notification_version == self.last_notification_version:
            return []

        if self.last_notification_version is not None and notification_version < self.last_notification_version:
            logger.warning(
                "notification_version went backwards (%d -> %d); relay was reset, reloading",
                self.last_notification_version,
                notification_version,
            )
            await self.tracker.reset_cursor()

        fetched, complete = await self._catch_up()
        if fetched and complete:
            self.last_notification_version = notification_version
            self._save_state()
        return fetched

    async def _check_data_version(self, data_version: int | None) -> None:
        if data_version is None or data_version == self.last_data_version:
            return
        self.last_data_version = data_version
        if self.on_data_changed is None:
            return
        try:
            result = self.on_data_changed(data_version)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            logger.warning("on_data_changed callback failed", exc_info=True)

    async def _catch_up(self) -> tuple[list[Notification], bool]:
        """Fetch everything past the cursor, paging while pages come back full.

        Without a cursor this is the initial load: one page of the most
        recent notifications. Returns the notifications and whether the
        catch-up ran to completion.
        """
        fetched: list[Notification] = []
        after = self.tracker.cursor

        while True:
            try:
                page = await self.api.list_notifications(after=after, limit=self.page_limit)
            except APIError as exc:
                logger.debug("Notification fetch failed: %s", exc)
                return fetched, False

            if page:
                await self.tracker.receive_via_poll(page)
                fetched.extend(page)

            # Rows newer than a valid cursor always advance it.
            if after is not None and page and self.tracker.cursor == after:
                logger.warning("Cursor %s is ahead of every row on the relay; reloading", after)
                await self.tracker.reset_cursor()
                return fetched, False

            if after is None or len(page) < self.page_limit:
                return fetched, True
            after = self.tracker.cursor

    def _save_state(self) -> None:
        if self.state_file is None:
            return
        state = self.tracker.export_state()
        state["notification_version"] = self.last_notification_version
        try:
            self.state_file.save(state)
        except OSError:
            logger.warning("Could not write state file %s", self.state_file.path, exc_info=True)
