"""Background fan-out of new notifications to every push registration.

Dispatch never blocks the ingest request and never raises: each
notification is delivered by a tracked background task that logs its own
failures. Registrations APNs reports as permanently invalid are deleted.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from hookwatch.lib.apns import PushGatewayError, PushOutcome, PushResult
from hookwatch.lib.hooks import PUSH_REGISTRATION_PRUNED, PUSH_SENT, hooks
from hookwatch.lib.observability import span

if TYPE_CHECKING:
    from hookwatch.db.models import PushRegistration
    from hookwatch.lib.apns import ApnsClient
    from hookwatch.lib.notifications import Notification

logger = logging.getLogger(__name__)


class PushDispatcher:
    def __init__(
        self,
        client: ApnsClient,
        session_maker: Any,
        *,
        max_concurrency: int = 10,
        deadline: float = 30.0,
    ) -> None:
        self.client = client
        self._session_maker = session_maker
        self.max_concurrency = max(1, max_concurrency)
        self.deadline = deadline
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, notification: Notification) -> asyncio.Task:
        """Start delivering *notification* in the background."""
        task = asyncio.create_task(self.dispatch(notification), name=f"push:{notification.id}")
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Push dispatch task %s failed", task.get_name(), exc_info=exc)

    async def dispatch(self, notification: Notification) -> dict[str, PushResult]:
        """Deliver to all registrations concurrently. Returns results keyed by token."""
        from hookwatch.db.services import push_service

        results: dict[str, PushResult] = {}
        with span("push.dispatch", notification_id=str(notification.id)):
            try:
                async with self._session_maker() as session:
                    registrations = await push_service.list_registrations(session)
            except Exception:
                logger.exception("Failed to load push registrations for %s", notification.id)
                return results

            if not registrations:
                return results

            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def deliver(registration: PushRegistration) -> None:
                async with semaphore:
                    results[registration.token] = await self._deliver(registration, notification)

            try:
                outcomes = await asyncio.wait_for(
                    asyncio.gather(*(deliver(r) for r in registrations), return_exceptions=True),
                    timeout=self.deadline,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Push dispatch for %s hit the %.0fs deadline (%d/%d delivered)",
                    notification.id,
                    self.deadline,
                    len(results),
                    len(registrations),
                )
            else:
                self._log_failures(notification, outcomes)

        await hooks.do_action(PUSH_SENT, notification, results)
        return results

    @staticmethod
    def _log_failures(notification: Notification, outcomes: list[Any]) -> None:
        errors = [o for o in outcomes if isinstance(o, BaseException)]
        gateway_errors = [e for e in errors if isinstance(e, PushGatewayError)]
        if gateway_errors:
            logger.error(
                "Push dispatch for %s failed for %d registration(s): %s",
                notification.id,
                len(gateway_errors),
                gateway_errors[0],
            )
        for exc in errors:
            if not isinstance(exc, PushGatewayError):
                logger.error("Push delivery for %s raised", notification.id, exc_info=exc)

    async def _deliver(self, registration: PushRegistration, notification: Notification) -> PushResult:
        token = registration.token
        result, provider_token = await self.client.send(token, registration.environment, notification)

        if result.outcome is PushOutcome.AUTH:
            self.client.invalidate_token(provider_token)
            logger.warning("APNs rejected provider token; re-signing and retrying once")
            result, _ = await self.client.send(token, registration.environment, notification)

        short = token[:8]
        if result.outcome is PushOutcome.SUCCESS:
            logger.debug("Pushed %s to %s...", notification.id, short)
        elif result.outcome is PushOutcome.PERMANENT:
            logger.info(
                "Pruning push registration %s... (HTTP %s %s)",
                short,
                result.status_code,
                result.reason or "",
            )
            await self._prune(token)
        elif result.outcome is PushOutcome.TRANSIENT:
            logger.warning("Transient APNs failure for %s...: %s", short, result.reason)
        else:
            logger.error(
                "APNs error for %s...: HTTP %s %s", short, result.status_code, result.reason or ""
            )
        return result

    async def _prune(self, token: str) -> None:
        from hookwatch.db.services import push_service

        try:
            async with self._session_maker() as session:
                removed = await push_service.delete_registration(session, token)
        except Exception:
            logger.exception("Failed to delete push registration %s...", token[:8])
            return
        if removed:
            await hooks.do_action(PUSH_REGISTRATION_PRUNED, token)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight dispatch tasks to finish."""
        if not self._tasks:
            return
        await asyncio.wait(set(self._tasks), timeout=timeout)

    async def close(self, timeout: float = 5.0) -> None:
        """Drain briefly, cancel whatever is left and close the APNs client."""
        await self.drain(timeout)
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.client.aclose()
