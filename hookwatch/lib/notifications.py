"""Notification generation for ingested hook events.

An event is stored, classified and, when notifiable, turned into a
Notification inside one database transaction. Everything that must only
happen once the rows are durable (counter bumps, push dispatch, retention
sweep, hooks) runs after the commit.

Usage:
    from hookwatch.lib.notifications import notifications

    result = await notifications.ingest(db_session, payload)
    if result.notification is not None:
        ...
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from hookwatch.lib.classifier import NotificationCategory, classify, render
from hookwatch.lib.cooldown import NotificationCooldown
from hookwatch.lib.hooks import (
    EVENT_INGESTED,
    NOTIFICATION_CREATED,
    NOTIFICATION_PRE_CREATE,
    hooks,
)
from hookwatch.lib.observability import span
from hookwatch.lib.versions import ChangeCounters

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hookwatch.config import Settings
    from hookwatch.db.models import EventRecord, StoredNotification
    from hookwatch.lib.dispatcher import PushDispatcher

logger = logging.getLogger(__name__)

PROMPT_MAX_LENGTH = 200


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Notification:
    session_id: str
    device_id: str
    title: str
    body: str
    category: NotificationCategory
    event_id: UUID
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)
    payload: dict[str, Any] = field(default_factory=dict)
    acknowledged: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "event_id": str(self.event_id),
            "session_id": self.session_id,
            "device_id": self.device_id,
            "title": self.title,
            "body": self.body,
            "category": self.category.value,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
            "acknowledged": self.acknowledged,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Notification:
        """Build a Notification from its wire form."""
        return cls(
            id=UUID(str(data["id"])),
            event_id=UUID(str(data["event_id"])),
            session_id=data["session_id"],
            device_id=data["device_id"],
            title=data.get("title", ""),
            body=data.get("body", ""),
            category=NotificationCategory(data["category"]),
            payload=dict(data.get("payload") or {}),
            created_at=_parse_datetime(data["created_at"]),
            acknowledged=bool(data.get("acknowledged", False)),
        )

    @classmethod
    def from_row(cls, row: StoredNotification) -> Notification:
        return cls(
            id=row.id,
            event_id=row.event_id,
            session_id=row.session_id,
            device_id=row.device_id,
            title=row.title,
            body=row.body,
            category=NotificationCategory(row.category),
            payload=json.loads(row.payload_json or "{}"),
            created_at=_parse_datetime(row.created_at),
            acknowledged=row.acknowledged,
        )


@dataclass
class IngestResult:
    event_id: UUID
    notification: Notification | None = None


class NotificationService:
    """Turns ingested events into notifications and publishes the changes.

    Holds the process-wide change counters, the cooldown buckets and a
    reference to the push dispatcher. ``configure`` is called once at
    application startup.
    """

    def __init__(self) -> None:
        self.counters = ChangeCounters()
        self.cooldown = NotificationCooldown()
        self.ttl = timedelta(hours=24)
        self.sweep_interval = 300.0
        self._dispatcher: PushDispatcher | None = None
        self._session_maker: Any = None
        self._last_sweep: float | None = None
        self._sweep_lock = asyncio.Lock()
        self._ingest_lock = asyncio.Lock()

    def configure(
        self,
        settings: Settings,
        session_maker: Any = None,
        dispatcher: PushDispatcher | None = None,
    ) -> None:
        cfg = settings.notifications
        self.cooldown = NotificationCooldown(window=cfg.cooldown_seconds)
        self.ttl = timedelta(hours=cfg.ttl_hours)
        self.sweep_interval = cfg.sweep_interval_seconds
        self._session_maker = session_maker
        self._dispatcher = dispatcher
        self._last_sweep = None
        self._sweep_lock = asyncio.Lock()
        self._ingest_lock = asyncio.Lock()
        self.counters = ChangeCounters(session_maker)

    async def record_event(
        self, db_session: AsyncSession, payload: dict[str, Any]
    ) -> tuple[EventRecord, Notification | None]:
        """Store the raw event and, if notifiable, its notification.

        Does not commit. Classification failures make the event not
        notifiable and never fail the ingest.
        """
        from hookwatch.db.models import EventRecord
        from hookwatch.db.services import notification_service

        device = payload["device"]
        event = payload["event"]
        prompt = event.get("prompt")
        if prompt:
            prompt = prompt[:PROMPT_MAX_LENGTH]

        record = EventRecord(
            device_id=device["device_id"],
            session_id=event["session_id"],
            hook_event_name=event["hook_event_name"],
            notification_type=event.get("notification_type"),
            tool_name=event.get("tool_name"),
            message=event.get("message"),
            prompt=prompt,
            timestamp=_parse_datetime(payload.get("timestamp") or _utcnow()),
            received_at=_utcnow(),
            event_json=json.dumps(event, default=str),
        )
        db_session.add(record)
        await db_session.flush()

        try:
            classification = classify(event["hook_event_name"], event.get("notification_type"))
        except Exception:
            logger.warning("Failed to classify event %s", record.id, exc_info=True)
            classification = None

        if classification is None:
            return record, None

        if not self.cooldown.check(record.session_id, classification.category):
            logger.debug(
                "Suppressed %s notification for session %s (cooldown)",
                classification.category.value,
                record.session_id,
            )
            return record, None

        session_title = await notification_service.get_session_title(db_session, record.session_id)
        title, body = render(
            classification,
            session_title=session_title,
            tool_name=record.tool_name,
            message=record.message,
        )

        notification = Notification(
            session_id=record.session_id,
            device_id=record.device_id,
            title=title,
            body=body,
            category=classification.category,
            event_id=record.id,
            payload={"session_id": record.session_id, "device_id": record.device_id},
        )

        notification = await hooks.apply_filters(NOTIFICATION_PRE_CREATE, notification, record)
        if notification is None:
            return record, None

        notification.created_at = await notification_service.next_created_at(db_session)
        await notification_service.insert_notification(db_session, notification)
        return record, notification

    async def ingest(self, db_session: AsyncSession, payload: dict[str, Any]) -> IngestResult:
        """Persist an event atomically with its notification, then publish.

        Ingests are serialized within the process so ``created_at`` order
        matches commit order and the cursor never skips a row. The cooldown
        is only started once the notification is committed.
        """
        with span("notifications.ingest", hook_event_name=payload["event"]["hook_event_name"]):
            async with self._ingest_lock:
                try:
                    record, notification = await self.record_event(db_session, payload)
                    await db_session.commit()
                except Exception:
                    await db_session.rollback()
                    raise

                if notification is not None:
                    self.cooldown.record(notification.session_id, notification.category)

            await self._after_commit(record, notification)
            return IngestResult(event_id=record.id, notification=notification)

    async def _after_commit(self, record: EventRecord, notification: Notification | None) -> None:
        try:
            await self.counters.bump_data()
        except Exception:
            logger.exception("Failed to bump data_version after event %s", record.id)

        if notification is not None:
            try:
                await self.counters.bump_notification()
            except Exception:
                logger.exception(
                    "Failed to bump notification_version after notification %s", notification.id
                )

            if self._dispatcher is not None:
                self._dispatcher.schedule(notification)

            await self.maybe_sweep()
            await hooks.do_action(NOTIFICATION_CREATED, notification)

        await hooks.do_action(EVENT_INGESTED, record, notification)

    async def maybe_sweep(self, now: float | None = None) -> int:
        """Run the retention sweep if the throttle interval has elapsed.

        Returns rows deleted. Sweep failures are logged and reported as 0.
        """
        if self._session_maker is None:
            return 0

        from hookwatch.db.services import notification_service

        now = time.monotonic() if now is None else now
        async with self._sweep_lock:
            if (
                self._last_sweep is not None
                and self.sweep_interval > 0
                and now - self._last_sweep < self.sweep_interval
            ):
                return 0
            self._last_sweep = now

            try:
                async with self._session_maker() as session:
                    deleted = await notification_service.sweep_expired(session, self.ttl)
            except Exception:
                logger.exception("Notification retention sweep failed")
                return 0

        if deleted:
            logger.info("Swept %d expired notifications", deleted)
        return deleted


# Global singleton
notifications = NotificationService()
