"""Notification store: insert, cursor listing, acknowledgment and TTL sweep."""

import json
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hookwatch.db.models import EventRecord, StoredNotification
from hookwatch.lib.notifications import Notification

DEFAULT_LIMIT = 50
MAX_LIMIT = 200
NOTIFICATION_TTL_HOURS = 24

_TICK = timedelta(microseconds=1)


def clamp_limit(limit: int | None, default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    """Apply the default and the server-side cap to a requested page size."""
    if limit is None or limit <= 0:
        return default
    return min(limit, maximum)


async def next_created_at(db_session: AsyncSession, now: datetime | None = None) -> datetime:
    """Return a creation timestamp strictly newer than every stored row."""
    now = now or datetime.now(timezone.utc)
    result = await db_session.execute(select(func.max(StoredNotification.created_at)))
    newest = result.scalar_one_or_none()
    if newest is not None and now <= newest:
        return newest + _TICK
    return now


def _to_row(notification: Notification) -> StoredNotification:
    return StoredNotification(
        id=notification.id,
        event_id=notification.event_id,
        session_id=notification.session_id,
        device_id=notification.device_id,
        title=notification.title,
        body=notification.body,
        category=notification.category.value,
        payload_json=json.dumps(notification.payload),
        created_at=notification.created_at,
        acknowledged=notification.acknowledged,
    )


async def insert_notification(db_session: AsyncSession, notification: Notification) -> None:
    """Add a notification to the caller's transaction and flush it.

    The caller owns the commit so the notification lands atomically with the
    event it was generated from.
    """
    db_session.add(_to_row(notification))
    await db_session.flush()


async def _resolve_cursor(db_session: AsyncSession, after: str) -> datetime | None:
    """Map an ``after`` cursor to the ``created_at`` boundary it denotes.

    Accepts a notification id, or an ISO-8601 timestamp. Returns None when
    the cursor names a row that has already been swept.
    """
    try:
        cursor_id = UUID(after)
    except ValueError:
        cursor_id = None

    if cursor_id is not None:
        result = await db_session.execute(
            select(StoredNotification.created_at).where(StoredNotification.id == cursor_id)
        )
        return result.scalar_one_or_none()

    try:
        boundary = datetime.fromisoformat(after.replace("Z", "+00:00"))
    except ValueError:
        return None
    if boundary.tzinfo is None:
        boundary = boundary.replace(tzinfo=timezone.utc)
    return boundary


async def list_notifications(
    db_session: AsyncSession,
    after: str | None = None,
    limit: int | None = None,
    *,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> list[Notification]:
    """List notifications for the poll path.

    Without a cursor, returns the most recent *limit* rows newest-first
    (initial load). With a cursor, returns rows strictly newer than it,
    oldest-first (catch-up). A cursor naming a swept row returns every
    retained row oldest-first.
    """
    limit = clamp_limit(limit, default_limit, max_limit)
    query = select(StoredNotification)

    if after:
        boundary = await _resolve_cursor(db_session, after)
        if boundary is not None:
            query = query.where(StoredNotification.created_at > boundary)
        query = query.order_by(StoredNotification.created_at.asc())
    else:
        query = query.order_by(StoredNotification.created_at.desc())

    result = await db_session.execute(query.limit(limit))
    return [Notification.from_row(row) for row in result.scalars().all()]


async def acknowledge_notifications(db_session: AsyncSession, ids: list[str]) -> int:
    """Mark notifications acknowledged. Returns the number of rows newly acknowledged.

    Unknown, malformed or already-acknowledged ids are ignored.
    """
    parsed: set[UUID] = set()
    for raw in ids:
        try:
            parsed.add(UUID(str(raw)))
        except ValueError:
            continue

    if not parsed:
        return 0

    result = await db_session.execute(
        update(StoredNotification)
        .where(
            StoredNotification.id.in_(parsed),
            StoredNotification.acknowledged.is_(False),
        )
        .values(acknowledged=True)
    )
    await db_session.commit()
    return result.rowcount or 0


async def sweep_expired(
    db_session: AsyncSession,
    ttl: timedelta = timedelta(hours=NOTIFICATION_TTL_HOURS),
    now: datetime | None = None,
) -> int:
    """Delete notifications created before ``now - ttl``. Returns rows deleted."""
    cutoff = (now or datetime.now(timezone.utc)) - ttl
    result = await db_session.execute(
        delete(StoredNotification).where(StoredNotification.created_at < cutoff)
    )
    await db_session.commit()
    return result.rowcount or 0


async def get_session_title(db_session: AsyncSession, session_id: str) -> str | None:
    """Return the latest submitted prompt for a session, used as alert title."""
    result = await db_session.execute(
        select(EventRecord.prompt)
        .where(
            EventRecord.session_id == session_id,
            EventRecord.hook_event_name == "UserPromptSubmit",
            EventRecord.prompt.is_not(None),
        )
        .order_by(EventRecord.received_at.desc())
        .limit(1)
    )
    prompt = result.scalar_one_or_none()
    if prompt is None:
        return None
    return prompt.strip() or None
