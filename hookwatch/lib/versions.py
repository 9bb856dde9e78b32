"""Monotonic change counters exposed through ``GET /version``.

Two counters exist: ``data_version`` moves on every ingested event and
``notification_version`` moves once per created notification. Both are
persisted in ``server_metadata`` and loaded at startup, so a consumer
comparing the last value it saw never misses a change across a restart.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from sqlalchemy import select

from hookwatch.db.models import ServerMetadata

logger = logging.getLogger(__name__)

DATA_VERSION = "data_version"
NOTIFICATION_VERSION = "notification_version"


class ChangeCounters:
    """In-memory counters backed by ``server_metadata`` rows.

    A bump persists the new value before publishing it in memory, so a value
    a client has observed is always durable. The per-counter lock only
    orders concurrent bumps; readers never wait.
    """

    def __init__(self, session_maker: Any = None) -> None:
        self._session_maker = session_maker
        self._values: dict[str, int] = {DATA_VERSION: 0, NOTIFICATION_VERSION: 0}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def data_version(self) -> int:
        return self._values[DATA_VERSION]

    @property
    def notification_version(self) -> int:
        return self._values[NOTIFICATION_VERSION]

    def snapshot(self) -> dict[str, int]:
        return dict(self._values)

    async def load(self) -> None:
        """Read persisted values. Never lowers an in-memory value."""
        if self._session_maker is None:
            return
        async with self._session_maker() as session:
            result = await session.execute(
                select(ServerMetadata.key, ServerMetadata.value).where(
                    ServerMetadata.key.in_(list(self._values))
                )
            )
            for key, value in result.all():
                self._values[key] = max(self._values[key], int(value))
        logger.info(
            "Loaded change counters data_version=%d notification_version=%d",
            self.data_version,
            self.notification_version,
        )

    async def bump(self, key: str) -> int:
        """Increment *key* by one and return the new value."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            new_value = self._values[key] + 1
            await self._persist(key, new_value)
            self._values[key] = new_value
            return new_value

    async def bump_data(self) -> int:
        return await self.bump(DATA_VERSION)

    async def bump_notification(self) -> int:
        return await self.bump(NOTIFICATION_VERSION)

    async def _persist(self, key: str, value: int) -> None:
        if self._session_maker is None:
            return
        async with self._session_maker() as session:
            result = await session.execute(select(ServerMetadata).where(ServerMetadata.key == key))
            row = result.scalar_one_or_none()
            if row is None:
                session.add(ServerMetadata(key=key, value=value))
            elif row.value < value:
                row.value = value
            await session.commit()
