from datetime import datetime
from uuid import UUID

from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import Boolean, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from hookwatch.db.base import Base


class StoredNotification(Base):
    """A user-visible alert derived from exactly one ingested event."""

    __tablename__ = "notifications"

    event_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    session_id: Mapped[str] = mapped_column(String(255), nullable=False)
    device_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True), nullable=False)
    acknowledged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_notifications_session_id", "session_id"),
        Index("ix_notifications_created_at", "created_at"),
    )


class PushRegistration(Base):
    """A push-capable endpoint a consumer has registered."""

    __tablename__ = "push_registrations"

    token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    platform: Mapped[str] = mapped_column(String(50), nullable=False)
    environment: Mapped[str] = mapped_column(String(20), nullable=False, default="production")
    registered_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True), nullable=False)
    last_confirmed_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_push_registrations_platform", "platform"),
    )
