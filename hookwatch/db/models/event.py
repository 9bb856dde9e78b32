from datetime import datetime

from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hookwatch.db.base import Base


class EventRecord(Base):
    """Raw hook event as received from a producer."""

    __tablename__ = "events"

    device_id: Mapped[str] = mapped_column(String(255), nullable=False)
    session_id: Mapped[str] = mapped_column(String(255), nullable=False)
    hook_event_name: Mapped[str] = mapped_column(String(100), nullable=False)
    notification_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tool_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    prompt: Mapped[str | None] = mapped_column(String(200), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True), nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True), nullable=False)
    event_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    __table_args__ = (
        Index("ix_events_session_id", "session_id"),
        Index("ix_events_device_id", "device_id"),
        Index("ix_events_received_at", "received_at"),
    )
