"""Event ingestion controller.

Accepts hook events from producers, stores them and generates
notifications in one transaction.
"""

from datetime import datetime

from litestar import Controller, post
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from hookwatch.auth import api_key_guard
from hookwatch.lib.notifications import notifications


class DeviceInfo(BaseModel):
    device_id: str = Field(min_length=1, max_length=255)
    device_name: str = Field(min_length=1, max_length=255)
    platform: str = Field(min_length=1, max_length=50)


class EventData(BaseModel):
    session_id: str = Field(min_length=1, max_length=255)
    hook_event_name: str = Field(min_length=1, max_length=100)
    notification_type: str | None = None
    tool_name: str | None = None
    message: str | None = None
    prompt: str | None = None
    cwd: str | None = None


class EventRequest(BaseModel):
    device: DeviceInfo
    event: EventData
    timestamp: datetime


class EventsController(Controller):
    path = "/events"
    guards = [api_key_guard]

    @post("/", status_code=200)
    async def ingest(self, db_session: AsyncSession, data: EventRequest) -> dict:
        result = await notifications.ingest(db_session, data.model_dump(mode="json"))
        response = {"status": "ok"}
        if result.notification is not None:
            response["notification_id"] = str(result.notification.id)
        return response
