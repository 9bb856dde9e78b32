"""Push registration controller."""

import logging
from typing import Literal

from litestar import Controller, post
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from hookwatch.auth import api_key_guard
from hookwatch.db.services import push_service

logger = logging.getLogger(__name__)


class PushRegisterRequest(BaseModel):
    platform: Literal["ios"] = "ios"
    token: str = Field(min_length=1, max_length=255)
    environment: Literal["sandbox", "production"] = "production"


class PushController(Controller):
    path = "/push"
    guards = [api_key_guard]

    @post("/register", status_code=200)
    async def register(self, db_session: AsyncSession, data: PushRegisterRequest) -> dict:
        """Register or refresh a device token. Re-registering upserts."""
        await push_service.upsert_registration(
            db_session,
            token=data.token,
            platform=data.platform,
            environment=data.environment,
        )
        logger.info("Registered %s push token %s... (%s)", data.platform, data.token[:8], data.environment)
        return {"status": "ok"}
