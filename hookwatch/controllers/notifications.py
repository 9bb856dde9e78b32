"""Notifications controller: cursor listing and bulk acknowledgment."""

from litestar import Controller, Request, get, post
from litestar.params import Parameter
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from hookwatch.auth import api_key_guard
from hookwatch.db.services import notification_service
from hookwatch.lib.hooks import NOTIFICATIONS_ACKNOWLEDGED, hooks


class AckRequest(BaseModel):
    ids: list[str] = Field(default_factory=list)


class NotificationsController(Controller):
    path = "/notifications"
    guards = [api_key_guard]

    @get("/")
    async def list_notifications(
        self,
        request: Request,
        db_session: AsyncSession,
        after: str | None = Parameter(query="after", default=None),
        limit: int | None = Parameter(query="limit", default=None),
    ) -> dict:
        """Initial load without ``after``; ascending catch-up with it."""
        cfg = request.app.state.settings.notifications
        items = await notification_service.list_notifications(
            db_session,
            after=after,
            limit=limit,
            default_limit=cfg.default_limit,
            max_limit=cfg.max_limit,
        )
        return {"notifications": [n.to_dict() for n in items]}

    @post("/ack", status_code=200)
    async def acknowledge(self, db_session: AsyncSession, data: AckRequest) -> dict:
        count = await notification_service.acknowledge_notifications(db_session, data.ids)
        if count:
            await hooks.do_action(NOTIFICATIONS_ACKNOWLEDGED, data.ids, count)
        return {"status": "ok", "acknowledged": count}
