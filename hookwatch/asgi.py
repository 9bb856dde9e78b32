"""ASGI application factory for hookwatch.

Serve with ``hookwatch serve`` or point any ASGI server at the factory:
``hypercorn 'hookwatch.asgi:create_app()'``.
"""

import logging
from typing import Any

from advanced_alchemy.config import EngineConfig
from advanced_alchemy.extensions.litestar import (
    AsyncSessionConfig,
    SQLAlchemyAsyncConfig,
    SQLAlchemyPlugin,
)
from litestar import Litestar

from hookwatch.auth import FailedAuthLimiter
from hookwatch.config import Settings, get_settings
from hookwatch.controllers import (
    EventsController,
    NotificationsController,
    PushController,
    VersionController,
)
from hookwatch.db.base import Base
from hookwatch.lib import observability
from hookwatch.lib.apns import ApnsClient, PushGatewayError
from hookwatch.lib.dispatcher import PushDispatcher
from hookwatch.lib.exceptions import EXCEPTION_HANDLERS
from hookwatch.lib.hooks import LOGFIRE_CONFIGURED, hooks
from hookwatch.lib.notifications import notifications

logger = logging.getLogger(__name__)


def create_db_config(settings: Settings) -> SQLAlchemyAsyncConfig:
    if "sqlite" in settings.db.url:
        engine_config = EngineConfig(echo=settings.db.echo)
    else:
        engine_kwargs: dict[str, Any] = dict(
            pool_size=settings.db.pool_size,
            max_overflow=settings.db.pool_overflow,
            pool_timeout=settings.db.pool_timeout,
            pool_pre_ping=True,
            echo=settings.db.echo,
        )
        engine_config = EngineConfig(**engine_kwargs)

    return SQLAlchemyAsyncConfig(
        connection_string=settings.db.url,
        metadata=Base.metadata,
        create_all=False,
        session_config=AsyncSessionConfig(expire_on_commit=False),
        engine_config=engine_config,
    )


def create_dispatcher(settings: Settings, session_maker: Any) -> PushDispatcher | None:
    """Build the APNs dispatcher, or None when push is not configured."""
    if not settings.apns.enabled:
        logger.info("APNs credentials not configured; push delivery disabled")
        return None

    try:
        client = ApnsClient.from_config(settings.apns)
    except PushGatewayError as exc:
        logger.warning("Push delivery disabled: %s", exc)
        return None

    return PushDispatcher(
        client,
        session_maker,
        max_concurrency=settings.apns.max_concurrency,
        deadline=settings.apns.dispatch_deadline_seconds,
    )


def create_app(settings: Settings | None = None) -> Litestar:
    """Create and configure the Litestar application."""
    settings = settings or get_settings()

    observability.configure(settings)
    observability.instrument_httpx()

    db_config = create_db_config(settings)
    session_maker = db_config.get_session
    dispatcher = create_dispatcher(settings, session_maker)

    async def on_startup(_app: Litestar) -> None:
        """Create tables if asked, load counters and wire the notification service."""
        if settings.db.create_all:
            async with db_config.get_engine().begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        notifications.configure(settings, session_maker=session_maker, dispatcher=dispatcher)
        try:
            await notifications.counters.load()
        except Exception:
            logger.warning("Could not load change counters (run `hookwatch db upgrade head`?)", exc_info=True)

        await hooks.do_action(LOGFIRE_CONFIGURED)

    async def on_shutdown(_app: Litestar) -> None:
        if dispatcher is not None:
            await dispatcher.close()

    app = Litestar(
        on_startup=[on_startup],
        on_shutdown=[on_shutdown],
        route_handlers=[
            VersionController,
            NotificationsController,
            PushController,
            EventsController,
        ],
        plugins=[SQLAlchemyPlugin(config=db_config)],
        exception_handlers=EXCEPTION_HANDLERS,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.api_key = settings.api_key
    app.state.auth_limiter = FailedAuthLimiter(
        max_failures=settings.auth.max_failures,
        window=settings.auth.failure_window,
    )
    app.state.dispatcher = dispatcher
    return app
