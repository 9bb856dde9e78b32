"""Push registration service: upsert, list and prune device tokens."""

from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from hookwatch.db.models import PushRegistration


async def upsert_registration(
    db_session: AsyncSession,
    token: str,
    platform: str,
    environment: str,
) -> PushRegistration:
    """Create or refresh the registration for a token.

    Re-registering an existing token updates its platform and environment
    and bumps ``last_confirmed_at``; ``registered_at`` is kept.
    """
    now = datetime.now(timezone.utc)
    result = await db_session.execute(
        select(PushRegistration).where(PushRegistration.token == token)
    )
    registration = result.scalar_one_or_none()

    if registration is None:
        registration = PushRegistration(
            token=token,
            platform=platform,
            environment=environment,
            registered_at=now,
            last_confirmed_at=now,
        )
        db_session.add(registration)
    else:
        registration.platform = platform
        registration.environment = environment
        registration.last_confirmed_at = now

    await db_session.commit()
    await db_session.refresh(registration)
    return registration


async def list_registrations(
    db_session: AsyncSession,
    platform: str | None = None,
) -> list[PushRegistration]:
    """List registrations, optionally filtered by platform."""
    query = select(PushRegistration).order_by(PushRegistration.registered_at)
    if platform:
        query = query.where(PushRegistration.platform == platform)
    result = await db_session.execute(query)
    return list(result.scalars().all())


async def delete_registration(db_session: AsyncSession, token: str) -> bool:
    """Delete the registration for a token. Returns True if a row was removed."""
    result = await db_session.execute(
        delete(PushRegistration).where(PushRegistration.token == token)
    )
    await db_session.commit()
    return bool(result.rowcount)
