"""Shared pytest fixtures."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
import yaml
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import hookwatch.db.models  # noqa: F401 - register all models on Base
from hookwatch.config import DatabaseConfig, NotificationsConfig, Settings
from hookwatch.db.base import Base
from hookwatch.lib.classifier import NotificationCategory
from hookwatch.lib.hooks import hooks
from hookwatch.lib.notifications import Notification


@pytest.fixture
def temp_app_yaml(tmp_path):
    """Create a temporary app.yaml file for testing."""
    config_path = tmp_path / "app.yaml"

    def _create_config(config: dict):
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f)
        return config_path

    return _create_config


@pytest.fixture
def clean_hooks():
    """Save and restore hooks state around a test."""
    original_filters = hooks._filters.copy()
    original_actions = hooks._actions.copy()
    yield
    hooks._filters = original_filters
    hooks._actions = original_actions


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'hookwatch.db'}"


@pytest.fixture
async def engine(db_url):
    engine = create_async_engine(db_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def settings(db_url):
    return Settings(
        api_key="test-key",
        db=DatabaseConfig(url=db_url, create_all=True),
        notifications=NotificationsConfig(cooldown_seconds=0),
    )


@pytest.fixture
def make_notification():
    """Factory for Notification objects with sensible defaults."""
    base = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make(**overrides) -> Notification:
        counter["n"] += 1
        fields = dict(
            session_id="sess-1",
            device_id="dev-1",
            title="Session Stopped",
            body="Session stopped: done",
            category=NotificationCategory.STOP,
            event_id=uuid4(),
            created_at=base + timedelta(seconds=counter["n"]),
        )
        fields.update(overrides)
        fields.setdefault("payload", {"session_id": fields["session_id"], "device_id": fields["device_id"]})
        return Notification(**fields)

    return _make


@pytest.fixture
def make_event():
    """Factory for ingest request payloads."""

    def _make(hook_event_name="Stop", session_id="sess-1", device_id="dev-1", **event_fields) -> dict:
        return {
            "device": {"device_id": device_id, "device_name": "laptop", "platform": "mac"},
            "event": {"session_id": session_id, "hook_event_name": hook_event_name, **event_fields},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return _make
