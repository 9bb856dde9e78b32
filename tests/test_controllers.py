"""HTTP tests for the relay API."""

import pytest
from litestar.testing import TestClient

from hookwatch import __version__
from hookwatch.asgi import create_app
from hookwatch.config import AuthConfig

AUTH = {"Authorization": "Bearer test-key"}


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as client:
        yield client


def _event(hook_event_name="Stop", **fields):
    return {
        "device": {"device_id": "dev-1", "device_name": "laptop", "platform": "mac"},
        "event": {"session_id": "sess-1", "hook_event_name": hook_event_name, **fields},
        "timestamp": "2026-10-18T12:00:00Z",
    }


class TestAuth:
    def test_missing_token_rejected(self, client):
        response = client.get("/version")
        assert response.status_code == 401
        assert response.json()["status_code"] == 401

    def test_wrong_token_rejected(self, client):
        response = client.get("/version", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_repeated_failures_rate_limited(self, settings):
        settings = settings.model_copy(update={"auth": AuthConfig(max_failures=2, failure_window=60)})
        with TestClient(create_app(settings)) as client:
            for _ in range(2):
                assert client.get("/version", headers={"Authorization": "Bearer bad"}).status_code == 401
            response = client.get("/version", headers=AUTH)
            assert response.status_code == 429


class TestVersion:
    def test_initial_versions(self, client):
        response = client.get("/version", headers=AUTH)
        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "server_version": __version__,
            "data_version": 0,
            "notification_version": 0,
        }

    def test_versions_move_on_ingest(self, client):
        client.post("/events", json=_event("PreToolUse"), headers=AUTH)
        client.post("/events", json=_event("Stop"), headers=AUTH)

        body = client.get("/version", headers=AUTH).json()
        assert body["data_version"] == 2
        assert body["notification_version"] == 1


class TestEvents:
    def test_notifiable_event_returns_notification_id(self, client):
        response = client.post("/events", json=_event("PermissionRequest", tool_name="Bash"), headers=AUTH)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert "notification_id" in body

    def test_non_notifiable_event(self, client):
        response = client.post("/events", json=_event("SessionStart"), headers=AUTH)
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_invalid_body_is_422(self, client):
        response = client.post("/events", json={"event": {"session_id": "s"}}, headers=AUTH)
        assert response.status_code == 422
        assert response.json()["status_code"] == 422


class TestNotifications:
    def test_list_and_catch_up(self, client):
        ids = [
            client.post("/events", json=_event("PermissionRequest", message=str(i)), headers=AUTH).json()[
                "notification_id"
            ]
            for i in range(3)
        ]

        initial = client.get("/notifications", headers=AUTH).json()["notifications"]
        assert [n["id"] for n in initial] == list(reversed(ids))
        assert initial[0]["payload"] == {"session_id": "sess-1", "device_id": "dev-1"}

        catch_up = client.get("/notifications", params={"after": ids[0]}, headers=AUTH).json()
        assert [n["id"] for n in catch_up["notifications"]] == ids[1:]

    def test_limit_param(self, client):
        for _ in range(3):
            client.post("/events", json=_event("PermissionRequest"), headers=AUTH)

        body = client.get("/notifications", params={"limit": 2}, headers=AUTH).json()
        assert len(body["notifications"]) == 2

    def test_ack_is_idempotent(self, client):
        nid = client.post("/events", json=_event("Stop"), headers=AUTH).json()["notification_id"]

        first = client.post("/notifications/ack", json={"ids": [nid, "unknown"]}, headers=AUTH)
        assert first.status_code == 200
        assert first.json() == {"status": "ok", "acknowledged": 1}

        second = client.post("/notifications/ack", json={"ids": [nid]}, headers=AUTH)
        assert second.json() == {"status": "ok", "acknowledged": 0}

        (listed,) = client.get("/notifications", headers=AUTH).json()["notifications"]
        assert listed["acknowledged"] is True

    def test_unexpected_error_is_json_500(self, client, monkeypatch):
        from hookwatch.db.services import notification_service

        async def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(notification_service, "list_notifications", explode)

        response = client.get("/notifications", headers=AUTH)
        assert response.status_code == 500
        assert response.json() == {"status_code": 500, "detail": "Internal Server Error"}


class TestPushRegister:
    def test_register_and_reregister(self, client):
        body = {"platform": "ios", "token": "abc123", "environment": "sandbox"}
        assert client.post("/push/register", json=body, headers=AUTH).json() == {"status": "ok"}

        body["environment"] = "production"
        assert client.post("/push/register", json=body, headers=AUTH).status_code == 200

    def test_invalid_environment(self, client):
        body = {"platform": "ios", "token": "abc123", "environment": "staging"}
        assert client.post("/push/register", json=body, headers=AUTH).status_code == 422
