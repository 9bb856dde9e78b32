"""Tests for settings loading."""

import os
from unittest.mock import patch

import pytest

from hookwatch.config import (
    ApnsConfig,
    Settings,
    get_config_path,
    get_settings,
    interpolate_env_vars,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestInterpolation:
    def test_replaces_nested_values(self):
        with patch.dict(os.environ, {"APNS_TEAM": "TEAM123"}):
            result = interpolate_env_vars({"apns": {"team_id": "$APNS_TEAM"}, "list": ["x-$APNS_TEAM"]})
        assert result == {"apns": {"team_id": "TEAM123"}, "list": ["x-TEAM123"]}

    def test_missing_variable_raises(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("HOOKWATCH_MISSING_VAR", None)
            with pytest.raises(ValueError, match="HOOKWATCH_MISSING_VAR"):
                interpolate_env_vars("$HOOKWATCH_MISSING_VAR")

    def test_non_strings_untouched(self):
        assert interpolate_env_vars(5) == 5
        assert interpolate_env_vars(None) is None


class TestConfigPath:
    def test_override_from_env(self, tmp_path):
        custom = tmp_path / "relay.yaml"
        with patch.dict(os.environ, {"HOOKWATCH_CONFIG": str(custom)}):
            assert get_config_path() == custom

    def test_default_is_cwd(self, tmp_path, monkeypatch):
        monkeypatch.delenv("HOOKWATCH_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        assert get_config_path() == tmp_path / "app.yaml"


class TestGetSettings:
    def test_env_prefix_and_nested_delimiter(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("HOOKWATCH_CONFIG", raising=False)
        monkeypatch.setenv("HOOKWATCH_API_KEY", "from-env")
        monkeypatch.setenv("HOOKWATCH_NOTIFICATIONS__TTL_HOURS", "6")

        settings = get_settings()

        assert settings.api_key == "from-env"
        assert settings.notifications.ttl_hours == 6
        assert not settings.apns.enabled

    def test_app_yaml_sections_override(self, temp_app_yaml, monkeypatch):
        monkeypatch.setenv("HOOKWATCH_API_KEY", "k")
        monkeypatch.setenv("APNS_KEY_ID", "KEY123")
        path = temp_app_yaml(
            {
                "debug": True,
                "apns": {
                    "key_path": "/keys/AuthKey.p8",
                    "key_id": "$APNS_KEY_ID",
                    "team_id": "TEAM",
                    "bundle_id": "dev.hookwatch.app",
                },
                "notifications": {"cooldown_seconds": 5},
            }
        )
        monkeypatch.setenv("HOOKWATCH_CONFIG", str(path))

        settings = get_settings()

        assert settings.debug is True
        assert settings.apns.key_id == "KEY123"
        assert settings.apns.enabled
        assert settings.notifications.cooldown_seconds == 5
        assert settings.notifications.default_limit == 50

    def test_settings_cached(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("HOOKWATCH_CONFIG", raising=False)
        monkeypatch.setenv("HOOKWATCH_API_KEY", "k")
        assert get_settings() is get_settings()


def test_apns_enabled_requires_all_credentials():
    assert not ApnsConfig(key_path="k", key_id="i", team_id="t").enabled
    assert ApnsConfig(key_path="k", key_id="i", team_id="t", bundle_id="b").enabled


def test_defaults():
    settings = Settings(api_key="k")
    assert settings.notifications.max_limit == 200
    assert settings.apns.token_refresh_seconds == 3000
    assert settings.db.url.startswith("sqlite+aiosqlite")
