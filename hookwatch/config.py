import os
import re
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file early so env vars are available for YAML interpolation
_env_file = Path(__file__).parent.parent / ".env"
load_dotenv(_env_file)

# Pattern to match $VAR_NAME environment variable references
ENV_VAR_PATTERN = re.compile(r"\$([A-Z_][A-Z0-9_]*)")


def interpolate_env_vars(value):
    """Recursively replace $VAR_NAME with os.environ values."""
    if isinstance(value, str):

        def replace(match):
            var = match.group(1)
            val = os.environ.get(var)
            if val is None:
                raise ValueError(f"Environment variable ${var} not set")
            return val

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    return value


def get_config_path() -> Path:
    """Return the app.yaml path, overridable with HOOKWATCH_CONFIG."""
    override = os.environ.get("HOOKWATCH_CONFIG")
    if override:
        return Path(override)
    return Path.cwd() / "app.yaml"


def load_app_config() -> dict:
    """Load and parse app.yaml with environment variable interpolation."""
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(f"app.yaml not found at {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return interpolate_env_vars(config)


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite+aiosqlite:///./hookwatch.db"
    pool_size: int = 5
    pool_overflow: int = 10
    pool_timeout: int = 30
    echo: bool = False
    create_all: bool = False


class ApnsConfig(BaseModel):
    """Apple Push Notification service credentials and dispatch limits."""

    key_path: str | None = None
    key_id: str | None = None
    team_id: str | None = None
    bundle_id: str | None = None
    token_refresh_seconds: int = 3000
    request_timeout: float = 10.0
    max_concurrency: int = 10
    dispatch_deadline_seconds: float = 30.0

    @property
    def enabled(self) -> bool:
        return all((self.key_path, self.key_id, self.team_id, self.bundle_id))


class NotificationsConfig(BaseModel):
    """Notification generation, listing and retention settings."""

    ttl_hours: int = 24
    default_limit: int = 50
    max_limit: int = 200
    cooldown_seconds: float = 30.0
    sweep_interval_seconds: float = 300.0


class AuthConfig(BaseModel):
    """API key failure limiting."""

    max_failures: int = 10
    failure_window: float = 60.0


class LogfireConfig(BaseModel):
    """Pydantic Logfire observability configuration."""

    enabled: bool = False
    service_name: str = "hookwatch"
    environment: str | None = None
    sample_rate: float = 1.0
    console: bool = False


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HOOKWATCH_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    debug: bool = False
    api_key: str

    db: DatabaseConfig = DatabaseConfig()
    apns: ApnsConfig = ApnsConfig()
    notifications: NotificationsConfig = NotificationsConfig()
    auth: AuthConfig = AuthConfig()
    logfire: LogfireConfig = LogfireConfig()


_SECTIONS = {
    "db": DatabaseConfig,
    "apns": ApnsConfig,
    "notifications": NotificationsConfig,
    "auth": AuthConfig,
    "logfire": LogfireConfig,
}


@lru_cache
def get_settings() -> Settings:
    """Load settings from the environment, .env and app.yaml."""
    base_settings = Settings()

    try:
        app_config = load_app_config()
    except FileNotFoundError:
        return base_settings

    updates = {}
    for key, model in _SECTIONS.items():
        if key in app_config:
            updates[key] = model(**app_config[key])

    if "debug" in app_config:
        updates["debug"] = bool(app_config["debug"])

    if updates:
        return base_settings.model_copy(update=updates)

    return base_settings
