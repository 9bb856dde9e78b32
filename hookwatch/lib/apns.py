"""Apple Push Notification service client.

Authenticates with an ES256 provider token signed by the team's APNs key.
The token is cached and re-signed on a fixed interval (Apple rejects tokens
older than an hour and throttles tokens refreshed more often than every
twenty minutes). Requests go over HTTP/2 to the environment the device
registered with.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

import httpx
import jwt

if TYPE_CHECKING:
    from hookwatch.config import ApnsConfig
    from hookwatch.lib.notifications import Notification

logger = logging.getLogger(__name__)

APNS_HOSTS = {
    "sandbox": "https://api.sandbox.push.apple.com",
    "production": "https://api.push.apple.com",
}

# 400 reasons meaning the token will never be deliverable again.
PERMANENT_REASONS = frozenset({"BadDeviceToken", "Unregistered", "DeviceTokenNotForTopic"})


class PushEnvironment(str, Enum):
    SANDBOX = "sandbox"
    PRODUCTION = "production"


class PushOutcome(str, Enum):
    SUCCESS = "success"
    PERMANENT = "permanent"
    TRANSIENT = "transient"
    AUTH = "auth"
    ERROR = "error"


class PushGatewayError(Exception):
    """Raised when a provider token cannot be produced."""


@dataclass
class PushResult:
    outcome: PushOutcome
    status_code: int | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is PushOutcome.SUCCESS


def status_to_outcome(status_code: int, reason: str | None = None) -> PushOutcome:
    """Map an APNs response status (and error reason) to an outcome."""
    if status_code == 200:
        return PushOutcome.SUCCESS
    if status_code == 410:
        return PushOutcome.PERMANENT
    if status_code == 400 and reason in PERMANENT_REASONS:
        return PushOutcome.PERMANENT
    if status_code == 403:
        return PushOutcome.AUTH
    if status_code in (429, 503):
        return PushOutcome.TRANSIENT
    return PushOutcome.ERROR


def build_payload(notification: Notification) -> dict[str, Any]:
    """APNs body carrying the alert plus the scoping ids the poll path returns."""
    return {
        "aps": {
            "alert": {"title": notification.title, "body": notification.body},
            "sound": "default",
            "content-available": 1,
        },
        "notification_id": str(notification.id),
        "session_id": notification.session_id,
        "device_id": notification.device_id,
        "category": notification.category.value,
    }


class ApnsClient:
    def __init__(
        self,
        *,
        signing_key: str,
        key_id: str,
        team_id: str,
        bundle_id: str,
        token_refresh_seconds: int = 3000,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.key_id = key_id
        self.team_id = team_id
        self.bundle_id = bundle_id
        self.token_refresh_seconds = token_refresh_seconds
        self._signing_key = signing_key
        self._clock = clock
        self._cached_token: str | None = None
        self._issued_at: float = 0.0
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(http2=True, timeout=timeout)

    @classmethod
    def from_config(cls, config: ApnsConfig) -> ApnsClient:
        """Build a client from the ``apns`` settings section, reading the .p8 key."""
        if not config.enabled:
            raise PushGatewayError("APNs credentials are not configured")
        try:
            signing_key = Path(config.key_path).read_text()
        except OSError as exc:
            raise PushGatewayError(f"Cannot read APNs key {config.key_path}: {exc}") from exc
        return cls(
            signing_key=signing_key,
            key_id=config.key_id,
            team_id=config.team_id,
            bundle_id=config.bundle_id,
            token_refresh_seconds=config.token_refresh_seconds,
            timeout=config.request_timeout,
        )

    def provider_token(self) -> str:
        """Return the cached provider token, signing a new one when it has aged out."""
        now = self._clock()
        if self._cached_token is not None and now - self._issued_at < self.token_refresh_seconds:
            return self._cached_token

        try:
            token = jwt.encode(
                {"iss": self.team_id, "iat": int(now)},
                self._signing_key,
                algorithm="ES256",
                headers={"kid": self.key_id},
            )
        except (ValueError, TypeError, jwt.PyJWTError) as exc:
            raise PushGatewayError(f"Failed to sign APNs provider token: {exc}") from exc

        self._cached_token = token
        self._issued_at = now
        logger.debug("Signed new APNs provider token (kid=%s)", self.key_id)
        return token

    def invalidate_token(self, token: str) -> bool:
        """Drop the cached token if it is still *token*.

        Concurrent sends that all saw a 403 with the same token only cause
        one re-sign.
        """
        if self._cached_token is not None and self._cached_token == token:
            self._cached_token = None
            self._issued_at = 0.0
            return True
        return False

    async def send(
        self,
        device_token: str,
        environment: PushEnvironment | str,
        notification: Notification,
    ) -> tuple[PushResult, str]:
        """Send one push. Returns the result and the provider token used.

        Transport failures are reported as transient results. Raises
        PushGatewayError only when no provider token can be produced.
        """
        provider_token = self.provider_token()
        env = PushEnvironment(environment)
        url = f"{APNS_HOSTS[env.value]}/3/device/{device_token}"
        headers = {
            "authorization": f"bearer {provider_token}",
            "apns-topic": self.bundle_id,
            "apns-push-type": "alert",
            "apns-priority": "10",
            "apns-collapse-id": str(notification.id),
        }

        try:
            response = await self._http.post(url, json=build_payload(notification), headers=headers)
        except httpx.HTTPError as exc:
            return PushResult(PushOutcome.TRANSIENT, reason=str(exc) or type(exc).__name__), provider_token

        reason = None
        if response.status_code != 200:
            try:
                reason = response.json().get("reason")
            except ValueError:
                reason = response.text or None

        outcome = status_to_outcome(response.status_code, reason)
        return PushResult(outcome, status_code=response.status_code, reason=reason), provider_token

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
