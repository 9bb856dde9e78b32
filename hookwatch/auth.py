"""Bearer API key guard with per-IP failed-attempt limiting."""

import hmac
import time

from litestar.connection import ASGIConnection
from litestar.exceptions import NotAuthorizedException, TooManyRequestsException
from litestar.handlers.base import BaseRouteHandler


class FailedAuthLimiter:
    """Per-IP sliding window that tracks failed auth attempts.

    Only records *failed* attempts; successful requests don't touch it.
    """

    def __init__(self, max_failures: int = 10, window: float = 60.0) -> None:
        self.max_failures = max_failures
        self.window = window
        self._buckets: dict[str, list[float]] = {}
        self._last_cleanup = time.monotonic()
        self._cleanup_interval = 60.0

    def _cleanup_stale(self, now: float) -> None:
        if now - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = now
        cutoff = now - self.window
        for key in list(self._buckets):
            self._buckets[key] = [t for t in self._buckets[key] if t > cutoff]
            if not self._buckets[key]:
                del self._buckets[key]

    def record_failure(self, ip: str) -> None:
        now = time.monotonic()
        self._cleanup_stale(now)
        self._buckets.setdefault(ip, []).append(now)

    def is_blocked(self, ip: str) -> bool:
        now = time.monotonic()
        self._cleanup_stale(now)
        cutoff = now - self.window
        timestamps = self._buckets.get(ip)
        if not timestamps:
            return False
        self._buckets[ip] = [t for t in timestamps if t > cutoff]
        return len(self._buckets[ip]) >= self.max_failures


def get_client_ip(connection: ASGIConnection) -> str:
    """Extract client IP, checking x-forwarded-for first."""
    forwarded = connection.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    client = connection.scope.get("client")
    if client:
        return client[0]
    return "unknown"


def api_key_guard(connection: ASGIConnection, _: BaseRouteHandler) -> None:
    """Require ``Authorization: Bearer <api_key>``."""
    state = connection.app.state
    limiter: FailedAuthLimiter = state.auth_limiter
    ip = get_client_ip(connection)

    if limiter.is_blocked(ip):
        raise TooManyRequestsException(detail="Too many failed auth attempts")

    auth_header = connection.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        limiter.record_failure(ip)
        raise NotAuthorizedException(detail="Missing bearer token")

    token = auth_header[7:]
    if not hmac.compare_digest(token.encode(), state.api_key.encode()):
        limiter.record_failure(ip)
        raise NotAuthorizedException(detail="Invalid API key")
