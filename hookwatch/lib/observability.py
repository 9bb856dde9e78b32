"""Tracing facade over Pydantic Logfire.

Spans wrap event ingestion, push dispatch and hook execution. Every call
no-ops when logfire is not installed or ``logfire.enabled`` is false, so
callers never guard on configuration.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from hookwatch.config import Settings

_logfire = None
_configured = False


def is_available() -> bool:
    return _logfire is not None and _configured


def configure(settings: Settings) -> None:
    """Initialize logfire from the ``logfire`` settings section."""
    global _logfire, _configured

    if not settings.logfire.enabled:
        return

    try:
        import logfire as lf
    except ImportError:
        return

    kwargs: dict[str, Any] = {
        "service_name": settings.logfire.service_name,
        "send_to_logfire": "if-token-present",
    }
    if settings.logfire.environment:
        kwargs["environment"] = settings.logfire.environment
    if settings.logfire.sample_rate != 1.0:
        kwargs["trace_sample_rate"] = settings.logfire.sample_rate
    if settings.logfire.console:
        kwargs["console"] = lf.ConsoleOptions()

    lf.configure(**kwargs)
    _logfire = lf
    _configured = True


def instrument_app(app):
    """Wrap an ASGI app with logfire instrumentation when available."""
    if not is_available():
        return app
    return _logfire.instrument_asgi(app)


def instrument_httpx() -> None:
    """Trace outbound APNs and client API calls."""
    if is_available():
        _logfire.instrument_httpx()


@contextmanager
def span(name: str, **attrs: Any):
    """Context manager that yields a logfire span, or None if unavailable."""
    if is_available():
        with _logfire.span(name, **attrs) as s:
            yield s
    else:
        yield None


def exception(msg: str, **kwargs: Any) -> bool:
    """Report an exception with traceback. Returns False when logfire is unavailable."""
    if is_available():
        _logfire.exception(msg, **kwargs)
        return True
    return False
