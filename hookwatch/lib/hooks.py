"""Action/filter hooks around the notification pipeline.

Actions run callbacks for their side effects; filters pass a value through
each callback in priority order and return the result.

Usage:
    from hookwatch.lib.hooks import action, filter, NOTIFICATION_CREATED

    @action(NOTIFICATION_CREATED)
    async def log_created(notification):
        ...

    @filter(NOTIFICATION_PRE_CREATE)
    async def drop_quiet_sessions(notification, event):
        return None if event.session_id in QUIET else notification
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, TypeVar

T = TypeVar("T")


@dataclass(order=True)
class HookHandler:
    """A registered hook handler with priority."""

    priority: int
    callback: Callable = field(compare=False)

    async def call(self, *args: Any, **kwargs: Any) -> Any:
        """Call the handler, handling both sync and async callbacks."""
        result = self.callback(*args, **kwargs)
        if asyncio.iscoroutine(result):
            return await result
        return result


class HookRegistry:
    """Central registry for all hooks (actions and filters)."""

    def __init__(self) -> None:
        self._actions: dict[str, list[HookHandler]] = defaultdict(list)
        self._filters: dict[str, list[HookHandler]] = defaultdict(list)

    def add_action(self, hook_name: str, callback: Callable[..., Any], priority: int = 10) -> None:
        """Register an action callback. Lower priorities run first."""
        self._actions[hook_name].append(HookHandler(priority=priority, callback=callback))
        self._actions[hook_name].sort()

    def add_filter(self, hook_name: str, callback: Callable[..., T], priority: int = 10) -> None:
        """Register a filter callback. Lower priorities run first."""
        self._filters[hook_name].append(HookHandler(priority=priority, callback=callback))
        self._filters[hook_name].sort()

    def remove_action(self, hook_name: str, callback: Callable[..., Any]) -> bool:
        return self._remove(self._actions, hook_name, callback)

    def remove_filter(self, hook_name: str, callback: Callable[..., Any]) -> bool:
        return self._remove(self._filters, hook_name, callback)

    @staticmethod
    def _remove(table: dict[str, list[HookHandler]], hook_name: str, callback: Callable) -> bool:
        handlers = table.get(hook_name, [])
        for i, handler in enumerate(handlers):
            if handler.callback is callback:
                handlers.pop(i)
                return True
        return False

    def has_action(self, hook_name: str) -> bool:
        return bool(self._actions.get(hook_name))

    def has_filter(self, hook_name: str) -> bool:
        return bool(self._filters.get(hook_name))

    async def do_action(self, hook_name: str, *args: Any, **kwargs: Any) -> None:
        """Execute all registered action callbacks."""
        from hookwatch.lib.observability import span

        with span(f"hook.action:{hook_name}", hook_name=hook_name):
            for handler in self._actions.get(hook_name, []):
                await handler.call(*args, **kwargs)

    async def apply_filters(self, hook_name: str, value: T, *args: Any, **kwargs: Any) -> T:
        """Apply all registered filter callbacks to a value."""
        from hookwatch.lib.observability import span

        with span(f"hook.filter:{hook_name}", hook_name=hook_name):
            for handler in self._filters.get(hook_name, []):
                value = await handler.call(value, *args, **kwargs)
            return value

    def clear(self) -> None:
        """Clear all registered hooks. Useful for testing."""
        self._actions.clear()
        self._filters.clear()


# Global singleton registry
hooks = HookRegistry()


def action(hook_name: str, priority: int = 10) -> Callable[[Callable], Callable]:
    """Decorator to register a function as an action handler."""

    def decorator(func: Callable) -> Callable:
        hooks.add_action(hook_name, func, priority)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        return wrapper

    return decorator


def filter(hook_name: str, priority: int = 10) -> Callable[[Callable], Callable]:
    """Decorator to register a function as a filter handler."""

    def decorator(func: Callable) -> Callable:
        hooks.add_filter(hook_name, func, priority)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        return wrapper

    return decorator


# Filters
NOTIFICATION_PRE_CREATE = "notification_pre_create"

# Actions
EVENT_INGESTED = "event_ingested"
NOTIFICATION_CREATED = "notification_created"
NOTIFICATIONS_ACKNOWLEDGED = "notifications_acknowledged"
PUSH_SENT = "push_sent"
PUSH_REGISTRATION_PRUNED = "push_registration_pruned"
LOGFIRE_CONFIGURED = "logfire_configured"
