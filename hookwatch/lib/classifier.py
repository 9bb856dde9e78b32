"""Decide which hook events are notifiable and render their alert text.

Classification is a pure lookup over a closed table keyed by
``(hook_event_name, notification_type)``. Rendering interpolates the optional
event fields into a fixed template per category, falling back to default
text when a field is missing or empty.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class NotificationCategory(str, Enum):
    STOP = "stop"
    PERMISSION_PROMPT = "permission_prompt"
    IDLE_PROMPT = "idle_prompt"


# Categories that bypass the per-session cooldown.
HIGH_PRIORITY_CATEGORIES = frozenset({NotificationCategory.PERMISSION_PROMPT})


@dataclass(frozen=True)
class Classification:
    category: NotificationCategory
    template: str


_STOP = Classification(NotificationCategory.STOP, "stop")
_PERMISSION = Classification(NotificationCategory.PERMISSION_PROMPT, "permission")
_IDLE = Classification(NotificationCategory.IDLE_PROMPT, "idle")

# None as subtype means "any subtype".
_TABLE: dict[tuple[str, str | None], Classification] = {
    ("Stop", None): _STOP,
    ("PermissionRequest", None): _PERMISSION,
    ("Notification", "permission_prompt"): _PERMISSION,
    ("Notification", "idle_prompt"): _IDLE,
}

_DEFAULT_TITLES = {
    "stop": "Session Stopped",
    "permission": "Permission Required",
    "idle": "Session Idle",
}


def classify(hook_event_name: str | None, notification_type: str | None = None) -> Classification | None:
    """Return the classification for an event, or None if it is not notifiable."""
    if not hook_event_name:
        return None
    exact = _TABLE.get((hook_event_name, notification_type))
    if exact is not None:
        return exact
    return _TABLE.get((hook_event_name, None))


def _present(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def render(
    classification: Classification,
    *,
    session_title: str | None = None,
    tool_name: str | None = None,
    message: str | None = None,
) -> tuple[str, str]:
    """Render ``(title, body)`` for a classified event."""
    title = _present(session_title) or _DEFAULT_TITLES[classification.template]
    tool = _present(tool_name)
    msg = _present(message)

    if classification.template == "stop":
        body = f"Session stopped: {msg or 'No reason given'}"
    elif classification.template == "idle":
        body = f"Session idle: {msg or 'Waiting for input'}"
    elif tool and msg:
        body = f"Permission required: {tool} - {msg}"
    elif tool:
        body = f"Permission required: {tool}"
    elif msg:
        body = f"Permission required: {msg}"
    else:
        body = "A session needs permission to continue"

    return title, body
