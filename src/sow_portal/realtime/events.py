"""Classification of push-channel messages.

Messages look like ``{"type": ..., "message": ..., "data": {...},
"timestamp": ...}``. Step Functions lifecycle events carry a human-readable
``message`` ("SOW Generation Completed"); backend notifications carry the
machine event name in ``data.type`` ("diagram_generation_completed").
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class EventClass(str, Enum):
    PROGRESS = "progress"
    STATUS = "status"
    ERROR = "error"
    TOAST = "toast"
    UNKNOWN = "unknown"


PROGRESS_EVENTS: frozenset[str] = frozenset({
    "SOW Generation Started",
    "SOW Generation Completed",
    "SOW Generation Failed",
    "Architecture Generation Started",
    "Architecture Generation Completed",
    "Architecture Generation Failed",
    "Pricing Calculator Generation Started",
    "Pricing Calculator Generation Completed",
    "Pricing Calculator Generation Failed",
})

TOAST_EVENTS: frozenset[str] = frozenset({
    "File Upload Completed",
    "File Upload Failed",
    "File Delete Completed",
    "File Delete Failed",
    "Avoma Meeting Sync Started",
    "Avoma Meeting Sync Completed",
    "Avoma Meeting Sync Failed",
})

EventVariant = Literal["success", "error", "info", "warning"]


class PushMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = ""
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: str | None = None

    @property
    def event_type(self) -> str:
        """Machine event name: ``data.type``, else ``type``, else ``message``."""
        nested = self.data.get("type")
        if isinstance(nested, str) and nested:
            return nested
        return self.type or self.message

    @property
    def execution_arn(self) -> str | None:
        value = self.data.get("executionArn") or self.data.get("execution_arn")
        return value if isinstance(value, str) else None


def is_progress_event(event: PushMessage) -> bool:
    return event.type == "progress" or event.message in PROGRESS_EVENTS


def is_toast_event(event: PushMessage) -> bool:
    return event.type == "toast" or event.message in TOAST_EVENTS


def filter_progress_events(events: Iterable[PushMessage]) -> list[PushMessage]:
    return [e for e in events if is_progress_event(e)]


def filter_toast_events(events: Iterable[PushMessage]) -> list[PushMessage]:
    return [e for e in events if is_toast_event(e)]


def classify_event(event: PushMessage) -> EventClass:
    """Route a message to one handler category.

    Failures win over everything else, so "SOW Generation Failed" is an
    error rather than progress.
    """
    if event.type == "error" or "failed" in event.message.lower():
        return EventClass.ERROR
    if is_progress_event(event):
        return EventClass.PROGRESS
    if event.type == "status":
        return EventClass.STATUS
    if is_toast_event(event):
        return EventClass.TOAST
    return EventClass.UNKNOWN


def event_variant(event: PushMessage) -> EventVariant:
    """Visual style for a toast, derived from the message wording."""
    message = event.message.lower()

    if "failed" in message or "error" in message:
        return "error"
    if any(word in message for word in ("completed", "success", "finished")):
        return "success"
    if "started" in message or "processing" in message:
        return "info"
    if "warning" in message or "retry" in message:
        return "warning"
    return "info"
