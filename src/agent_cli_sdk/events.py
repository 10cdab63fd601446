"""Canonical, vendor-agnostic stream event taxonomy."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Discriminant of the canonical event union."""

    ASSISTANT_MESSAGE = "assistant.message"
    USER_MESSAGE = "user.message"
    TOOL_STARTED = "tool.started"
    TOOL_COMPLETED = "tool.completed"
    TURN_STARTED = "turn.started"
    TURN_COMPLETED = "turn.completed"
    THREAD_STARTED = "thread.started"
    FILE_EVENT = "file.event"
    GENERIC = "generic"


# Event types that summarize a turn; their payload repeats already streamed text.
TERMINAL_EVENT_TYPES: frozenset[EventType] = frozenset({EventType.TURN_COMPLETED})


@dataclass(slots=True)
class StreamEvent:
    """One normalized protocol unit forwarded to ``on_event``.

    ``data`` keeps the vendor-shaped payload the event was translated from,
    ``text`` is only ever set on assistant messages.
    """

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    vendor_type: str | None = None
    text: str | None = None
    timestamp: float = field(default_factory=time.time)
    synthetic: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES

    def to_dict(self) -> dict[str, Any]:
        """Serialize for audit logs and the command line."""

        payload: dict[str, Any] = {
            "type": self.type.value,
            "vendor_type": self.vendor_type,
            "timestamp": self.timestamp,
            "synthetic": self.synthetic,
            "data": self.data,
        }
        if self.text is not None:
            payload["text"] = self.text
        return payload


def synthesize(event_type: EventType, *, data: dict[str, Any] | None = None) -> StreamEvent:
    """Build a lifecycle event the vendor implies but does not emit."""

    return StreamEvent(type=event_type, data=data or {}, synthetic=True)
