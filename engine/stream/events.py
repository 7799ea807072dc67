"""
Stream event definitions.

Rules:
- Events describe what arrived on the wire, in arrival order.
- Events carry data only (no behavior).
- A sequence ends after StreamDone or StreamError; nothing follows them.
- Cancellation is never represented as an event.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StreamEventType(str, Enum):
    """Discriminant for decoded stream events."""

    CONTENT_DELTA = "CONTENT_DELTA"
    DONE = "DONE"
    ERROR = "ERROR"


class StreamEvent:
    """
    Base stream event.

    event_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    event_type: StreamEventType

    @property
    def is_terminal(self) -> bool:
        return self.event_type is not StreamEventType.CONTENT_DELTA


@dataclass(frozen=True)
class ContentDelta(StreamEvent):
    """Incremental reply text (a delta, never a full snapshot)."""
    text: str
    event_type: StreamEventType = StreamEventType.CONTENT_DELTA


@dataclass(frozen=True)
class StreamDone(StreamEvent):
    """The backend marked the reply complete."""
    event_type: StreamEventType = StreamEventType.DONE


@dataclass(frozen=True)
class StreamError(StreamEvent):
    """
    Fatal stream failure.

    kind mirrors errors.ConversationError.kind:
    "transport", "decode" or "remote".
    """
    kind: str
    message: str
    event_type: StreamEventType = StreamEventType.ERROR
