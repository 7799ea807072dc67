"""
Runtime execution context.

Provides the voice controller with the imperative resources it needs for
command execution (stream client, capture, playback).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from stream.events import StreamEvent

if TYPE_CHECKING:
    from adapters.capture.base import CaptureAdapter
    from adapters.playback.base import PlaybackAdapter


# ---------------------------------------------------------------------
# Capability Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class StreamClientProtocol(Protocol):
    """
    Anything that can open one streamed chat request.

    ChatStreamClient conforms structurally; tests pass scripted fakes.
    """

    def open(self, message: str, session_id: str) -> AsyncGenerator[StreamEvent, None]: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

@dataclass
class TurnContext:
    """
    Session-owned resources the voice controller executes against.

    Adapters may be attached after construction (they need the
    controller's event sink), hence the mutable fields.
    """

    session_id: str
    stream_client: StreamClientProtocol
    capture: CaptureAdapter | None = None
    playback: PlaybackAdapter | None = None
