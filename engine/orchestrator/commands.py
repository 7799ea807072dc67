"""
Side-effect command definitions for the turn controller.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from orchestrator.events import EventType

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Capture
    START_CAPTURE = "START_CAPTURE"
    STOP_CAPTURE = "STOP_CAPTURE"

    # Stream
    OPEN_STREAM = "OPEN_STREAM"
    CANCEL_STREAM = "CANCEL_STREAM"

    # Playback
    SPEAK = "SPEAK"
    CANCEL_PLAYBACK = "CANCEL_PLAYBACK"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Capture Commands
# =============================================================================

@dataclass(frozen=True)
class StartCapture(Command):
    """Request one single-shot capture under token."""
    token: int
    command_type: CommandType = CommandType.START_CAPTURE


@dataclass(frozen=True)
class StopCapture(Command):
    """Stop any running capture. Idempotent."""
    command_type: CommandType = CommandType.STOP_CAPTURE


# =============================================================================
# Stream Commands
# =============================================================================

@dataclass(frozen=True)
class OpenStream(Command):
    """Open one streamed request for message under token."""
    token: int
    message: str
    command_type: CommandType = CommandType.OPEN_STREAM


@dataclass(frozen=True)
class CancelStream(Command):
    """Abort the in-flight network read, if any. Idempotent."""
    command_type: CommandType = CommandType.CANCEL_STREAM


# =============================================================================
# Playback Commands
# =============================================================================

@dataclass(frozen=True)
class Speak(Command):
    """Speak text under token (replacing any active utterance)."""
    token: int
    text: str
    command_type: CommandType = CommandType.SPEAK


@dataclass(frozen=True)
class CancelPlayback(Command):
    """Silence any active utterance. Idempotent."""
    command_type: CommandType = CommandType.CANCEL_PLAYBACK


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Start (or replace) a timer.

    On expiry the runtime emits an event of timeout_event_type carrying token.
    """
    timer_id: str
    token: int
    duration_ms: int
    timeout_event_type: EventType
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    """Cancel a timer if it is running. Idempotent."""
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observability
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Structured log line; the runtime adds session context."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
