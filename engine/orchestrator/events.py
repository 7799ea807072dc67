"""
Unified event definitions for the turn reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Every event produced by an external capability (capture, stream, playback)
or by a timer carries the token it was issued with, for stale gating.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair is either in the transition table or
    rejected by the reducer.
    """

    # ------------------------------------------------------------------
    # User control
    # ------------------------------------------------------------------
    USER_START = "USER_START"
    USER_STOP = "USER_STOP"

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------
    CAPTURE_TRANSCRIPT = "CAPTURE_TRANSCRIPT"
    CAPTURE_FAILED = "CAPTURE_FAILED"
    CAPTURE_NO_RESULT = "CAPTURE_NO_RESULT"

    # ------------------------------------------------------------------
    # Stream
    # ------------------------------------------------------------------
    STREAM_DELTA = "STREAM_DELTA"
    STREAM_FINISHED = "STREAM_FINISHED"
    STREAM_ENDED_EARLY = "STREAM_ENDED_EARLY"
    STREAM_FAILED = "STREAM_FAILED"
    STREAM_CANCELLED = "STREAM_CANCELLED"

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------
    PLAYBACK_STARTED = "PLAYBACK_STARTED"
    PLAYBACK_ENDED = "PLAYBACK_ENDED"
    PLAYBACK_FAILED = "PLAYBACK_FAILED"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    RESUME_CAPTURE_DUE = "RESUME_CAPTURE_DUE"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class TokenEvent(Event):
    """
    Base class for events answering a request issued under a token.

    The reducer MUST ignore events whose token is not the current one.
    """

    token: int


# =============================================================================
# User Control
# =============================================================================

@dataclass(frozen=True)
class UserStart(Event):
    """User asked to start talking."""


@dataclass(frozen=True)
class UserStop(Event):
    """User asked to stop the conversation. Valid in every state."""


# =============================================================================
# Capture Events
# =============================================================================

@dataclass(frozen=True)
class CaptureTranscript(TokenEvent):
    """Capture produced a final transcript."""
    text: str


@dataclass(frozen=True)
class CaptureFailed(TokenEvent):
    """Capture capability failed (device, permission, recognizer)."""
    reason: str


@dataclass(frozen=True)
class CaptureNoResult(TokenEvent):
    """Capture ended without recognizing anything."""


# =============================================================================
# Stream Events
# =============================================================================

@dataclass(frozen=True)
class StreamDelta(TokenEvent):
    """One content delta, in arrival order."""
    delta: str


@dataclass(frozen=True)
class StreamFinished(TokenEvent):
    """The backend marked the reply complete (done marker)."""


@dataclass(frozen=True)
class StreamEndedEarly(TokenEvent):
    """The transport ended before a done marker; the partial reply is incomplete."""


@dataclass(frozen=True)
class StreamFailed(TokenEvent):
    """
    The stream failed with a reportable error.

    kind is one of "transport", "decode", "remote".
    """
    kind: str
    reason: str


@dataclass(frozen=True)
class StreamCancelled(TokenEvent):
    """The stream consumer was cancelled while its token was still current."""


# =============================================================================
# Playback Events
# =============================================================================

@dataclass(frozen=True)
class PlaybackStarted(TokenEvent):
    """Audio for the utterance started."""


@dataclass(frozen=True)
class PlaybackEnded(TokenEvent):
    """The utterance finished playing."""


@dataclass(frozen=True)
class PlaybackFailed(TokenEvent):
    """Playback capability failed. Treated like PlaybackEnded by the reducer."""
    reason: str


# =============================================================================
# Timer Events
# =============================================================================

@dataclass(frozen=True)
class ResumeCaptureDue(TokenEvent):
    """The settling delay after playback elapsed."""
