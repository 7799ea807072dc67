"""
Error taxonomy for the conversation engine.

Failures (subclasses of ConversationError) are converted into events at the
adapter / stream boundary and never cross into the reducer as exceptions.

Cancellation is NOT part of this hierarchy: user-initiated or superseding
cancellation is asyncio.CancelledError and is always suppressed silently.
"""

from __future__ import annotations


class ConversationError(Exception):
    """Base class for reportable conversation failures."""

    kind: str = "conversation"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransportError(ConversationError):
    """Non-success HTTP status or transport-level failure."""

    kind = "transport"


class DecodeError(ConversationError):
    """A stream line carried a malformed event payload."""

    kind = "decode"


class RemoteError(ConversationError):
    """The backend explicitly reported an error in the stream."""

    kind = "remote"


class CaptureError(ConversationError):
    """Speech capture failed or produced nothing."""

    kind = "capture"


class PlaybackError(ConversationError):
    """Speech playback failed."""

    kind = "playback"


class IllegalTransition(ValueError):
    """A current event arrived in a state that has no transition for it."""


class LedgerError(RuntimeError):
    """A ledger mutation violated message ordering or ownership rules."""
