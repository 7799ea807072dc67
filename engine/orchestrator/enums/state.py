"""
Authoritative conversation state enumeration.

Rules:
- This enum defines ONLY the voice-loop control states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer's transition table.
"""

from __future__ import annotations

from enum import Enum


class ConversationState(str, Enum):
    """
    Control states for a single voice conversation.

    IDLE:
        Nothing in flight. Stop always returns here.
    LISTENING:
        Capture is running, or about to be re-invoked after the
        settling delay.
    THINKING:
        One streamed request is open; deltas accumulate.
    SPEAKING:
        Playback of the accumulated reply (or of an error) is active.
    """

    IDLE = "IDLE"
    LISTENING = "LISTENING"
    THINKING = "THINKING"
    SPEAKING = "SPEAKING"
