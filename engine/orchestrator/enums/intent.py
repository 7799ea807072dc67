"""
Live-intent enumeration.

The intent answers "should this conversation still be going?". It is
orthogonal to ConversationState and is read when a suspended operation
resumes, never when it is scheduled.
"""

from __future__ import annotations

from enum import Enum


class Intent(str, Enum):
    """Live intent of the voice conversation."""

    CONTINUE = "CONTINUE"
    STOP = "STOP"
