"""
Authoritative turn-controller state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass

from orchestrator.enums.intent import Intent
from orchestrator.enums.state import ConversationState


@dataclass(frozen=True)
class TurnState:
    """Immutable snapshot of all turn-controller-owned state."""

    # ------------------------------------------------------------------
    # Control state
    # ------------------------------------------------------------------
    state: ConversationState = ConversationState.IDLE
    intent: Intent = Intent.STOP

    # ------------------------------------------------------------------
    # Current-request token
    # ------------------------------------------------------------------
    # Monotonic; 0 means "nothing issued yet". A new value invalidates
    # every earlier one for all purposes.
    token: int = 0

    # ------------------------------------------------------------------
    # Turn data
    # ------------------------------------------------------------------
    transcript: str = ""

    # Cleared on entering THINKING, read once when the stream ends
    accumulator: str = ""

    # Last reportable failure (spoken, then kept for status display)
    last_error: str | None = None
