"""
Playback adapter contract.

This module defines the *interface only*: no synthesis, device, or
scheduling logic lives here.

Key invariants:
- Tokens are owned by the turn controller; every emitted event carries the
  token speak() was given.
- At most one utterance is audible at a time.
- cancel() is a request to silence output immediately. Anything a
  cancelled utterance still emits is dropped by the controller's token
  check, so adapters need not suppress it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class PlaybackAdapter(ABC):
    """
    Abstract interface for speaking one utterance at a time.

    Note: the emit_event callback given to implementations must be async.
    """

    @abstractmethod
    async def speak(self, token: int, text: str) -> None:
        """
        Schedule text for playback and return immediately.

        Contract:
        - Cancels any active utterance first.
        - Emits PlaybackStarted(token) when audio begins, then exactly one
          of PlaybackEnded(token) or PlaybackFailed(token, reason).
        - Must NOT retry internally.
        """
        raise NotImplementedError

    @abstractmethod
    async def cancel(self) -> None:
        """
        Silence the active utterance.

        Contract:
        - Idempotent; a no-op when nothing is playing.
        - A cancelled utterance may end silently.
        """
        raise NotImplementedError
