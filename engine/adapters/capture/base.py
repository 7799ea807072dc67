"""
Capture adapter contract.

This module defines the *interface only*. No device handling, endpointing,
or recognition logic lives here.

Key invariants:
- Tokens are owned by the turn controller. Adapters never generate or
  mutate tokens; every emitted event carries the token start() was given.
- The adapter emits capture events; it does not call the reducer or make
  state transitions.
- One capture is single-shot: it ends after the first final result.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class CaptureAdapter(ABC):
    """
    Abstract interface for single-shot speech capture.

    Note: the emit_event callback given to implementations must be async.

    Implementations are responsible for:
    - Opening the input device and recording one utterance
    - Turning it into text
    - Emitting exactly one terminal event per start()

    Non-responsibilities:
    - Deciding when to capture again
    - Any knowledge of the stream or playback
    """

    @abstractmethod
    async def start(self, token: int) -> None:
        """
        Schedule one capture and return immediately.

        Contract:
        - Emits exactly ONE of, for token:
            - CaptureTranscript(token, text)
            - CaptureNoResult(token)
            - CaptureFailed(token, reason)
        - A start() while a capture is running replaces the running one.
        - Must NOT block the event loop.
        """
        raise NotImplementedError

    @abstractmethod
    async def stop(self) -> None:
        """
        Stop any running capture.

        Contract:
        - Idempotent; a no-op when nothing is running.
        - A stopped capture may end silently (no terminal event).
        """
        raise NotImplementedError
