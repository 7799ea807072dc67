"""
Text turn controller.

Responsibilities:
- Append the user message and an assistant placeholder to the ledger
- Stream the reply into the placeholder by id
- Invalidate the in-flight turn when a new one starts or on cancel/clear

Non-responsibilities:
- Rendering (on_update callback only)
- Retries or timeouts
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import Callable

from constants import ERROR_TEXT_PREFIX
from context.ledger import Message, MessageLedger
from observability.logger import log_event
from orchestrator.runtime_context import StreamClientProtocol
from stream.events import ContentDelta, StreamDone, StreamError


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class TextTurnController:
    """
    One text turn at a time.

    A turn owns a token; the task stops touching the ledger as soon as the
    token is no longer current.
    """

    def __init__(
        self,
        *,
        ledger: MessageLedger,
        stream_client: StreamClientProtocol,
        session_id: str,
        on_update: Callable[[Message], None] | None = None,
    ) -> None:
        self._ledger = ledger
        self._stream_client = stream_client
        self._session_id = session_id
        self._on_update = on_update

        self._token = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def is_loading(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_live(self, token: int) -> bool:
        return token == self._token

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send(self, text: str) -> Message | None:
        """
        Start a turn for text.

        Returns:
            The assistant placeholder message, or None for blank input
            (nothing is appended).
        """
        message = text.strip()
        if not message:
            return None

        await self.cancel()
        token = self._token

        self._notify(self._ledger.append_user(message))
        placeholder = self._ledger.append_assistant_placeholder()
        self._notify(placeholder)

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "text_turn_started",
            "session_id": self._session_id,
            "token": token,
            "message_id": placeholder.id,
        })

        self._task = asyncio.create_task(self._run_turn(token, message, placeholder.id))
        return placeholder

    async def cancel(self) -> None:
        """Invalidate the in-flight turn, if any. Its placeholder keeps its content."""
        self._token += 1

        task = self._task
        self._task = None
        if task is None or task.done():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "text_turn_cancelled",
            "session_id": self._session_id,
        })

    async def clear(self) -> None:
        await self.cancel()
        self._ledger.clear()

    async def wait(self) -> None:
        """Wait for the in-flight turn to finish (or be cancelled)."""
        task = self._task
        if task is None:
            return
        await asyncio.wait({task})
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            raise exc

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run_turn(self, token: int, message: str, message_id: str) -> None:
        outcome = "eof"
        try:
            events = self._stream_client.open(message, self._session_id)
            async with contextlib.aclosing(events):
                async for stream_event in events:
                    if not self.is_live(token):
                        outcome = "stale"
                        return

                    if isinstance(stream_event, ContentDelta):
                        self._notify(self._ledger.append_content(message_id, stream_event.text))

                    elif isinstance(stream_event, StreamDone):
                        outcome = "done"
                        break

                    elif isinstance(stream_event, StreamError):
                        outcome = f"error:{stream_event.kind}"
                        self._notify(self._ledger.replace_content(
                            message_id, f"{ERROR_TEXT_PREFIX}{stream_event.message}"
                        ))
                        break

        except asyncio.CancelledError:
            outcome = "cancelled"
            return

        finally:
            self._ledger.close_stream(message_id)
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "text_turn_finished",
                "session_id": self._session_id,
                "token": token,
                "outcome": outcome,
            })

    def _notify(self, message: Message) -> None:
        if self._on_update is not None:
            self._on_update(message)
