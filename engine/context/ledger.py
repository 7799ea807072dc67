"""
Session message ledger.

Responsibilities:
- Ordered, append-only list of chat messages for one session
- Track the single open assistant message that may still grow

Rules:
- Messages are never reordered or removed individually.
- Only the most recently appended assistant message, while its stream is
  open, may change content. It is addressed by id, so user messages
  appended meanwhile do not affect it. Everything else is immutable.
- Content growth of the open message is append-only, except for a single
  replace_content() when its turn fails.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, replace
from typing import Literal

from errors import LedgerError

Role = Literal["user", "assistant"]


def _new_message_id() -> str:
    return f"msg_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Message:
    """One chat message. Replaced (never mutated) as its content grows."""

    id: str
    role: Role
    content: str
    timestamp: float


class MessageLedger:
    """In-memory message list shared by the text controller and the UI."""

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._index: dict[str, int] = {}
        self._streaming_id: str | None = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def get(self, message_id: str) -> Message:
        idx = self._index.get(message_id)
        if idx is None:
            raise LedgerError(f"unknown message: {message_id}")
        return self._messages[idx]

    @property
    def streaming_id(self) -> str | None:
        """Id of the assistant message whose stream is open, if any."""
        return self._streaming_id

    # ------------------------------------------------------------------
    # Appends
    # ------------------------------------------------------------------

    def append_user(self, content: str) -> Message:
        return self._append("user", content)

    def append_assistant_placeholder(self) -> Message:
        """
        Append an empty assistant message and open its stream.

        A previously open stream is closed as-is.
        """
        message = self._append("assistant", "")
        self._streaming_id = message.id
        return message

    def _append(self, role: Role, content: str) -> Message:
        message = Message(
            id=_new_message_id(),
            role=role,
            content=content,
            timestamp=time.time(),
        )
        self._index[message.id] = len(self._messages)
        self._messages.append(message)
        return message

    # ------------------------------------------------------------------
    # Open-stream mutations
    # ------------------------------------------------------------------

    def append_content(self, message_id: str, delta: str) -> Message:
        message = self._open_message(message_id)
        return self._swap(message, message.content + delta)

    def replace_content(self, message_id: str, text: str) -> Message:
        message = self._open_message(message_id)
        return self._swap(message, text)

    def close_stream(self, message_id: str) -> None:
        """Freeze message_id. Idempotent; closing a non-open id is a no-op."""
        if self._streaming_id == message_id:
            self._streaming_id = None

    def clear(self) -> None:
        self._messages.clear()
        self._index.clear()
        self._streaming_id = None

    def _open_message(self, message_id: str) -> Message:
        if message_id != self._streaming_id:
            raise LedgerError(f"message is not open for streaming: {message_id}")
        message = self.get(message_id)
        if message.role != "assistant":
            raise LedgerError(f"message is not an assistant message: {message_id}")
        return message

    def _swap(self, message: Message, content: str) -> Message:
        updated = replace(message, content=content)
        self._messages[self._index[message.id]] = updated
        return updated
