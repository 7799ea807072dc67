"""
Per-session chat history for the development backend.

Responsibilities:
- Store ordered user/assistant turns per sessionId
- Enforce truncation rules:
  - Max MAX_CONTEXT_TURNS turns OR MAX_CONTEXT_CHARS characters
  - Drop oldest turns until constraints are satisfied
  - Allow a single oversized turn (logged)
- Keep at most MAX_SESSIONS histories, evicting the least recently used
- Build the completion request messages (system prompt first, current
  user text last)

Non-responsibilities:
- No streaming, no HTTP
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from constants import MAX_CONTEXT_CHARS, MAX_CONTEXT_TURNS, MAX_SESSIONS
from observability.logger import log_event


Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class Turn:
    role: Role
    text: str


class ChatHistory:
    """Bounded history for one session. Turns stay in chronological order."""

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id
        self._turns: list[Turn] = []

    def __len__(self) -> int:
        return len(self._turns)

    def record_exchange(self, user_text: str, assistant_text: str) -> None:
        """Store a completed exchange, then truncate."""
        self._turns.append(Turn(role="user", text=user_text))
        self._turns.append(Turn(role="assistant", text=assistant_text))
        self._truncate()

    def build_messages(self, *, system_prompt: str, user_text: str) -> list[dict[str, str]]:
        """
        Output format:
        [
            {"role": "system", "content": "..."},
            {"role": "user", "content": "..."},
            {"role": "assistant", "content": "..."},
            ...
            {"role": "user", "content": "<current user text>"},
        ]
        """
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": t.role, "content": t.text} for t in self._turns)
        messages.append({"role": "user", "content": user_text})
        return messages

    def _truncate(self) -> None:
        while self._violates_limits():
            if len(self._turns) == 1:
                log_event({
                    "event_type": "history_single_turn_oversized",
                    "session_id": self._session_id,
                    "char_count": len(self._turns[0].text),
                })
                break

            dropped = self._turns.pop(0)
            log_event({
                "event_type": "history_turn_dropped",
                "session_id": self._session_id,
                "role": dropped.role,
                "char_count": len(dropped.text),
            })

    def _violates_limits(self) -> bool:
        if len(self._turns) > MAX_CONTEXT_TURNS:
            return True
        return sum(len(t.text) for t in self._turns) > MAX_CONTEXT_CHARS


class SessionStore:
    """sessionId -> ChatHistory, created on first use. In memory, bounded to max_sessions."""

    def __init__(self, max_sessions: int = MAX_SESSIONS) -> None:
        self._max_sessions = max_sessions
        self._histories: dict[str, ChatHistory] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._histories

    def __len__(self) -> int:
        return len(self._histories)

    def get(self, session_id: str) -> ChatHistory:
        # Insertion order doubles as recency order
        history = self._histories.pop(session_id, None)
        if history is None:
            history = ChatHistory(session_id)
            self._evict_if_full()
        self._histories[session_id] = history
        return history

    def _evict_if_full(self) -> None:
        while len(self._histories) >= self._max_sessions:
            evicted = next(iter(self._histories))
            dropped = self._histories.pop(evicted)
            log_event({
                "event_type": "session_history_evicted",
                "session_id": evicted,
                "turn_count": len(dropped),
            })
