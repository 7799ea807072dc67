"""
Completion relay for the development backend.

Turns one OpenAI-compatible streaming chat completion into the chat stream
wire format:

    data: {"content": "<delta>"}\\n\\n    (zero or more)
    data: {"done": true}\\n\\n            (on success)
    data: {"error": "<reason>"}\\n\\n     (on failure, instead of done)

Design notes:
- Exactly one terminal line per request.
- The exchange is recorded in the session history only on success.
- Client disconnect cancels the generator; nothing is recorded.
"""
from __future__ import annotations

import asyncio
import json
import time
from collections.abc import AsyncIterator
from typing import Any

from constants import EVENT_LINE_PREFIX
from observability.logger import log_event
from server.history import ChatHistory
from server.prompts import SYSTEM_PROMPT_V1


def encode_event(payload: dict[str, Any]) -> str:
    """One wire event: prefix, compact JSON, blank-line terminator."""
    return f"{EVENT_LINE_PREFIX}{json.dumps(payload, ensure_ascii=False)}\n\n"


def _extract_delta(chunk: Any) -> str:
    """Extract the token delta from a vendor chunk (OpenAI format)."""
    try:
        delta = chunk.choices[0].delta
        return delta.content or ""
    except (AttributeError, IndexError):
        return ""


def _now_ms() -> int:
    return int(time.time() * 1000)


async def relay_completion(
    *,
    client: Any,
    model: str,
    session_id: str,
    history: ChatHistory,
    message: str,
) -> AsyncIterator[str]:
    """
    Stream one reply as wire events.

    Args:
        client:
            openai.AsyncOpenAI (or a compatible fake).
        history:
            The session's history; read before the call, appended after.
    """
    messages = history.build_messages(system_prompt=SYSTEM_PROMPT_V1, user_text=message)
    parts: list[str] = []
    t0 = _now_ms()

    log_event({
        "ts_ms": t0,
        "event_type": "relay_started",
        "session_id": session_id,
        "model": model,
        "history_turns": len(history),
    })

    try:
        stream = await client.chat.completions.create(
            model=model,
            messages=messages,
            stream=True,
        )
        async for chunk in stream:
            delta = _extract_delta(chunk)
            if not delta:
                continue
            parts.append(delta)
            yield encode_event({"content": delta})

    except asyncio.CancelledError:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "relay_client_gone",
            "session_id": session_id,
        })
        raise

    except Exception as exc:  # pylint: disable=broad-exception-caught
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "relay_error",
            "session_id": session_id,
            "exception": type(exc).__name__,
            "message": str(exc),
        })
        yield encode_event({"error": f"{type(exc).__name__}: {exc}"})
        return

    reply = "".join(parts)
    history.record_exchange(message, reply)

    log_event({
        "ts_ms": _now_ms(),
        "event_type": "relay_done",
        "session_id": session_id,
        "reply_len": len(reply),
        "elapsed_ms": _now_ms() - t0,
    })
    yield encode_event({"done": True})
