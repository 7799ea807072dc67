"""
Streaming chat client.

Responsibilities:
- POST {message, sessionId} to <base_url>/chat/stream
- Feed the response body into a StreamDecoder as chunks arrive
- Surface every failure as exactly one StreamError event

Non-responsibilities:
- No retries
- No timeouts beyond the transport connect bound
- No decisions about what to do with the reply

Cancellation:
- Cancelling the consuming task raises asyncio.CancelledError at the
  pending read; the response is closed by its context manager and no
  event is produced. Cancellation is not a failure.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx

from constants import CHAT_STREAM_PATH, DEFAULT_CONNECT_TIMEOUT_S
from errors import TransportError
from observability.logger import log_event
from stream.decoder import StreamDecoder
from stream.events import StreamError, StreamEvent


class ChatStreamClient:
    """
    One client per conversation engine; one open() call per turn.

    The underlying httpx.AsyncClient is reused across turns and must be
    released with aclose().
    """

    def __init__(
        self,
        *,
        base_url: str,
        connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url:
                Backend base URL (without the /chat/stream path).
            connect_timeout_s:
                Bound on establishing the connection. Reads are unbounded:
                stream lifetime ends only on done, error, EOF or cancel.
            transport:
                Optional httpx transport (tests inject MockTransport /
                ASGITransport here).
        """
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(None, connect=connect_timeout_s),
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        await self._client.aclose()

    async def open(self, message: str, session_id: str) -> AsyncGenerator[StreamEvent, None]:
        """
        Open one streamed request and yield its events in arrival order.

        Guarantees:
        - At most one terminal event (StreamDone or StreamError), always last
        - No reads after a terminal event
        - Transport end-of-stream without "done" simply ends the sequence
        """
        decoder = StreamDecoder()
        payload = {"message": message, "sessionId": session_id}

        log_event({
            "event_type": "stream_opened",
            "session_id": session_id,
            "url": f"{self._base_url}{CHAT_STREAM_PATH}",
            "message_len": len(message),
        })

        try:
            async with self._client.stream("POST", CHAT_STREAM_PATH, json=payload) as response:
                if not response.is_success:
                    raise TransportError(f"HTTP error: status {response.status_code}")

                async for chunk in response.aiter_bytes():
                    for event in decoder.feed(chunk):
                        yield event
                    if decoder.finished:
                        log_event({
                            "event_type": "stream_terminal_event",
                            "session_id": session_id,
                        })
                        return

        except TransportError as exc:
            log_event({
                "event_type": "stream_http_error",
                "session_id": session_id,
                "message": exc.message,
            })
            yield StreamError(kind=exc.kind, message=exc.message)
            return

        except httpx.HTTPError as exc:
            reason = str(exc) or type(exc).__name__
            log_event({
                "event_type": "stream_transport_error",
                "session_id": session_id,
                "exception": type(exc).__name__,
                "message": reason,
            })
            yield StreamError(kind=TransportError.kind, message=reason)
            return

        leftover = decoder.close()
        log_event({
            "event_type": "stream_eof",
            "session_id": session_id,
            "discarded_partial_line": bool(leftover),
        })
