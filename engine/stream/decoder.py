"""
Incremental event-stream decoder.

Responsibilities:
- Decode bytes into text incrementally (multi-byte characters split
  across chunk boundaries are held until complete)
- Split on line breaks, carrying a trailing partial line to the next chunk
- Parse every complete "data: " line as a JSON object
- Map payloads to StreamEvents

Non-responsibilities:
- No network I/O
- No cancellation (the consumer simply stops feeding)
- No knowledge of voice, ledger, or UI
"""

from __future__ import annotations

import codecs
import json
from typing import Any

from constants import EVENT_LINE_PREFIX
from errors import ConversationError, DecodeError, RemoteError
from stream.events import ContentDelta, StreamDone, StreamError, StreamEvent


class StreamDecoder:
    """
    Stateful decoder for one response stream.

    Feed raw chunks in arrival order; each call returns the events completed
    by that chunk. Once a terminal event (done / error) has been produced the
    decoder is finished and ignores further input.
    """

    def __init__(self) -> None:
        # Invalid byte sequences become U+FFFD rather than failing the stream
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._carry = ""
        self._finished = False

    @property
    def finished(self) -> bool:
        """True once a terminal event has been emitted."""
        return self._finished

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        """
        Consume one raw chunk and return the events it completes.

        Events are returned in line order. A terminal event is always the
        last element of the returned list.
        """
        if self._finished:
            return []

        self._carry += self._text_decoder.decode(chunk)
        *lines, self._carry = self._carry.split("\n")

        events: list[StreamEvent] = []
        for line in lines:
            event = self._decode_line(line.rstrip("\r"))
            if event is None:
                continue
            events.append(event)
            if event.is_terminal:
                self._finished = True
                self._carry = ""
                break

        return events

    def close(self) -> str:
        """
        Flush the decoder at end-of-stream.

        Returns the unterminated trailing text, if any. It is never parsed:
        a line only counts once its line break has been observed.
        """
        if self._finished:
            return ""
        leftover = self._carry + self._text_decoder.decode(b"", final=True)
        self._carry = ""
        self._finished = True
        return leftover

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _decode_line(self, line: str) -> StreamEvent | None:
        if not line.startswith(EVENT_LINE_PREFIX):
            # Blank separators, comments, other SSE fields
            return None

        try:
            return parse_payload(line[len(EVENT_LINE_PREFIX):])
        except ConversationError as exc:
            return StreamError(kind=exc.kind, message=exc.message)


def parse_payload(raw: str) -> StreamEvent | None:
    """
    Map one event payload to a StreamEvent.

    Priority: done, then error, then content. A payload carrying none of
    them (or an empty content string) produces no event.

    Raises:
        DecodeError if the payload is not a JSON object.
        RemoteError if the payload carries an error field.
    """
    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"Malformed event payload: {exc.msg}") from exc

    if not isinstance(data, dict):
        raise DecodeError("Malformed event payload: expected an object")

    if data.get("done"):
        return StreamDone()

    if data.get("error"):
        raise RemoteError(str(data["error"]))

    content = data.get("content")
    if isinstance(content, str) and content:
        return ContentDelta(text=content)

    return None
