"""
Conversation engine.

One engine == one session.

Responsibilities:
- Own the session id, the message ledger and both turn controllers
- Build and attach the capture/playback adapters
- Switch between text and voice mode

Non-responsibilities:
- Rendering (callers pass on_update / poll the voice controller)
- Any turn-taking decision (controllers)
"""

from __future__ import annotations

import time
from typing import Any, Callable
from uuid import uuid4

import httpx
from openai import AsyncOpenAI

from adapters.capture.microphone import MicrophoneCapture
from adapters.playback.openai_speech import SpeechPlayback
from config import AppConfig
from context.ledger import Message, MessageLedger
from observability.logger import log_event
from orchestrator.enums.mode import Mode
from orchestrator.enums.state import ConversationState
from orchestrator.runtime import VoiceTurnController
from orchestrator.runtime_context import StreamClientProtocol, TurnContext
from orchestrator.text_turn import TextTurnController
from stream.client import ChatStreamClient


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


class ConversationEngine:
    """
    Facade over the text and voice turn controllers.

    The session id is fixed for the engine's lifetime and attached to
    every outgoing request.
    """

    def __init__(
        self,
        *,
        stream_client: StreamClientProtocol,
        session_id: str | None = None,
        on_update: Callable[[Message], None] | None = None,
    ) -> None:
        self.session_id = session_id or _new_session_id()
        self.ledger = MessageLedger()
        self._stream_client = stream_client
        self._owned_openai_client: AsyncOpenAI | None = None
        self._mode = Mode.TEXT

        self.text = TextTurnController(
            ledger=self.ledger,
            stream_client=stream_client,
            session_id=self.session_id,
            on_update=on_update,
        )
        self.voice = VoiceTurnController(
            context=TurnContext(session_id=self.session_id, stream_client=stream_client),
        )

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "session_started",
            "session_id": self.session_id,
        })

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        openai_client: Any | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        on_update: Callable[[Message], None] | None = None,
    ) -> ConversationEngine:
        """
        Build an engine wired to the configured backend.

        Voice adapters are attached only when an OpenAI client is given or
        OPENAI_API_KEY is configured; without them the engine is text-only.
        """
        stream_client = ChatStreamClient(
            base_url=config.api_base_url,
            connect_timeout_s=config.connect_timeout_s,
            transport=transport,
        )
        engine = cls(stream_client=stream_client, on_update=on_update)

        if openai_client is None and config.openai_api_key:
            openai_client = AsyncOpenAI(api_key=config.openai_api_key)
            engine._owned_openai_client = openai_client  # pylint: disable=protected-access

        if openai_client is not None:
            engine.voice.attach_capture(MicrophoneCapture(
                emit_event=engine.voice.handle_event,
                client=openai_client,
                session_id=engine.session_id,
                model=config.stt_model,
                language=config.capture_language,
            ))
            engine.voice.attach_playback(SpeechPlayback(
                emit_event=engine.voice.handle_event,
                client=openai_client,
                session_id=engine.session_id,
                model=config.tts_model,
                voice=config.tts_voice,
                rate=config.playback_rate,
                pitch=config.playback_pitch,
                volume=config.playback_volume,
            ))

        return engine

    # ------------------------------------------------------------------
    # Mode
    # ------------------------------------------------------------------

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def voice_available(self) -> bool:
        return self.voice.adapters_attached

    async def set_mode(self, mode: Mode) -> None:
        """
        Switch mode.

        Entering voice mode clears the chat; leaving it stops the voice
        conversation. Both directions leave the voice loop with intent STOP.
        """
        await self.voice.stop()
        if mode is Mode.VOICE:
            await self.text.clear()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "mode_changed",
            "session_id": self.session_id,
            "from_mode": self._mode.value,
            "to_mode": mode.value,
        })
        self._mode = mode

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    async def send_text(self, text: str) -> Message | None:
        return await self.text.send(text)

    async def clear_chat(self) -> None:
        await self.text.clear()

    # ------------------------------------------------------------------
    # Voice
    # ------------------------------------------------------------------

    async def start_voice(self) -> None:
        """Enter voice mode if needed and start the loop from IDLE."""
        if self._mode is not Mode.VOICE:
            await self.set_mode(Mode.VOICE)
        if self.voice.state is ConversationState.IDLE:
            await self.voice.start()

    async def stop_voice(self) -> None:
        await self.voice.stop()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self.text.cancel()
        await self.voice.shutdown()

        if isinstance(self._stream_client, ChatStreamClient):
            await self._stream_client.aclose()

        # Injected clients belong to the caller
        if self._owned_openai_client is not None:
            await self._owned_openai_client.close()
            self._owned_openai_client = None

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "session_ended",
            "session_id": self.session_id,
        })
