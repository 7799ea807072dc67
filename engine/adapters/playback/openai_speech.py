"""
OpenAI speech playback adapter.

Role in the system:
- Synthesizes one utterance with the OpenAI speech API (raw PCM16 24kHz).
- Plays it on the default output device with sounddevice.
- Emits PlaybackStarted(token) once audio begins, then exactly one of
  PlaybackEnded(token) or PlaybackFailed(token, reason).

Voice parameters:
- rate   -> API speed (clamped to the API range)
- pitch  -> output sample-rate factor (also shifts tempo)
- volume -> numpy gain applied before playback

Concurrency & cancellation:
- One asyncio task per utterance; the blocking device wait runs in a
  worker thread.
- Each utterance gets a threading.Event cancel flag. cancel() sets it and
  stops the device under the device lock, so a worker thread that has not
  reached sd.play yet never starts it. A cancelled utterance ends without
  a terminal event.
"""
from __future__ import annotations

import asyncio
import threading
import time
from typing import Any, Awaitable, Callable

import numpy as np
import openai

from adapters.playback.base import PlaybackAdapter
from audio.pcm import apply_gain, pcm16le_to_float32
from constants import (
    DEFAULT_PLAYBACK_PITCH,
    DEFAULT_PLAYBACK_RATE,
    DEFAULT_PLAYBACK_VOLUME,
    PLAYBACK_SAMPLE_RATE_HZ,
)
from errors import ConversationError, PlaybackError
from observability.logger import log_event
from orchestrator.events import (
    Event,
    EventType,
    PlaybackEnded,
    PlaybackFailed,
    PlaybackStarted,
)

_MIN_SPEED = 0.25
_MAX_SPEED = 4.0


class SpeechPlayback(PlaybackAdapter):
    """
    One utterance at a time; speak() replaces whatever is playing.

    Fire-and-forget: speak() schedules work and returns immediately.
    """

    def __init__(
        self,
        *,
        emit_event: Callable[[Event], Awaitable[None]],
        client: Any,
        session_id: str,
        model: str = "tts-1",
        voice: str = "alloy",
        rate: float = DEFAULT_PLAYBACK_RATE,
        pitch: float = DEFAULT_PLAYBACK_PITCH,
        volume: float = DEFAULT_PLAYBACK_VOLUME,
    ) -> None:
        self._emit_event = emit_event
        self._client = client
        self._session_id = session_id
        self._model = model
        self._voice = voice
        self._speed = min(max(rate, _MIN_SPEED), _MAX_SPEED)
        self._output_rate_hz = int(PLAYBACK_SAMPLE_RATE_HZ * pitch)
        self._volume = volume

        self._task: asyncio.Task[None] | None = None
        self._cancel_flag: threading.Event | None = None
        self._device_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API (PlaybackAdapter contract)
    # ------------------------------------------------------------------

    async def speak(self, token: int, text: str) -> None:
        await self.cancel()

        cancel_flag = threading.Event()
        self._cancel_flag = cancel_flag
        self._task = asyncio.create_task(self._run_utterance(token, text, cancel_flag))

    async def cancel(self) -> None:
        cancel_flag = self._cancel_flag
        self._cancel_flag = None
        task = self._task
        self._task = None
        if task is None or task.done() or task is asyncio.current_task():
            return

        if cancel_flag is not None:
            cancel_flag.set()
        with self._device_lock:
            self._stop_device()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        log_event({
            "ts_ms": self._now_ms(),
            "event_type": "playback_cancelled",
            "session_id": self._session_id,
        })

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run_utterance(self, token: int, text: str, cancel_flag: threading.Event) -> None:
        try:
            pcm = await self._synthesize(text)
            audio = apply_gain(pcm16le_to_float32(pcm), self._volume)

            await self._emit_event(
                PlaybackStarted(
                    event_type=EventType.PLAYBACK_STARTED,
                    ts_ms=self._now_ms(),
                    token=token,
                )
            )

            await asyncio.to_thread(self._play, audio, self._output_rate_hz, cancel_flag)

            await self._emit_event(
                PlaybackEnded(
                    event_type=EventType.PLAYBACK_ENDED,
                    ts_ms=self._now_ms(),
                    token=token,
                )
            )

        except asyncio.CancelledError:
            return

        except ConversationError as exc:
            await self._emit_failed(token, exc.message)

        except Exception as exc:  # pylint: disable=broad-exception-caught
            await self._emit_failed(token, f"{type(exc).__name__}: {exc}")

    async def _synthesize(self, text: str) -> bytes:
        try:
            response = await self._client.audio.speech.create(
                model=self._model,
                voice=self._voice,
                input=text,
                response_format="pcm",
                speed=self._speed,
            )
        except openai.OpenAIError as exc:
            raise PlaybackError(f"speech synthesis failed: {exc}") from exc

        return response.content

    def _play(self, audio: np.ndarray, sample_rate_hz: int, cancel_flag: threading.Event) -> None:
        """
        Blocking: play samples until done or stopped.

        The flag is checked under the device lock, so a cancel() racing with
        this thread either prevents sd.play or stops what it started.
        """
        import sounddevice as sd  # pylint: disable=import-outside-toplevel

        with self._device_lock:
            if cancel_flag.is_set():
                return
            sd.play(audio, samplerate=sample_rate_hz)
        sd.wait()

    def _stop_device(self) -> None:
        import sounddevice as sd  # pylint: disable=import-outside-toplevel

        sd.stop()

    async def _emit_failed(self, token: int, reason: str) -> None:
        log_event({
            "ts_ms": self._now_ms(),
            "event_type": "playback_failed",
            "session_id": self._session_id,
            "token": token,
            "reason": reason,
        })
        await self._emit_event(
            PlaybackFailed(
                event_type=EventType.PLAYBACK_FAILED,
                ts_ms=self._now_ms(),
                token=token,
                reason=reason,
            )
        )

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)
