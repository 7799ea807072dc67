"""
Microphone capture adapter.

Role in the system:
- Records one utterance from the default input device (PCM16 16kHz mono,
  20ms frames) using an energy VAD for speech start and end-of-speech
  silence.
- Transcribes it through the OpenAI audio transcription API.
- Emits exactly one terminal capture event per start():
    - CaptureTranscript(token, text), or
    - CaptureNoResult(token) when nothing was said or recognized, or
    - CaptureFailed(token, reason) on device or API failure.

Concurrency & cancellation:
- One asyncio task per capture; the blocking device read runs in a worker
  thread and polls a stop flag every frame.
- stop() sets the flag and cancels the task; a stopped capture ends
  without a terminal event.
"""
from __future__ import annotations

import asyncio
import collections
import threading
import time
from typing import Any, Awaitable, Callable

import numpy as np
import openai

from adapters.capture.base import CaptureAdapter
from audio.pcm import pcm16le_to_float32, wav_bytes_from_float32
from audio.vad import EnergyVAD
from constants import (
    CAPTURE_CHANNELS,
    CAPTURE_FRAME_MS,
    CAPTURE_MAX_UTTERANCE_S,
    CAPTURE_NO_SPEECH_TIMEOUT_S,
    CAPTURE_SAMPLE_RATE_HZ,
    CAPTURE_SAMPLES_PER_FRAME,
    DEFAULT_CAPTURE_LANGUAGE,
    SILENCE_DETECTION_MS,
    VAD_FRAMES_REQUIRED,
    VAD_RMS_THRESHOLD,
)
from errors import CaptureError, ConversationError
from observability.logger import log_event
from orchestrator.events import (
    CaptureFailed,
    CaptureNoResult,
    CaptureTranscript,
    Event,
    EventType,
)


def language_code(locale: str) -> str:
    """Map a locale to the ISO-639-1 code the recognizer takes ("en-US" -> "en")."""
    return locale.replace("_", "-").split("-", 1)[0].lower()


class MicrophoneCapture(CaptureAdapter):
    """
    Single-shot microphone capture with cloud transcription.

    Fire-and-forget: start() schedules the capture and returns; the
    result is delivered through emit_event.
    """

    def __init__(
        self,
        *,
        emit_event: Callable[[Event], Awaitable[None]],
        client: Any,
        session_id: str,
        model: str = "whisper-1",
        language: str = DEFAULT_CAPTURE_LANGUAGE,
    ) -> None:
        """
        Args:
            emit_event:
                Async event sink (the voice controller's handle_event).
            client:
                openai.AsyncOpenAI (or a compatible fake).
            model:
                Transcription model identifier.
            language:
                Locale string, e.g. "en-US".
        """
        self._emit_event = emit_event
        self._client = client
        self._session_id = session_id
        self._model = model
        self._language = language_code(language)

        self._task: asyncio.Task[None] | None = None
        self._stop_flag: threading.Event | None = None

    # ------------------------------------------------------------------
    # Public API (CaptureAdapter contract)
    # ------------------------------------------------------------------

    async def start(self, token: int) -> None:
        await self.stop()

        stop_flag = threading.Event()
        self._stop_flag = stop_flag
        self._task = asyncio.create_task(self._run_capture(token, stop_flag))

        log_event({
            "ts_ms": self._now_ms(),
            "event_type": "capture_started",
            "session_id": self._session_id,
            "token": token,
        })

    async def stop(self) -> None:
        if self._stop_flag is not None:
            self._stop_flag.set()
            self._stop_flag = None

        task = self._task
        self._task = None
        if task is None or task.done() or task is asyncio.current_task():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        log_event({
            "ts_ms": self._now_ms(),
            "event_type": "capture_stopped",
            "session_id": self._session_id,
        })

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run_capture(self, token: int, stop_flag: threading.Event) -> None:
        """
        Internal capture task.

        Emits exactly one terminal event unless cancelled.
        """
        try:
            audio = await asyncio.to_thread(self._record_utterance, stop_flag)
            if audio is None or audio.size == 0:
                log_event({
                    "ts_ms": self._now_ms(),
                    "event_type": "capture_no_speech",
                    "session_id": self._session_id,
                    "token": token,
                })
                await self._emit_no_result(token)
                return

            text = await self._transcribe(audio)
            if not text:
                await self._emit_no_result(token)
                return

            await self._emit_event(
                CaptureTranscript(
                    event_type=EventType.CAPTURE_TRANSCRIPT,
                    ts_ms=self._now_ms(),
                    token=token,
                    text=text,
                )
            )

        except asyncio.CancelledError:
            stop_flag.set()
            return

        except ConversationError as exc:
            await self._emit_failed(token, exc.message)

        except Exception as exc:  # pylint: disable=broad-exception-caught
            await self._emit_failed(token, f"{type(exc).__name__}: {exc}")

    def _record_utterance(self, stop_flag: threading.Event) -> np.ndarray | None:
        """
        Blocking: record until end-of-speech silence.

        Returns:
            float32 mono samples, or None when no speech started before
            the no-speech limit or the capture was stopped.
        """
        import sounddevice as sd  # pylint: disable=import-outside-toplevel

        vad = EnergyVAD(threshold=VAD_RMS_THRESHOLD, frames_required=VAD_FRAMES_REQUIRED)
        pre_roll: collections.deque[np.ndarray] = collections.deque(maxlen=VAD_FRAMES_REQUIRED)
        frames: list[np.ndarray] = []

        silence_limit = SILENCE_DETECTION_MS // CAPTURE_FRAME_MS
        no_speech_limit = int(CAPTURE_NO_SPEECH_TIMEOUT_S * 1000) // CAPTURE_FRAME_MS
        max_frames = int(CAPTURE_MAX_UTTERANCE_S * 1000) // CAPTURE_FRAME_MS

        silent_frames = 0
        waited_frames = 0

        with sd.InputStream(
            samplerate=CAPTURE_SAMPLE_RATE_HZ,
            channels=CAPTURE_CHANNELS,
            dtype="int16",
            blocksize=CAPTURE_SAMPLES_PER_FRAME,
        ) as stream:
            while not stop_flag.is_set():
                data, _overflowed = stream.read(CAPTURE_SAMPLES_PER_FRAME)
                frame = pcm16le_to_float32(data.tobytes())
                voiced = vad.observe(frame)

                if not frames:
                    pre_roll.append(frame)
                    if voiced:
                        frames.extend(pre_roll)
                        continue
                    waited_frames += 1
                    if waited_frames >= no_speech_limit:
                        return None
                    continue

                frames.append(frame)
                silent_frames = 0 if vad.last_frame_voiced else silent_frames + 1
                if silent_frames >= silence_limit or len(frames) >= max_frames:
                    break

        if stop_flag.is_set() or not frames:
            return None
        return np.concatenate(frames)

    async def _transcribe(self, audio: np.ndarray) -> str:
        wav = wav_bytes_from_float32(audio, CAPTURE_SAMPLE_RATE_HZ)
        try:
            response = await self._client.audio.transcriptions.create(
                model=self._model,
                file=("utterance.wav", wav, "audio/wav"),
                language=self._language,
            )
        except openai.OpenAIError as exc:
            raise CaptureError(f"transcription failed: {exc}") from exc

        return (getattr(response, "text", "") or "").strip()

    async def _emit_no_result(self, token: int) -> None:
        await self._emit_event(
            CaptureNoResult(
                event_type=EventType.CAPTURE_NO_RESULT,
                ts_ms=self._now_ms(),
                token=token,
            )
        )

    async def _emit_failed(self, token: int, reason: str) -> None:
        log_event({
            "ts_ms": self._now_ms(),
            "event_type": "capture_failed",
            "session_id": self._session_id,
            "token": token,
            "reason": reason,
        })
        await self._emit_event(
            CaptureFailed(
                event_type=EventType.CAPTURE_FAILED,
                ts_ms=self._now_ms(),
                token=token,
                reason=reason,
            )
        )

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)
