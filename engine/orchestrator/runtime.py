"""
Runtime execution shell for the voice conversation loop.

Responsibilities:
- Own the turn state cell (state, live intent, current token)
- Call the pure reducer
- Execute commands with side effects (capture, stream, playback, timers)
- Consume the chat stream and translate it into token events
- Convert timer expiry into events

Non-responsibilities:
- Transition decisions (reducer)
- Device or vendor specifics (adapters)
- The message ledger (text mode only)
"""

from __future__ import annotations

import asyncio
import contextlib
import time

from adapters.capture.base import CaptureAdapter
from adapters.playback.base import PlaybackAdapter
from observability.logger import log_event
from orchestrator.commands import (
    CancelPlayback,
    CancelStream,
    CancelTimer,
    Command,
    LogEvent,
    OpenStream,
    Speak,
    StartCapture,
    StartTimer,
    StopCapture,
)
from orchestrator.enums.intent import Intent
from orchestrator.enums.state import ConversationState
from orchestrator.events import (
    Event,
    EventType,
    ResumeCaptureDue,
    StreamCancelled,
    StreamDelta,
    StreamEndedEarly,
    StreamFailed,
    StreamFinished,
    UserStart,
    UserStop,
)
from orchestrator.reducer import reduce
from orchestrator.runtime_context import TurnContext
from orchestrator.state_dataclass import TurnState
from stream.events import ContentDelta, StreamDone, StreamError


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


STATUS_LABELS: dict[ConversationState, str] = {
    ConversationState.IDLE: "Ready to chat",
    ConversationState.LISTENING: "Listening...",
    ConversationState.THINKING: "Thinking...",
    ConversationState.SPEAKING: "Speaking...",
}


class VoiceTurnController:
    """
    Runtime execution boundary for the voice loop.

    Architectural role:
    The bridge between the pure orchestration layer (reducer + immutable
    TurnState) and the imperative world (adapters, network, time).

    Guarantees:
    - Reducer is called exactly once per incoming event
    - State is swapped in before any command executes
    - Commands execute in reducer-emitted order
    - Timers and adapters re-enter through handle_event (single entry point)
    - The stream is not read past the point its token went stale
    """

    def __init__(
        self,
        *,
        context: TurnContext,
        initial_state: TurnState | None = None,
    ) -> None:
        self._ctx = context
        self._state = initial_state or TurnState()
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._stream_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def attach_capture(self, adapter: CaptureAdapter) -> None:
        self._ctx.capture = adapter

    def attach_playback(self, adapter: PlaybackAdapter) -> None:
        self._ctx.playback = adapter

    @property
    def adapters_attached(self) -> bool:
        return self._ctx.capture is not None and self._ctx.playback is not None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> TurnState:
        """
        The current immutable turn state.

        State is only ever replaced by the reducer result; consumers must
        treat it as read-only.
        """
        return self._state

    @property
    def state(self) -> ConversationState:
        return self._state.state

    @property
    def intent(self) -> Intent:
        return self._state.intent

    @property
    def transcript(self) -> str:
        return self._state.transcript

    @property
    def accumulator(self) -> str:
        return self._state.accumulator

    @property
    def last_error(self) -> str | None:
        return self._state.last_error

    def current_token(self) -> int:
        return self._state.token

    def is_live(self, token: int) -> bool:
        return token == self._state.token

    def status(self) -> str:
        """Short human label for the current phase."""
        return STATUS_LABELS[self._state.state]

    # ------------------------------------------------------------------
    # User control
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Begin a conversation.

        Raises:
            IllegalTransition if a conversation is already running.
        """
        await self.handle_event(UserStart(event_type=EventType.USER_START, ts_ms=_now_ms()))

    async def stop(self) -> None:
        """Stop from any state. Safe to call repeatedly."""
        await self.handle_event(UserStop(event_type=EventType.USER_STOP, ts_ms=_now_ms()))

    # ------------------------------------------------------------------
    # Event entry point
    # ------------------------------------------------------------------

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the reducer and execute its commands.

        All event sources converge here: user control, capture and playback
        adapters, the stream consumer task and timers.

        Invariants:
        - State is updated before any side effects execute
        - No reducer logic is re-run during command execution
        """
        new_state, commands = reduce(self._state, event)
        self._state = new_state

        for cmd in commands:
            await self._execute_command(cmd)

    async def shutdown(self) -> None:
        """
        Stop the loop and wait for owned tasks to finish.

        Adapters are not closed here; their owner releases them.
        """
        await self.stop()

        for timer_id in list(self._timers.keys()):
            self._cancel_timer(timer_id)

        pending = [t for t in (self._stream_task,) if t is not None]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._stream_task = None

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "session_id": self._ctx.session_id,
            })

        elif isinstance(cmd, StartCapture):
            assert self._ctx.capture is not None, "capture adapter missing"
            await self._ctx.capture.start(cmd.token)

        elif isinstance(cmd, StopCapture):
            if self._ctx.capture is not None:
                await self._ctx.capture.stop()

        elif isinstance(cmd, OpenStream):
            self._open_stream(token=cmd.token, message=cmd.message)

        elif isinstance(cmd, CancelStream):
            self._cancel_stream()

        elif isinstance(cmd, Speak):
            assert self._ctx.playback is not None, "playback adapter missing"
            await self._ctx.playback.speak(cmd.token, cmd.text)

        elif isinstance(cmd, CancelPlayback):
            if self._ctx.playback is not None:
                await self._ctx.playback.cancel()

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer_id=cmd.timer_id,
                token=cmd.token,
                duration_ms=cmd.duration_ms,
                timeout_event_type=cmd.timeout_event_type,
            )

        elif isinstance(cmd, CancelTimer):
            self._cancel_timer(cmd.timer_id)

        else:
            raise ValueError(f"Unknown command: {cmd.command_type}")

    # ------------------------------------------------------------------
    # Stream consumption
    # ------------------------------------------------------------------

    def _open_stream(self, *, token: int, message: str) -> None:
        self._cancel_stream()
        self._stream_task = asyncio.create_task(self._run_stream(token, message))

    def _cancel_stream(self) -> None:
        """
        Cancel the stream consumer if it is running.

        Idempotent. Not awaited: the reader may be the caller's own task.
        """
        task = self._stream_task
        self._stream_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run_stream(self, token: int, message: str) -> None:
        """
        Read one reply stream and re-enter handle_event with token events.

        Emits at most one terminal event (finished, ended early, failed or
        cancelled)
        and only while the token is still live.
        """
        saw_done = False
        try:
            events = self._ctx.stream_client.open(message, self._ctx.session_id)
            async with contextlib.aclosing(events):
                async for stream_event in events:
                    if not self.is_live(token):
                        log_event({
                            "ts_ms": _now_ms(),
                            "event_type": "stream_abandoned_stale",
                            "session_id": self._ctx.session_id,
                            "token": token,
                        })
                        return

                    if isinstance(stream_event, ContentDelta):
                        await self.handle_event(StreamDelta(
                            event_type=EventType.STREAM_DELTA,
                            ts_ms=_now_ms(),
                            token=token,
                            delta=stream_event.text,
                        ))

                    elif isinstance(stream_event, StreamDone):
                        saw_done = True
                        break

                    elif isinstance(stream_event, StreamError):
                        await self.handle_event(StreamFailed(
                            event_type=EventType.STREAM_FAILED,
                            ts_ms=_now_ms(),
                            token=token,
                            kind=stream_event.kind,
                            reason=stream_event.message,
                        ))
                        return

            if not self.is_live(token):
                return

            if saw_done:
                await self.handle_event(StreamFinished(
                    event_type=EventType.STREAM_FINISHED,
                    ts_ms=_now_ms(),
                    token=token,
                ))
            else:
                await self.handle_event(StreamEndedEarly(
                    event_type=EventType.STREAM_ENDED_EARLY,
                    ts_ms=_now_ms(),
                    token=token,
                ))

        except asyncio.CancelledError:
            if self.is_live(token):
                await self.handle_event(StreamCancelled(
                    event_type=EventType.STREAM_CANCELLED,
                    ts_ms=_now_ms(),
                    token=token,
                ))
            return

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        token: int,
        duration_ms: int,
        timeout_event_type: EventType,
    ) -> None:
        """
        Start or replace a timer that emits a timeout event.

        Timer tasks re-enter handle_event() when they expire, so the
        reducer sees the state (and intent) as of expiry.
        """
        self._cancel_timer(timer_id)

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
                self._timers.pop(timer_id, None)
                event = self._construct_timeout_event(
                    token=token,
                    timeout_event_type=timeout_event_type,
                )
                await self.handle_event(event)

            except asyncio.CancelledError:
                # Timer was cancelled - this is normal
                return

        self._timers[timer_id] = asyncio.create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        """
        Cancel an in-flight timer if it exists.

        Idempotent: safe to call even if timer doesn't exist.
        """
        task = self._timers.pop(timer_id, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    @staticmethod
    def _construct_timeout_event(
        *,
        token: int,
        timeout_event_type: EventType,
    ) -> Event:
        if timeout_event_type is EventType.RESUME_CAPTURE_DUE:
            return ResumeCaptureDue(
                event_type=EventType.RESUME_CAPTURE_DUE,
                ts_ms=_now_ms(),
                token=token,
            )

        raise ValueError(f"Unknown timeout event type: {timeout_event_type}")
