"""
Pure turn reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: UserStop is valid everywhere; token events with a stale token are
  ignored (logged); every other (state, event_type) pair must be in
  TRANSITIONS or it is rejected with IllegalTransition.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable

from constants import ERROR_TEXT_PREFIX, RESUME_CAPTURE_DELAY_MS
from errors import IllegalTransition
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
    CaptureTranscript,
    Event,
    EventType,
    PlaybackFailed,
    StreamDelta,
    StreamFailed,
    TokenEvent,
    UserStop,
)
from orchestrator.state_dataclass import TurnState


# =============================================================================
# Timer IDs
# =============================================================================

TIMER_RESUME_CAPTURE = "resume_capture"


Handler = Callable[[TurnState, Event], tuple[TurnState, tuple[Command, ...]]]


# =============================================================================
# Small helpers
# =============================================================================

def _next_token(state: TurnState) -> int:
    return state.token + 1


def _log(
    state: TurnState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "state": state.state.value,
            "intent": state.intent.value,
            "token": state.token,
            "event_type": event.event_type.value,
            "decision": decision,
            "details": details or {},
        }
    )


def _state_changed(before: TurnState, after: TurnState, event: Event) -> LogEvent:
    return _log(
        after,
        event,
        "state_changed",
        {"from_state": before.state.value, "to_state": after.state.value},
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    state: TurnState, event: Event, reason: str
) -> tuple[TurnState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _go_idle(
    state: TurnState, event: Event, decision: str
) -> tuple[TurnState, tuple[Command, ...]]:
    """Leave the current phase for IDLE; the old token dies with it."""
    new_state = replace(
        state,
        state=ConversationState.IDLE,
        token=_next_token(state),
    )
    return new_state, _logs_last((
        _log(new_state, event, decision),
        _state_changed(state, new_state, event),
    ))


# =============================================================================
# Transition handlers
# =============================================================================

def _on_user_start(
    state: TurnState, event: Event
) -> tuple[TurnState, tuple[Command, ...]]:
    new_state = replace(
        state,
        state=ConversationState.LISTENING,
        intent=Intent.CONTINUE,
        token=_next_token(state),
        transcript="",
        accumulator="",
        last_error=None,
    )
    return new_state, _logs_last((
        StartCapture(token=new_state.token),
        _log(new_state, event, "start_conversation"),
        _state_changed(state, new_state, event),
    ))


def _on_transcript(
    state: TurnState, event: Event
) -> tuple[TurnState, tuple[Command, ...]]:
    assert isinstance(event, CaptureTranscript)
    new_state = replace(
        state,
        state=ConversationState.THINKING,
        token=_next_token(state),
        transcript=event.text,
        accumulator="",
    )
    return new_state, _logs_last((
        OpenStream(token=new_state.token, message=event.text),
        _log(new_state, event, "open_stream", {"transcript_len": len(event.text)}),
        _state_changed(state, new_state, event),
    ))


def _on_capture_without_result(
    state: TurnState, event: Event
) -> tuple[TurnState, tuple[Command, ...]]:
    return _go_idle(state, event, "capture_ended_without_result")


def _on_resume_capture_due(
    state: TurnState, event: Event
) -> tuple[TurnState, tuple[Command, ...]]:
    # Intent is read now, at resumption, not when the delay was scheduled
    if state.intent is not Intent.CONTINUE:
        return _go_idle(state, event, "resume_skipped_intent_stop")

    new_state = replace(state, transcript="")
    return new_state, _logs_last((
        StartCapture(token=new_state.token),
        _log(new_state, event, "resume_capture"),
    ))


def _on_stream_delta(
    state: TurnState, event: Event
) -> tuple[TurnState, tuple[Command, ...]]:
    assert isinstance(event, StreamDelta)
    new_state = replace(state, accumulator=state.accumulator + event.delta)
    return new_state, ()


def _on_stream_finished(
    state: TurnState, event: Event
) -> tuple[TurnState, tuple[Command, ...]]:
    if not state.accumulator:
        new_state, cmds = _go_idle(state, event, "stream_finished_empty")
        return replace(new_state, accumulator=""), cmds

    new_state = replace(
        state,
        state=ConversationState.SPEAKING,
        token=_next_token(state),
    )
    return new_state, _logs_last((
        Speak(token=new_state.token, text=state.accumulator),
        _log(new_state, event, "speak_reply", {"reply_len": len(state.accumulator)}),
        _state_changed(state, new_state, event),
    ))


def _on_stream_failed(
    state: TurnState, event: Event
) -> tuple[TurnState, tuple[Command, ...]]:
    assert isinstance(event, StreamFailed)
    error_text = f"{ERROR_TEXT_PREFIX}{event.reason}"
    new_state = replace(
        state,
        state=ConversationState.SPEAKING,
        token=_next_token(state),
        last_error=event.reason,
    )
    return new_state, _logs_last((
        Speak(token=new_state.token, text=error_text),
        _log(new_state, event, "speak_error", {"kind": event.kind, "reason": event.reason}),
        _state_changed(state, new_state, event),
    ))


def _on_stream_ended_early(
    state: TurnState, event: Event
) -> tuple[TurnState, tuple[Command, ...]]:
    # An unterminated reply is never spoken
    new_state, cmds = _go_idle(state, event, "stream_ended_without_done")
    return replace(new_state, accumulator=""), cmds


def _on_stream_cancelled(
    state: TurnState, event: Event
) -> tuple[TurnState, tuple[Command, ...]]:
    new_state, cmds = _go_idle(state, event, "stream_cancelled")
    return replace(new_state, accumulator=""), cmds


def _on_playback_started(
    state: TurnState, event: Event
) -> tuple[TurnState, tuple[Command, ...]]:
    return state, (_log(state, event, "playback_started"),)


def _on_playback_finished(
    state: TurnState, event: Event
) -> tuple[TurnState, tuple[Command, ...]]:
    details: dict[str, Any] = {}
    if isinstance(event, PlaybackFailed):
        # Never escalated into another utterance
        details["playback_error"] = event.reason

    if state.intent is not Intent.CONTINUE:
        return _go_idle(state, event, "playback_finished_intent_stop")

    new_state = replace(
        state,
        state=ConversationState.LISTENING,
        token=_next_token(state),
    )
    return new_state, _logs_last((
        StartTimer(
            timer_id=TIMER_RESUME_CAPTURE,
            token=new_state.token,
            duration_ms=RESUME_CAPTURE_DELAY_MS,
            timeout_event_type=EventType.RESUME_CAPTURE_DUE,
        ),
        _log(new_state, event, "schedule_resume_capture", details),
        _state_changed(state, new_state, event),
    ))


def _on_user_stop(
    state: TurnState, event: Event
) -> tuple[TurnState, tuple[Command, ...]]:
    """
    Stop from any state.

    Every cancellation command is idempotent, so all of them are issued
    regardless of which phase was active.
    """
    new_state = replace(
        state,
        state=ConversationState.IDLE,
        intent=Intent.STOP,
        token=_next_token(state),
        transcript="",
        accumulator="",
    )
    cmds: tuple[Command, ...] = (
        CancelStream(),
        CancelPlayback(),
        StopCapture(),
        CancelTimer(timer_id=TIMER_RESUME_CAPTURE),
        _log(new_state, event, "stop", {"from_state": state.state.value}),
    )
    if state.state is not ConversationState.IDLE:
        cmds += (_state_changed(state, new_state, event),)
    return new_state, _logs_last(cmds)


# =============================================================================
# Transition table
# =============================================================================

TRANSITIONS: dict[tuple[ConversationState, EventType], Handler] = {
    (ConversationState.IDLE, EventType.USER_START): _on_user_start,

    (ConversationState.LISTENING, EventType.CAPTURE_TRANSCRIPT): _on_transcript,
    (ConversationState.LISTENING, EventType.CAPTURE_FAILED): _on_capture_without_result,
    (ConversationState.LISTENING, EventType.CAPTURE_NO_RESULT): _on_capture_without_result,
    (ConversationState.LISTENING, EventType.RESUME_CAPTURE_DUE): _on_resume_capture_due,

    (ConversationState.THINKING, EventType.STREAM_DELTA): _on_stream_delta,
    (ConversationState.THINKING, EventType.STREAM_FINISHED): _on_stream_finished,
    (ConversationState.THINKING, EventType.STREAM_ENDED_EARLY): _on_stream_ended_early,
    (ConversationState.THINKING, EventType.STREAM_FAILED): _on_stream_failed,
    (ConversationState.THINKING, EventType.STREAM_CANCELLED): _on_stream_cancelled,

    (ConversationState.SPEAKING, EventType.PLAYBACK_STARTED): _on_playback_started,
    (ConversationState.SPEAKING, EventType.PLAYBACK_ENDED): _on_playback_finished,
    (ConversationState.SPEAKING, EventType.PLAYBACK_FAILED): _on_playback_finished,
}


def allowed_event_types(state: ConversationState) -> frozenset[EventType]:
    """Event types with a transition out of state (UserStop excluded)."""
    return frozenset(et for (s, et) in TRANSITIONS if s is state)


# =============================================================================
# Reducer
# =============================================================================

def reduce(
    state: TurnState,
    event: Event,
) -> tuple[TurnState, tuple[Command, ...]]:
    """
    Apply one event.

    Raises:
        IllegalTransition if a current (non-stale) event has no transition
        from the current state.
    """
    if isinstance(event, UserStop):
        return _on_user_stop(state, event)

    if isinstance(event, TokenEvent) and event.token != state.token:
        return _ignore(state, event, "stale_token")

    handler = TRANSITIONS.get((state.state, event.event_type))
    if handler is None:
        raise IllegalTransition(
            f"no transition from {state.state.value} on {event.event_type.value}"
        )

    return handler(state, event)
