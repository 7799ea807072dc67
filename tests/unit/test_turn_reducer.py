# pylint: disable=missing-module-docstring,missing-function-docstring
from dataclasses import replace

import pytest

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
    CaptureFailed,
    CaptureNoResult,
    CaptureTranscript,
    EventType,
    PlaybackEnded,
    PlaybackFailed,
    PlaybackStarted,
    ResumeCaptureDue,
    StreamCancelled,
    StreamDelta,
    StreamEndedEarly,
    StreamFailed,
    StreamFinished,
    UserStart,
    UserStop,
)
from orchestrator.reducer import TIMER_RESUME_CAPTURE, allowed_event_types, reduce
from orchestrator.state_dataclass import TurnState


# ---------------------------------------------------------------------
# Event helpers (mirror runtime construction)
# ---------------------------------------------------------------------

def user_start() -> UserStart:
    return UserStart(event_type=EventType.USER_START, ts_ms=0)


def user_stop() -> UserStop:
    return UserStop(event_type=EventType.USER_STOP, ts_ms=0)


def transcript(token: int, text: str = "order a pizza") -> CaptureTranscript:
    return CaptureTranscript(event_type=EventType.CAPTURE_TRANSCRIPT, ts_ms=0, token=token, text=text)


def delta(token: int, text: str) -> StreamDelta:
    return StreamDelta(event_type=EventType.STREAM_DELTA, ts_ms=0, token=token, delta=text)


def finished(token: int) -> StreamFinished:
    return StreamFinished(event_type=EventType.STREAM_FINISHED, ts_ms=0, token=token)


def failed(token: int, reason: str = "HTTP error: status 500") -> StreamFailed:
    return StreamFailed(event_type=EventType.STREAM_FAILED, ts_ms=0, token=token, kind="transport", reason=reason)


def playback_ended(token: int) -> PlaybackEnded:
    return PlaybackEnded(event_type=EventType.PLAYBACK_ENDED, ts_ms=0, token=token)


def resume_due(token: int) -> ResumeCaptureDue:
    return ResumeCaptureDue(event_type=EventType.RESUME_CAPTURE_DUE, ts_ms=0, token=token)


def effects(commands: tuple[Command, ...]) -> list[Command]:
    return [c for c in commands if not isinstance(c, LogEvent)]


def listening() -> TurnState:
    state, _ = reduce(TurnState(), user_start())
    return state


def thinking(accumulated: str = "") -> TurnState:
    state = listening()
    state, _ = reduce(state, transcript(state.token))
    if accumulated:
        state, _ = reduce(state, delta(state.token, accumulated))
    return state


def speaking() -> TurnState:
    state = thinking("Sure.")
    state, _ = reduce(state, finished(state.token))
    return state


# ---------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------

def test_user_start_begins_listening() -> None:
    state, cmds = reduce(TurnState(), user_start())

    assert state.state is ConversationState.LISTENING
    assert state.intent is Intent.CONTINUE
    assert state.token == 1
    assert effects(cmds) == [StartCapture(token=1)]


def test_transcript_opens_stream_under_new_token() -> None:
    before = listening()

    state, cmds = reduce(before, transcript(before.token, "find parking"))

    assert state.state is ConversationState.THINKING
    assert state.token == before.token + 1
    assert state.transcript == "find parking"
    assert state.accumulator == ""
    assert effects(cmds) == [OpenStream(token=state.token, message="find parking")]


def test_deltas_accumulate_in_order_without_commands() -> None:
    state = thinking()
    token = state.token

    for piece in ("I'll ", "order ", "that."):
        state, cmds = reduce(state, delta(token, piece))
        assert cmds == ()

    assert state.accumulator == "I'll order that."
    assert state.token == token


def test_finished_speaks_full_reply() -> None:
    before = thinking("I'll order that.")

    state, cmds = reduce(before, finished(before.token))

    assert state.state is ConversationState.SPEAKING
    assert state.token == before.token + 1
    assert effects(cmds) == [Speak(token=state.token, text="I'll order that.")]


def test_finished_with_empty_reply_goes_idle_silently() -> None:
    before = thinking()

    state, cmds = reduce(before, finished(before.token))

    assert state.state is ConversationState.IDLE
    assert effects(cmds) == []


def test_stream_failure_speaks_error() -> None:
    before = thinking("partial")

    state, cmds = reduce(before, failed(before.token, "HTTP error: status 500"))

    assert state.state is ConversationState.SPEAKING
    assert state.last_error == "HTTP error: status 500"
    assert effects(cmds) == [Speak(token=state.token, text="Error: HTTP error: status 500")]


def test_stream_cancelled_goes_idle() -> None:
    before = thinking("partial")

    state, cmds = reduce(
        before,
        StreamCancelled(event_type=EventType.STREAM_CANCELLED, ts_ms=0, token=before.token),
    )

    assert state.state is ConversationState.IDLE
    assert effects(cmds) == []


def test_stream_ended_without_done_goes_idle_without_speaking() -> None:
    before = thinking("partial rep")

    state, cmds = reduce(
        before,
        StreamEndedEarly(event_type=EventType.STREAM_ENDED_EARLY, ts_ms=0, token=before.token),
    )

    assert state.state is ConversationState.IDLE
    assert state.accumulator == ""
    assert state.token == before.token + 1
    assert effects(cmds) == []


def test_playback_started_changes_nothing() -> None:
    before = speaking()

    state, cmds = reduce(
        before,
        PlaybackStarted(event_type=EventType.PLAYBACK_STARTED, ts_ms=0, token=before.token),
    )

    assert state == before
    assert effects(cmds) == []


def test_playback_end_schedules_resume() -> None:
    before = speaking()

    state, cmds = reduce(before, playback_ended(before.token))

    assert state.state is ConversationState.LISTENING
    assert effects(cmds) == [
        StartTimer(
            timer_id=TIMER_RESUME_CAPTURE,
            token=state.token,
            duration_ms=500,
            timeout_event_type=EventType.RESUME_CAPTURE_DUE,
        )
    ]


def test_playback_failure_is_treated_as_end_and_never_speaks() -> None:
    before = speaking()

    state, cmds = reduce(
        before,
        PlaybackFailed(event_type=EventType.PLAYBACK_FAILED, ts_ms=0, token=before.token, reason="no device"),
    )

    assert state.state is ConversationState.LISTENING
    assert not any(isinstance(c, Speak) for c in cmds)


def test_resume_due_restarts_capture() -> None:
    state = speaking()
    state, _ = reduce(state, playback_ended(state.token))
    state = replace(state, transcript="old")

    state, cmds = reduce(state, resume_due(state.token))

    assert state.state is ConversationState.LISTENING
    assert state.transcript == ""
    assert effects(cmds) == [StartCapture(token=state.token)]


def test_resume_due_reads_intent_at_expiry() -> None:
    state = speaking()
    state, _ = reduce(state, playback_ended(state.token))
    state = replace(state, intent=Intent.STOP)

    state, cmds = reduce(state, resume_due(state.token))

    assert state.state is ConversationState.IDLE
    assert effects(cmds) == []


def test_playback_end_with_stop_intent_goes_idle() -> None:
    before = replace(speaking(), intent=Intent.STOP)

    state, cmds = reduce(before, playback_ended(before.token))

    assert state.state is ConversationState.IDLE
    assert effects(cmds) == []


@pytest.mark.parametrize("make_event", [
    lambda t: CaptureFailed(event_type=EventType.CAPTURE_FAILED, ts_ms=0, token=t, reason="mic denied"),
    lambda t: CaptureNoResult(event_type=EventType.CAPTURE_NO_RESULT, ts_ms=0, token=t),
])
def test_capture_without_result_goes_idle(make_event) -> None:
    before = listening()

    state, cmds = reduce(before, make_event(before.token))

    assert state.state is ConversationState.IDLE
    assert effects(cmds) == []


# ---------------------------------------------------------------------
# Stop
# ---------------------------------------------------------------------

@pytest.mark.parametrize("make_state", [TurnState, listening, thinking, speaking])
def test_stop_from_any_state_cancels_everything(make_state) -> None:
    before = make_state()

    state, cmds = reduce(before, user_stop())

    assert state.state is ConversationState.IDLE
    assert state.intent is Intent.STOP
    assert state.token == before.token + 1
    assert state.accumulator == ""
    assert state.transcript == ""
    assert effects(cmds) == [
        CancelStream(),
        CancelPlayback(),
        StopCapture(),
        CancelTimer(timer_id=TIMER_RESUME_CAPTURE),
    ]


def test_stop_is_idempotent() -> None:
    once, _ = reduce(thinking("x"), user_stop())
    twice, _ = reduce(once, user_stop())

    assert twice.state is ConversationState.IDLE
    assert replace(twice, token=once.token) == once


# ---------------------------------------------------------------------
# Stale tokens and illegal transitions
# ---------------------------------------------------------------------

def test_stale_events_are_ignored_and_logged() -> None:
    before = thinking("kept")
    stale = before.token - 1

    for event in (delta(stale, "late"), finished(stale), failed(stale), playback_ended(stale)):
        state, cmds = reduce(before, event)
        assert state == before
        assert len(cmds) == 1
        assert isinstance(cmds[0], LogEvent)
        assert cmds[0].event["decision"] == "ignore"
        assert cmds[0].event["details"] == {"reason": "stale_token"}


def test_late_stream_events_after_stop_are_ignored() -> None:
    running = thinking("partial")
    stopped, _ = reduce(running, user_stop())

    state, _ = reduce(stopped, delta(running.token, " more"))
    state, cmds = reduce(state, finished(running.token))

    assert state == stopped
    assert effects(cmds) == []


def test_user_start_outside_idle_is_illegal() -> None:
    with pytest.raises(IllegalTransition):
        reduce(listening(), user_start())


def test_current_event_without_transition_is_illegal() -> None:
    state = listening()

    with pytest.raises(IllegalTransition):
        reduce(state, delta(state.token, "x"))


def test_allowed_event_types_per_state() -> None:
    assert allowed_event_types(ConversationState.IDLE) == frozenset({EventType.USER_START})
    assert EventType.RESUME_CAPTURE_DUE in allowed_event_types(ConversationState.LISTENING)
    assert EventType.PLAYBACK_FAILED in allowed_event_types(ConversationState.SPEAKING)


# ---------------------------------------------------------------------
# Log contract
# ---------------------------------------------------------------------

def test_logs_come_after_effects_and_state_change_is_last() -> None:
    _, cmds = reduce(TurnState(), user_start())

    kinds = [type(c).__name__ for c in cmds]
    assert kinds[0] == "StartCapture"
    assert all(k == "LogEvent" for k in kinds[1:])

    last = cmds[-1]
    assert isinstance(last, LogEvent)
    assert last.event["decision"] == "state_changed"
    assert last.event["details"] == {"from_state": "IDLE", "to_state": "LISTENING"}
