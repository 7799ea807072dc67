# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio

from context.ledger import Message, MessageLedger
from orchestrator.text_turn import TextTurnController
from stream.events import ContentDelta, StreamDone, StreamError

from fakes import ScriptedStreamClient, settle, wait_until


SESSION_ID = "sess_text"


def make_controller(
    stream: ScriptedStreamClient,
    updates: list[Message] | None = None,
) -> tuple[TextTurnController, MessageLedger]:
    ledger = MessageLedger()
    controller = TextTurnController(
        ledger=ledger,
        stream_client=stream,
        session_id=SESSION_ID,
        on_update=updates.append if updates is not None else None,
    )
    return controller, ledger


def contents(ledger: MessageLedger) -> list[tuple[str, str]]:
    return [(m.role, m.content) for m in ledger.messages()]


async def test_hello_streams_into_placeholder() -> None:
    updates: list[Message] = []
    stream = ScriptedStreamClient([ContentDelta(text="Hi"), ContentDelta(text=" there"), StreamDone()])
    controller, ledger = make_controller(stream, updates)

    placeholder = await controller.send("hello")
    await controller.wait()

    assert placeholder is not None
    assert contents(ledger) == [("user", "hello"), ("assistant", "Hi there")]
    assert ledger.streaming_id is None
    assert not controller.is_loading
    assert stream.calls == [("hello", SESSION_ID)]
    assert [m.content for m in updates if m.id == placeholder.id] == ["", "Hi", "Hi there"]


async def test_input_is_trimmed() -> None:
    stream = ScriptedStreamClient([StreamDone()])
    controller, ledger = make_controller(stream)

    await controller.send("  find parking  ")
    await controller.wait()

    assert ledger.messages()[0].content == "find parking"
    assert stream.calls == [("find parking", SESSION_ID)]


async def test_blank_input_is_rejected() -> None:
    stream = ScriptedStreamClient()
    controller, ledger = make_controller(stream)

    assert await controller.send("   ") is None
    assert len(ledger) == 0
    assert stream.calls == []
    assert not controller.is_loading


async def test_remote_error_replaces_partial_reply() -> None:
    stream = ScriptedStreamClient([
        ContentDelta(text="part"),
        StreamError(kind="remote", message="model overloaded"),
    ])
    controller, ledger = make_controller(stream)

    await controller.send("hello")
    await controller.wait()

    assert contents(ledger) == [("user", "hello"), ("assistant", "Error: model overloaded")]
    assert ledger.streaming_id is None


async def test_transport_error_is_shown() -> None:
    stream = ScriptedStreamClient([StreamError(kind="transport", message="HTTP error: status 502")])
    controller, ledger = make_controller(stream)

    await controller.send("hello")
    await controller.wait()

    assert ledger.messages()[-1].content == "Error: HTTP error: status 502"


async def test_end_of_stream_without_done_closes_message() -> None:
    stream = ScriptedStreamClient([ContentDelta(text="cut short")])
    controller, ledger = make_controller(stream)

    await controller.send("hello")
    await controller.wait()

    assert ledger.messages()[-1].content == "cut short"
    assert ledger.streaming_id is None


async def test_clear_cancels_in_flight_turn() -> None:
    gate = asyncio.Event()
    stream = ScriptedStreamClient([ContentDelta(text="partial"), gate, ContentDelta(text=" late"), StreamDone()])
    controller, ledger = make_controller(stream)

    await controller.send("hello")
    await wait_until(lambda: ledger.messages()[-1].content == "partial")

    await controller.clear()
    gate.set()
    await settle()

    assert len(ledger) == 0
    assert not controller.is_loading
    assert stream.closed == 1


async def test_cancel_leaves_placeholder_as_is() -> None:
    gate = asyncio.Event()
    stream = ScriptedStreamClient([ContentDelta(text="partial"), gate, ContentDelta(text=" late")])
    controller, ledger = make_controller(stream)

    await controller.send("hello")
    await wait_until(lambda: ledger.messages()[-1].content == "partial")

    await controller.cancel()
    gate.set()
    await settle()

    assert contents(ledger) == [("user", "hello"), ("assistant", "partial")]
    assert ledger.streaming_id is None


async def test_new_send_supersedes_in_flight_turn() -> None:
    gate = asyncio.Event()
    stream = ScriptedStreamClient(
        [ContentDelta(text="first"), gate, ContentDelta(text=" stale")],
        [ContentDelta(text="second"), StreamDone()],
    )
    controller, ledger = make_controller(stream)

    await controller.send("one")
    await wait_until(lambda: ledger.messages()[-1].content == "first")

    await controller.send("two")
    gate.set()
    await controller.wait()
    await settle()

    assert contents(ledger) == [
        ("user", "one"),
        ("assistant", "first"),
        ("user", "two"),
        ("assistant", "second"),
    ]


async def test_reply_keeps_streaming_by_id_after_user_append() -> None:
    gate = asyncio.Event()
    stream = ScriptedStreamClient([ContentDelta(text="Hel"), gate, ContentDelta(text="lo"), StreamDone()])
    controller, ledger = make_controller(stream)

    placeholder = await controller.send("hello")
    assert placeholder is not None
    await wait_until(lambda: ledger.get(placeholder.id).content == "Hel")

    ledger.append_user("side note")
    gate.set()
    await controller.wait()

    assert ledger.get(placeholder.id).content == "Hello"
    assert ledger.streaming_id is None
