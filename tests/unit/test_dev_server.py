# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring
from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any

import httpx
import pytest
from pydantic import ValidationError

from config import AppConfig
from constants import MAX_CONTEXT_TURNS
from observability import logger
from server.app import build_llm_client, create_app
from server.history import ChatHistory, SessionStore
from server.models import ChatRequest
from server.relay import encode_event
from stream.client import ChatStreamClient
from stream.events import ContentDelta, StreamDone, StreamError


# ---------------------------------------------------------------------
# Fake OpenAI-compatible client
# ---------------------------------------------------------------------

def _chunk(text: str | None) -> Any:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class _ChunkStream:
    def __init__(self, deltas: list[str | None], fail: Exception | None) -> None:
        self._deltas = deltas
        self._fail = fail

    def __aiter__(self):
        return self._gen()

    async def _gen(self):
        for delta in self._deltas:
            yield _chunk(delta)
        if self._fail is not None:
            raise self._fail


class FakeCompletions:
    def __init__(self, replies: list[list[str | None]], fail: Exception | None = None) -> None:
        self._replies = list(replies)
        self._fail = fail
        self.requests: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> _ChunkStream:
        self.requests.append(kwargs)
        return _ChunkStream(self._replies.pop(0), self._fail)


def fake_llm(*replies: list[str | None], fail: Exception | None = None) -> Any:
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(list(replies), fail)))


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logger, "_enabled", logger._enabled)  # pylint: disable=protected-access


def make_app(llm: Any):
    return create_app(config=AppConfig(enable_json_logs=False), llm_client=llm)


def asgi_client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://dev.test")


# ---------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------

async def test_health() -> None:
    async with asgi_client(make_app(fake_llm())) as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.parametrize("body", [
    {"sessionId": "s1"},
    {"message": "", "sessionId": "s1"},
    {"message": "   ", "sessionId": "s1"},
    {"message": 42, "sessionId": "s1"},
    {"message": "hi"},
    {"message": "hi", "sessionId": ""},
    ["hi", "s1"],
])
async def test_malformed_body_is_rejected(body: Any) -> None:
    llm = fake_llm()
    async with asgi_client(make_app(llm)) as client:
        response = await client.post("/chat/stream", json=body)

    assert response.status_code == 422
    assert llm.chat.completions.requests == []


async def test_non_json_body_is_rejected() -> None:
    async with asgi_client(make_app(fake_llm())) as client:
        response = await client.post("/chat/stream", content=b"not json")

    assert response.status_code == 422


async def test_stream_wire_format() -> None:
    llm = fake_llm(["Hi", None, " there"])
    async with asgi_client(make_app(llm)) as client:
        response = await client.post("/chat/stream", json={"message": "hello", "sessionId": "s1"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.text == (
        'data: {"content": "Hi"}\n\n'
        'data: {"content": " there"}\n\n'
        'data: {"done": true}\n\n'
    )


def test_encode_event_keeps_non_ascii() -> None:
    assert encode_event({"content": "café"}) == 'data: {"content": "café"}\n\n'


# ---------------------------------------------------------------------
# End to end through the chat stream client
# ---------------------------------------------------------------------

async def test_client_reads_backend_reply() -> None:
    app = make_app(fake_llm(["Parking ", "is on 5th."]))
    client = ChatStreamClient(base_url="http://dev.test", transport=httpx.ASGITransport(app=app))

    events = [event async for event in client.open("find parking", "sess_1")]
    await client.aclose()

    assert events == [ContentDelta(text="Parking "), ContentDelta(text="is on 5th."), StreamDone()]


async def test_provider_failure_becomes_error_event() -> None:
    app = make_app(fake_llm(["par"], fail=RuntimeError("rate limited")))
    client = ChatStreamClient(base_url="http://dev.test", transport=httpx.ASGITransport(app=app))

    events = [event async for event in client.open("hello", "sess_1")]
    await client.aclose()

    assert events == [
        ContentDelta(text="par"),
        StreamError(kind="remote", message="RuntimeError: rate limited"),
    ]
    assert len(app.state.sessions.get("sess_1")) == 0


async def test_history_is_kept_per_session() -> None:
    llm = fake_llm(["Sure."], ["Done."], ["Hello."])
    app = make_app(llm)

    async with asgi_client(app) as client:
        await client.post("/chat/stream", json={"message": "order a pizza", "sessionId": "a"})
        await client.post("/chat/stream", json={"message": "make it large", "sessionId": "a"})
        await client.post("/chat/stream", json={"message": "hi", "sessionId": "b"})

    second, third = llm.chat.completions.requests[1:]
    assert second["stream"] is True
    assert [(m["role"], m["content"]) for m in second["messages"][1:]] == [
        ("user", "order a pizza"),
        ("assistant", "Sure."),
        ("user", "make it large"),
    ]
    assert second["messages"][0]["role"] == "system"
    assert len(third["messages"]) == 2


# ---------------------------------------------------------------------
# History policy
# ---------------------------------------------------------------------

def test_history_drops_oldest_turns_past_turn_limit() -> None:
    history = ChatHistory("s")
    for i in range(MAX_CONTEXT_TURNS):
        history.record_exchange(f"q{i}", f"a{i}")

    assert len(history) == MAX_CONTEXT_TURNS
    messages = history.build_messages(system_prompt="sys", user_text="now")
    assert messages[1]["content"] == f"q{MAX_CONTEXT_TURNS // 2}"
    assert messages[-1] == {"role": "user", "content": "now"}


def test_history_keeps_single_oversized_turn(monkeypatch: pytest.MonkeyPatch) -> None:
    logged: list[dict[str, Any]] = []
    monkeypatch.setattr("server.history.log_event", logged.append)
    history = ChatHistory("s")

    history.record_exchange("short", "x" * 10_000)

    assert len(history) == 1
    assert [e["event_type"] for e in logged] == ["history_turn_dropped", "history_single_turn_oversized"]


def test_session_store_evicts_least_recently_used(monkeypatch: pytest.MonkeyPatch) -> None:
    logged: list[dict[str, Any]] = []
    monkeypatch.setattr("server.history.log_event", logged.append)
    store = SessionStore(max_sessions=2)

    store.get("a").record_exchange("hi", "hello")
    store.get("b")
    store.get("a")
    store.get("c")

    assert len(store) == 2
    assert "b" not in store
    assert len(store.get("a")) == 2
    assert logged == [{"event_type": "session_history_evicted", "session_id": "b", "turn_count": 0}]


# ---------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------

def test_missing_provider_key_fails_fast() -> None:
    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        build_llm_client(AppConfig(openai_api_key=None))

    with pytest.raises(RuntimeError, match="GROQ_API_KEY"):
        build_llm_client(AppConfig(llm_provider="groq", groq_api_key=None))


def test_groq_client_uses_compatible_base_url() -> None:
    client = build_llm_client(AppConfig(llm_provider="groq", groq_api_key="gsk_test"))

    assert str(client.base_url).startswith("https://api.groq.com/openai/v1")


def test_wire_lines_are_valid_json() -> None:
    line = encode_event({"error": 'quote " and newline \n'})

    assert line.endswith("\n\n")
    payload = json.loads(line[len("data: "):].strip())
    assert payload == {"error": 'quote " and newline \n'}


# ---------------------------------------------------------------------
# Request model
# ---------------------------------------------------------------------

def test_chat_request_reads_wire_names_and_strips_message() -> None:
    request = ChatRequest.model_validate({"message": "  order a pizza ", "sessionId": "sess_1"})

    assert request.message == "order a pizza"
    assert request.session_id == "sess_1"


@pytest.mark.parametrize("body", [
    {"message": "\n\t ", "sessionId": "s1"},
    {"message": "hi", "sessionId": ""},
    {"message": None, "sessionId": "s1"},
])
def test_chat_request_rejects_invalid_fields(body: dict[str, Any]) -> None:
    with pytest.raises(ValidationError):
        ChatRequest.model_validate(body)


async def test_route_relays_stripped_message() -> None:
    llm = fake_llm(["ok"])
    async with asgi_client(make_app(llm)) as client:
        response = await client.post("/chat/stream", json={"message": "  hello  ", "sessionId": "s1"})

    assert response.status_code == 200
    assert llm.chat.completions.requests[0]["messages"][-1] == {"role": "user", "content": "hello"}
