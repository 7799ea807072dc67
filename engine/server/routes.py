"""
Route registration for the development backend.

Responsibilities:
- Define HTTP endpoints
- Declare the chat request body (validated by pydantic, 422 on failure)
- Pull dependencies from app.state
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import StreamingResponse

from constants import CHAT_STREAM_PATH
from observability.logger import log_event
from server.history import SessionStore
from server.models import ChatRequest
from server.relay import relay_completion


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""

    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.post(CHAT_STREAM_PATH)
    async def chat_stream(body: ChatRequest) -> StreamingResponse: # pyright: ignore[reportUnusedFunction]
        message, session_id = body.message, body.session_id

        sessions: SessionStore = app.state.sessions
        is_new = session_id not in sessions
        history = sessions.get(session_id)

        log_event({
            "event_type": "chat_request",
            "session_id": session_id,
            "new_session": is_new,
            "message_len": len(message),
        })

        return StreamingResponse(
            relay_completion(
                client=app.state.llm_client,
                model=app.state.config.llm_model,
                session_id=session_id,
                history=history,
                message=message,
            ),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )
