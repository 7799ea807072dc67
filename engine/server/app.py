"""
FastAPI app factory for the development backend.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (LLM client, session store)
- Register routes
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from openai import AsyncOpenAI

from config import AppConfig
from observability.logger import set_enabled
from server.history import SessionStore
from server.routes import register_routes


def create_app(
    config: AppConfig | None = None,
    llm_client: Any | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config:
            Defaults to AppConfig.load_from_env().
        llm_client:
            OpenAI-compatible async client. Built from config when omitted
            (tests inject a fake).

    Raises:
        RuntimeError if no client is given and the provider key is missing.
    """
    config = config or AppConfig.load_from_env()
    set_enabled(config.enable_json_logs)

    app = FastAPI(title="Conversation Dev Backend")

    app.state.config = config
    app.state.sessions = SessionStore()

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # dev only
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Create the LLM client ONCE per process
    app.state.llm_client = llm_client if llm_client is not None else build_llm_client(config)

    register_routes(app)

    return app


def build_llm_client(config: AppConfig) -> AsyncOpenAI:
    """Build an LLM client for the provider selected by configuration."""
    if config.llm_provider.lower() == "groq":
        if not config.groq_api_key:
            raise RuntimeError("GROQ_API_KEY environment variable not set")
        return AsyncOpenAI(
            api_key=config.groq_api_key,
            base_url="https://api.groq.com/openai/v1",
        )

    if not config.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable not set")
    return AsyncOpenAI(api_key=config.openai_api_key)
