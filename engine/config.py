"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No turn-taking logic
- No protocol constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_CAPTURE_LANGUAGE,
    DEFAULT_CONNECT_TIMEOUT_S,
    DEFAULT_PLAYBACK_PITCH,
    DEFAULT_PLAYBACK_RATE,
    DEFAULT_PLAYBACK_VOLUME,
)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup and passed downward to the
    conversation engine, its adapters, and the development backend.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"

    # ------------------------------------------------------------------
    # Streaming chat endpoint
    # ------------------------------------------------------------------

    api_base_url: str = DEFAULT_API_BASE_URL
    connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Capture / playback
    # ------------------------------------------------------------------

    capture_language: str = DEFAULT_CAPTURE_LANGUAGE
    playback_rate: float = DEFAULT_PLAYBACK_RATE
    playback_pitch: float = DEFAULT_PLAYBACK_PITCH
    playback_volume: float = DEFAULT_PLAYBACK_VOLUME

    openai_api_key: str | None = None
    stt_model: str = "whisper-1"
    tts_model: str = "tts-1"
    tts_voice: str = "alloy"

    # ------------------------------------------------------------------
    # Development backend (LLM relay)
    # ------------------------------------------------------------------

    llm_provider: str = "openai"
    llm_model: str = "gpt-4o-mini"
    groq_api_key: str | None = None

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Unset variables fall back to the documented defaults.

        Raises:
            ValueError if a numeric variable cannot be parsed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),

            api_base_url=os.environ.get("API_URL") or DEFAULT_API_BASE_URL,
            connect_timeout_s=float(
                os.environ.get("CONNECT_TIMEOUT_S", DEFAULT_CONNECT_TIMEOUT_S)
            ),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            capture_language=os.environ.get("CAPTURE_LANGUAGE", DEFAULT_CAPTURE_LANGUAGE),
            playback_rate=float(os.environ.get("PLAYBACK_RATE", DEFAULT_PLAYBACK_RATE)),
            playback_pitch=float(os.environ.get("PLAYBACK_PITCH", DEFAULT_PLAYBACK_PITCH)),
            playback_volume=float(os.environ.get("PLAYBACK_VOLUME", DEFAULT_PLAYBACK_VOLUME)),

            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            stt_model=os.environ.get("STT_MODEL", "whisper-1"),
            tts_model=os.environ.get("TTS_MODEL", "tts-1"),
            tts_voice=os.environ.get("TTS_VOICE", "alloy"),

            llm_provider=os.environ.get("LLM_PROVIDER", "openai"),
            llm_model=os.environ.get("LLM_MODEL", "gpt-4o-mini"),
            groq_api_key=os.environ.get("GROQ_API_KEY"),
        )
