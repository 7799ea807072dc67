"""
Behavioral constants.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment-specific values (URLs, keys, voices) live in config.py instead.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Streaming chat endpoint
# =============================================================================

DEFAULT_API_BASE_URL: Final[str] = "http://localhost:8000"
CHAT_STREAM_PATH: Final[str] = "/chat/stream"

# Every event line on the wire starts with this marker
EVENT_LINE_PREFIX: Final[str] = "data: "

# Transport-level connect bound; reads are unbounded
DEFAULT_CONNECT_TIMEOUT_S: Final[float] = 10.0

# =============================================================================
# Turn taking
# =============================================================================

# Settling delay between SPEAKING and re-entering capture, so the capture
# does not pick up the tail of the agent's own voice.
RESUME_CAPTURE_DELAY_MS: Final[int] = 500

# Prefix for errors that are spoken (voice) or shown (text)
ERROR_TEXT_PREFIX: Final[str] = "Error: "

# =============================================================================
# Capture (PCM16 mono @ 16kHz, 20ms frames)
# =============================================================================

CAPTURE_SAMPLE_RATE_HZ: Final[int] = 16_000
CAPTURE_CHANNELS: Final[int] = 1
CAPTURE_FRAME_MS: Final[int] = 20
CAPTURE_SAMPLES_PER_FRAME: Final[int] = (CAPTURE_SAMPLE_RATE_HZ * CAPTURE_FRAME_MS) // 1000

DEFAULT_CAPTURE_LANGUAGE: Final[str] = "en-US"

# Energy VAD
VAD_RMS_THRESHOLD: Final[float] = 0.01
VAD_FRAMES_REQUIRED: Final[int] = 3

# End of utterance after this much trailing silence
SILENCE_DETECTION_MS: Final[int] = 500

# Engine-internal limits of one single-shot capture
CAPTURE_NO_SPEECH_TIMEOUT_S: Final[float] = 8.0
CAPTURE_MAX_UTTERANCE_S: Final[float] = 30.0

# =============================================================================
# Playback
# =============================================================================

PLAYBACK_SAMPLE_RATE_HZ: Final[int] = 24_000  # OpenAI "pcm" response format
DEFAULT_PLAYBACK_RATE: Final[float] = 1.0
DEFAULT_PLAYBACK_PITCH: Final[float] = 1.0
DEFAULT_PLAYBACK_VOLUME: Final[float] = 1.0

# =============================================================================
# Development backend context policy
# =============================================================================

MAX_CONTEXT_TURNS: Final[int] = 8
MAX_CONTEXT_CHARS: Final[int] = 6_000
MAX_SESSIONS: Final[int] = 256
