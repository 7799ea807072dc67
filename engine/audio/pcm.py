"""PCM conversion utilities."""
from __future__ import annotations

import io
import wave

import numpy as np


def pcm16le_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian mono bytes to float32 in [-1.0, 1.0).

    Runtime-safe, adapter-agnostic utility.
    No resampling. No channel mixing.
    """
    if len(pcm_bytes) % 2 != 0:
        # Truncated sample; drop the dangling byte
        pcm_bytes = pcm_bytes[: len(pcm_bytes) - 1]

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2")  # little-endian int16
    audio_f32 = audio_i16.astype(np.float32) / 32768.0
    return audio_f32


def float32_to_pcm16le(audio_f32: np.ndarray) -> bytes:
    """
    Inverse of pcm16le_to_float32.
    Does not contain a np.int16(32768) == -32768 bug.
    """
    audio_f32 = np.clip(audio_f32, -1.0, 1.0)
    audio_i16 = np.round(audio_f32 * 32767.0).astype("<i2")
    return audio_i16.tobytes()


def apply_gain(audio_f32: np.ndarray, gain: float) -> np.ndarray:
    """Scale samples by gain and clip back into [-1.0, 1.0]."""
    return np.clip(audio_f32 * np.float32(gain), -1.0, 1.0)


def wav_bytes_from_float32(audio_f32: np.ndarray, sample_rate_hz: int) -> bytes:
    """Wrap mono float32 samples in an in-memory PCM16 WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate_hz)
        wav.writeframes(float32_to_pcm16le(audio_f32))
    return buf.getvalue()
