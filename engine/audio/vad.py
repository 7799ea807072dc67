"""
A minimal, energy-based Voice Activity Detection (VAD) module.

Provides a simple RMS-energy threshold VAD for microphone capture. It
operates on short, fixed-size audio frames (float32 samples) and reports
voice activity only after a configurable number of consecutive frames
exceed a given energy threshold.
"""
from __future__ import annotations

import numpy as np


def frame_rms(f32: np.ndarray) -> float:
    """RMS energy of one float32 frame (0.0 for an empty frame)."""
    if f32.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(f32))))


class EnergyVAD:
    """
    Simple energy-based Voice Activity Detector (VAD).

    For each observed frame, the RMS energy is compared against a fixed
    threshold. Voice activity is considered present only after
    `frames_required` *consecutive* frames exceed the threshold, which
    avoids triggering on single-frame noise spikes.
    """
    def __init__(self, threshold: float, frames_required: int):
        self._threshold = threshold
        self._frames_required = frames_required
        self._count = 0
        self._last_rms = 0.0

    @property
    def last_frame_voiced(self) -> bool:
        """True if the most recently observed frame was above threshold."""
        return self._last_rms >= self._threshold

    def observe(self, f32: np.ndarray) -> bool:
        """
        Observe a single audio frame and update VAD state.

        Returns:
            True if at least `frames_required` consecutive frames (including
            this one) have exceeded the energy threshold. False otherwise.
        """
        self._last_rms = frame_rms(f32)
        if self._last_rms >= self._threshold:
            self._count += 1
        else:
            self._count = 0
        return self._count >= self._frames_required

    def reset(self) -> None:
        """
        Reset the internal VAD state.

        Subsequent detection requires a fresh run of `frames_required`
        qualifying frames.
        """
        self._count = 0
        self._last_rms = 0.0
