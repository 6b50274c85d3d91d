"""
Frame assembly for Taptic sound classification
Turns a stream of 16-bit PCM hops into overlapping analysis windows and
computes a perceptual loudness level for each window
"""

import logging
import numpy as np

from ..config import (
    WINDOW_SAMPLES, HOP_SAMPLES, PCM_SCALE,
    LEVEL_FLOOR, LEVEL_CEILING, LEVEL_GAIN, LEVEL_EXPONENT
)

logger = logging.getLogger(__name__)


def pcm16_to_float(samples):
    """
    Convert signed 16-bit PCM (ndarray or little-endian bytes) to float32 in [-1, 1)
    """
    if isinstance(samples, (bytes, bytearray, memoryview)):
        samples = np.frombuffer(samples, dtype="<i2")
    return np.asarray(samples, dtype=np.float32) / PCM_SCALE


def compute_level(window):
    """
    Loudness meter value for one window.

    RMS over the whole window, then boosted with (rms * 16) ** 0.65 and
    clamped to [0.02, 1.0] so a quiet room still registers and loud
    bursts saturate at 1.0.
    """
    window = np.asarray(window, dtype=np.float64)
    if window.size == 0:
        return LEVEL_FLOOR
    rms = np.sqrt(np.sum(window * window) / window.size)
    boosted = (rms * LEVEL_GAIN) ** LEVEL_EXPONENT
    return float(min(LEVEL_CEILING, max(LEVEL_FLOOR, boosted)))


class FrameAssembler:
    """
    Fixed-capacity shift buffer producing overlapping analysis windows
    """

    def __init__(self, window_samples=WINDOW_SAMPLES, hop_samples=HOP_SAMPLES):
        if hop_samples <= 0 or hop_samples >= window_samples:
            raise ValueError(
                f"hop_samples must be in (0, {window_samples}), got {hop_samples}"
            )

        self.window_samples = window_samples
        self.hop_samples = hop_samples

        self._buffer = np.zeros(window_samples, dtype=np.float32)
        self._filled = 0

    @property
    def is_full(self):
        return self._filled >= self.window_samples

    def push(self, hop):
        """
        Add one hop of samples.

        Args:
            hop: exactly hop_samples float samples (already normalized)

        Returns:
            A copy of the current window once the buffer is full, otherwise None
        """
        hop = np.asarray(hop, dtype=np.float32)
        if hop.shape != (self.hop_samples,):
            raise ValueError(
                f"Expected a hop of {self.hop_samples} samples, got shape {hop.shape}"
            )

        if self._filled < self.window_samples:
            count = min(self.hop_samples, self.window_samples - self._filled)
            self._buffer[self._filled:self._filled + count] = hop[:count]
            self._filled += count
            if self._filled < self.window_samples:
                return None
            return self._buffer.copy()

        keep = self.window_samples - self.hop_samples
        self._buffer[:keep] = self._buffer[self.hop_samples:]
        self._buffer[keep:] = hop
        return self._buffer.copy()

    def get_buffer_fill_percentage(self):
        return (self._filled / self.window_samples) * 100

    def reset(self):
        self._buffer.fill(0.0)
        self._filled = 0
