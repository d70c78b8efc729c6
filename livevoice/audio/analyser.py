"""Spectrum analyser for the output audio path."""

import logging
import threading

import numpy as np

logger = logging.getLogger(__name__)


class SpectrumAnalyser:
    """Frequency analyser fed with every block the output graph renders.

    Mirrors the browser AnalyserNode: Blackman window, magnitude smoothed
    over time, converted to decibels and mapped onto 0..255 between
    ``min_decibels`` and ``max_decibels``.
    """

    def __init__(self,
                 fft_size: int = 256,
                 smoothing_time_constant: float = 0.8,
                 min_decibels: float = -100.0,
                 max_decibels: float = -30.0):
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        self.fft_size = fft_size
        self.smoothing_time_constant = smoothing_time_constant
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels

        self._window = np.blackman(fft_size).astype(np.float32)
        self._time_data = np.zeros(fft_size, dtype=np.float32)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float32)
        self.lock = threading.Lock()

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def write(self, block: np.ndarray) -> None:
        """Append rendered samples, keeping the most recent ``fft_size``."""
        if len(block) == 0:
            return
        with self.lock:
            if len(block) >= self.fft_size:
                self._time_data[:] = block[-self.fft_size:]
            else:
                self._time_data = np.roll(self._time_data, -len(block))
                self._time_data[-len(block):] = block

    def get_byte_frequency_data(self) -> np.ndarray:
        """Current spectrum as uint8 magnitudes, one per frequency bin."""
        with self.lock:
            windowed = self._time_data * self._window
        magnitudes = np.abs(np.fft.rfft(windowed))[:self.frequency_bin_count] / self.fft_size
        tau = self.smoothing_time_constant
        self._smoothed = tau * self._smoothed + (1.0 - tau) * magnitudes

        with np.errstate(divide='ignore'):
            decibels = 20.0 * np.log10(self._smoothed)
        scaled = 255.0 * (decibels - self.min_decibels) / (self.max_decibels - self.min_decibels)
        return np.clip(np.nan_to_num(scaled, neginf=0.0), 0, 255).astype(np.uint8)

    def reset(self) -> None:
        with self.lock:
            self._time_data[:] = 0.0
        self._smoothed[:] = 0.0
