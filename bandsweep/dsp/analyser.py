"""Byte frequency snapshots computed from decoded audio frames.

Mirrors the behaviour of a Web Audio ``AnalyserNode``: a periodic Blackman
window over the most recent ``fft_size`` frames, magnitude normalised by the
FFT length, exponential smoothing against the previous frame, conversion to
dB, and linear scaling of ``[min_decibels, max_decibels]`` onto ``0..255``.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from scipy.signal import get_window

from bandsweep import config
from bandsweep.errors import InvalidParameters
from bandsweep.util.math import db20


def _check_fft_size(fft_size: int) -> int:
    fft_size = int(fft_size)
    if fft_size < config.MIN_FFT_SIZE or fft_size > config.MAX_FFT_SIZE:
        raise InvalidParameters(
            f"fft_size must be within {config.MIN_FFT_SIZE}..{config.MAX_FFT_SIZE} (got {fft_size})"
        )
    if fft_size & (fft_size - 1):
        raise InvalidParameters(f"fft_size must be a power of two (got {fft_size})")
    return fft_size


class Analyser:
    """Frequency analyser bound to one sample rate."""

    def __init__(
        self,
        sample_rate: float,
        fft_size: int = config.FFT_SIZE,
        smoothing_time_constant: float = config.SMOOTHING_TIME_CONSTANT,
        min_decibels: float = config.MIN_DECIBELS,
        max_decibels: float = config.MAX_DECIBELS,
    ) -> None:
        if sample_rate <= 0:
            raise InvalidParameters(f"sample_rate must be positive (got {sample_rate})")
        if not 0.0 <= smoothing_time_constant <= 1.0:
            raise InvalidParameters("smoothing_time_constant must be within 0..1")
        if min_decibels >= max_decibels:
            raise InvalidParameters("min_decibels must be below max_decibels")
        self.sample_rate = float(sample_rate)
        self.fft_size = _check_fft_size(fft_size)
        self.smoothing_time_constant = float(smoothing_time_constant)
        self.min_decibels = float(min_decibels)
        self.max_decibels = float(max_decibels)
        self._window = get_window("blackman", self.fft_size, fftbins=True)
        self._previous: Optional[np.ndarray] = None

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def reset(self) -> None:
        """Forget the smoothing history."""
        self._previous = None

    def _frames_ending_at(self, samples: np.ndarray, position_frame: int) -> np.ndarray:
        end = int(np.clip(position_frame, 0, samples.size))
        start = end - self.fft_size
        if start >= 0:
            return samples[start:end]
        chunk = np.zeros(self.fft_size, dtype=np.float64)
        if end > 0:
            chunk[-end:] = samples[:end]
        return chunk

    def get_float_frequency_data(self, samples: np.ndarray, position_frame: int) -> np.ndarray:
        """Smoothed per-bin magnitude in dB for the frames ending at ``position_frame``."""
        chunk = self._frames_ending_at(np.asarray(samples), position_frame)
        spectrum = np.fft.rfft(chunk * self._window, n=self.fft_size)
        magnitude = np.abs(spectrum[: self.frequency_bin_count]) / float(self.fft_size)
        if self._previous is not None and self.smoothing_time_constant > 0.0:
            tau = self.smoothing_time_constant
            magnitude = tau * self._previous + (1.0 - tau) * magnitude
        self._previous = magnitude
        return db20(magnitude)

    def get_byte_frequency_data(
        self,
        samples: np.ndarray,
        position_frame: int,
        out: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Fill ``out`` (allocated if missing) with the 0..255 magnitude snapshot."""
        if out is None:
            out = np.zeros(self.frequency_bin_count, dtype=np.uint8)
        elif out.shape != (self.frequency_bin_count,):
            raise InvalidParameters(
                f"snapshot buffer holds {out.size} bins, analyser produces {self.frequency_bin_count}"
            )
        psd_db = self.get_float_frequency_data(samples, position_frame)
        span = self.max_decibels - self.min_decibels
        scaled = np.floor(config.BYTE_MAX * (psd_db - self.min_decibels) / span)
        out[:] = np.clip(scaled, 0, config.BYTE_MAX).astype(np.uint8)
        return out
