"""Frequency band to FFT bin mapping and band-average reduction.

The Hz-per-bin resolution is recomputed on every call. Sampling parameters
can change whenever the analysis pipeline is rebuilt, so nothing here caches
a divisor between calls.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from bandsweep.errors import DivisionByZero, IndexOutOfRange, InvalidParameters


@dataclass(frozen=True)
class SamplingParameters:
    """Sample rate and bin count of one analysis pipeline."""

    sample_rate: float
    buffer_length: int

    @property
    def hz_per_bin(self) -> float:
        return hz_per_bin(self)


@dataclass(frozen=True)
class FrequencyBand:
    """Closed frequency interval in Hz."""

    low: float
    high: float
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.high < self.low:
            raise InvalidParameters(f"band high {self.high} Hz is below low {self.low} Hz")

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        return f"{self.low:g}-{self.high:g}Hz"


@dataclass(frozen=True)
class BinRange:
    """Inclusive bin index range. Built unvalidated; checked at reduction."""

    start_index: int
    end_index: int

    @property
    def count(self) -> int:
        return self.end_index - self.start_index + 1


def hz_per_bin(params: SamplingParameters) -> float:
    """Return the frequency width of one bin."""
    if params.buffer_length <= 0:
        raise InvalidParameters(f"buffer_length must be positive (got {params.buffer_length})")
    if not math.isfinite(params.sample_rate) or params.sample_rate <= 0:
        raise InvalidParameters(f"sample_rate must be positive (got {params.sample_rate})")
    return float(params.sample_rate) / float(params.buffer_length)


def to_bin_range(band: FrequencyBand, params: SamplingParameters) -> BinRange:
    """Map a band to the bins containing its edges. No clamping is applied."""
    start_index = math.floor(band.low / hz_per_bin(params))
    end_index = math.floor(band.high / hz_per_bin(params))
    return BinRange(start_index=int(start_index), end_index=int(end_index))


def average_magnitude(bin_range: BinRange, buffer: np.ndarray) -> float:
    """Mean of ``buffer[start..end]`` inclusive, accumulated in float64."""
    length = len(buffer)
    if bin_range.start_index < 0 or bin_range.end_index >= length:
        raise IndexOutOfRange(
            f"bins {bin_range.start_index}..{bin_range.end_index} outside buffer of length {length}"
        )
    count = bin_range.count
    if count <= 0:
        raise DivisionByZero(f"bin range {bin_range.start_index}..{bin_range.end_index} is empty")
    window = np.asarray(buffer)[bin_range.start_index : bin_range.end_index + 1]
    total = float(np.sum(window, dtype=np.float64))
    return total / float(count)


def band_average(band: FrequencyBand, params: SamplingParameters, buffer: np.ndarray) -> float:
    """Average magnitude of ``buffer`` inside ``band``."""
    return average_magnitude(to_bin_range(band, params), buffer)
