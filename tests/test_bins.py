import math

import numpy as np
import pytest

from bandsweep.dsp.bins import (
    BinRange,
    FrequencyBand,
    SamplingParameters,
    average_magnitude,
    band_average,
    hz_per_bin,
    to_bin_range,
)
from bandsweep.errors import DivisionByZero, IndexOutOfRange, InvalidParameters

CD_PARAMS = SamplingParameters(sample_rate=44100.0, buffer_length=1024)


def _make_ramp(length: int = 1024) -> np.ndarray:
    return (np.arange(length) % 256).astype(np.uint8)


def test_hz_per_bin_divides_sample_rate_by_bin_count() -> None:
    assert hz_per_bin(CD_PARAMS) == pytest.approx(43.066, abs=1e-3)
    assert CD_PARAMS.hz_per_bin == hz_per_bin(CD_PARAMS)


@pytest.mark.parametrize(
    "params",
    [
        SamplingParameters(sample_rate=44100.0, buffer_length=0),
        SamplingParameters(sample_rate=44100.0, buffer_length=-8),
        SamplingParameters(sample_rate=0.0, buffer_length=1024),
        SamplingParameters(sample_rate=-48000.0, buffer_length=1024),
        SamplingParameters(sample_rate=math.nan, buffer_length=1024),
    ],
)
def test_hz_per_bin_rejects_non_positive_parameters(params: SamplingParameters) -> None:
    with pytest.raises(InvalidParameters):
        hz_per_bin(params)


def test_band_rejects_high_below_low() -> None:
    with pytest.raises(InvalidParameters):
        FrequencyBand(2000.0, 1000.0)


def test_to_bin_range_maps_one_to_two_khz() -> None:
    bins = to_bin_range(FrequencyBand(1000.0, 2000.0), CD_PARAMS)
    assert bins == BinRange(start_index=23, end_index=46)
    assert bins.count == 24


def test_average_of_flat_region_is_exact() -> None:
    buffer = np.zeros(1024, dtype=np.uint8)
    buffer[23:47] = 100
    assert band_average(FrequencyBand(1000.0, 2000.0), CD_PARAMS, buffer) == 100.0


def test_zero_band_reads_first_bin() -> None:
    buffer = _make_ramp()
    buffer[0] = 77
    bins = to_bin_range(FrequencyBand(0.0, 0.0), CD_PARAMS)
    assert bins == BinRange(0, 0)
    assert average_magnitude(bins, buffer) == 77.0


def test_low_never_exceeds_high_after_mapping() -> None:
    rng = np.random.default_rng(7)
    for _ in range(200):
        params = SamplingParameters(float(rng.uniform(8000, 192000)), int(rng.integers(16, 16384)))
        low = float(rng.uniform(0, 20000))
        high = low + float(rng.uniform(0, 5000))
        bins = to_bin_range(FrequencyBand(low, high), params)
        assert bins.start_index <= bins.end_index


@pytest.mark.parametrize("level", [0, 1, 128, 255])
def test_uniform_buffer_averages_to_its_level(level: int) -> None:
    buffer = np.full(1024, level, dtype=np.uint8)
    for band in (FrequencyBand(0, 0), FrequencyBand(100, 5000), FrequencyBand(20000, 22000)):
        assert band_average(band, CD_PARAMS, buffer) == float(level)


def test_average_is_permutation_invariant_inside_range() -> None:
    buffer = _make_ramp()
    shuffled = buffer.copy()
    rng = np.random.default_rng(3)
    shuffled[23:47] = rng.permutation(shuffled[23:47])
    bins = BinRange(23, 46)
    assert average_magnitude(bins, buffer) == average_magnitude(bins, shuffled)


def test_shifting_band_by_one_bin_changes_average() -> None:
    buffer = _make_ramp()
    width = hz_per_bin(CD_PARAMS)
    base = band_average(FrequencyBand(1000.0, 2000.0), CD_PARAMS, buffer)
    shifted = band_average(FrequencyBand(1000.0 + width, 2000.0 + width), CD_PARAMS, buffer)
    assert shifted == pytest.approx(base + 1.0)


def test_result_is_not_rounded() -> None:
    buffer = np.zeros(8, dtype=np.uint8)
    buffer[:2] = [1, 2]
    assert average_magnitude(BinRange(0, 1), buffer) == 1.5


def test_wide_accumulator_does_not_overflow() -> None:
    buffer = np.full(32768, 65535, dtype=np.uint16)
    assert average_magnitude(BinRange(0, 32767), buffer) == 65535.0


def test_band_above_nyquist_is_out_of_range() -> None:
    bins = to_bin_range(FrequencyBand(1000.0, 50000.0), CD_PARAMS)
    assert bins.end_index == 1160
    with pytest.raises(IndexOutOfRange):
        average_magnitude(bins, np.zeros(1024, dtype=np.uint8))


def test_negative_low_edge_is_out_of_range() -> None:
    bins = to_bin_range(FrequencyBand(-100.0, 500.0), CD_PARAMS)
    assert bins.start_index < 0
    with pytest.raises(IndexOutOfRange):
        average_magnitude(bins, np.zeros(1024, dtype=np.uint8))


def test_hand_built_empty_range_raises_division_by_zero() -> None:
    with pytest.raises(DivisionByZero):
        average_magnitude(BinRange(10, 9), np.zeros(1024, dtype=np.uint8))
    with pytest.raises(ZeroDivisionError):
        average_magnitude(BinRange(10, 5), np.zeros(1024, dtype=np.uint8))


def test_bin_range_is_recomputed_when_parameters_change() -> None:
    band = FrequencyBand(1000.0, 2000.0)
    narrow = to_bin_range(band, SamplingParameters(44100.0, 1024))
    wide = to_bin_range(band, SamplingParameters(44100.0, 2048))
    assert wide.start_index == 2 * narrow.start_index or wide.start_index == 2 * narrow.start_index + 1
    assert wide != narrow
