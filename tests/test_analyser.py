import numpy as np
import pytest

from bandsweep.dsp.analyser import Analyser
from bandsweep.errors import InvalidParameters

SAMPLE_RATE = 8192.0


def _make_tone(freq_hz: float, seconds: float = 1.0, amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(int(SAMPLE_RATE * seconds)) / SAMPLE_RATE
    return (amplitude * np.sin(2 * np.pi * freq_hz * t)).astype(np.float32)


def test_bin_count_is_half_the_fft_size() -> None:
    analyser = Analyser(SAMPLE_RATE, fft_size=1024)
    assert analyser.frequency_bin_count == 512
    assert analyser.get_byte_frequency_data(np.zeros(4096), 2048).shape == (512,)


@pytest.mark.parametrize("fft_size", [16, 1000, 65536])
def test_fft_size_must_be_supported_power_of_two(fft_size: int) -> None:
    with pytest.raises(InvalidParameters):
        Analyser(SAMPLE_RATE, fft_size=fft_size)


def test_rejects_inverted_decibel_range() -> None:
    with pytest.raises(InvalidParameters):
        Analyser(SAMPLE_RATE, min_decibels=-30.0, max_decibels=-100.0)


def test_rejects_smoothing_outside_unit_interval() -> None:
    with pytest.raises(InvalidParameters):
        Analyser(SAMPLE_RATE, smoothing_time_constant=1.5)


def test_silence_maps_to_zero() -> None:
    analyser = Analyser(SAMPLE_RATE, fft_size=256)
    out = analyser.get_byte_frequency_data(np.zeros(2048, dtype=np.float32), 1024)
    assert out.dtype == np.uint8
    assert not out.any()


def test_tone_peaks_at_its_bin() -> None:
    analyser = Analyser(SAMPLE_RATE, fft_size=1024, smoothing_time_constant=0.0, max_decibels=0.0)
    tone_bin = 100
    freq = tone_bin * SAMPLE_RATE / 1024
    out = analyser.get_byte_frequency_data(_make_tone(freq), 4096)
    assert int(np.argmax(out)) == tone_bin
    assert out[tone_bin - 1] < out[tone_bin] > out[tone_bin + 1]
    assert out[400] < out[tone_bin + 2]


def test_snapshot_reuses_caller_buffer() -> None:
    analyser = Analyser(SAMPLE_RATE, fft_size=256)
    buffer = np.zeros(128, dtype=np.uint8)
    result = analyser.get_byte_frequency_data(_make_tone(440.0), 2048, out=buffer)
    assert result is buffer
    assert buffer.any()


def test_snapshot_buffer_size_must_match() -> None:
    analyser = Analyser(SAMPLE_RATE, fft_size=256)
    with pytest.raises(InvalidParameters):
        analyser.get_byte_frequency_data(_make_tone(440.0), 2048, out=np.zeros(64, dtype=np.uint8))


def test_position_before_first_window_is_zero_padded() -> None:
    analyser = Analyser(SAMPLE_RATE, fft_size=1024, smoothing_time_constant=0.0)
    at_start = analyser.get_byte_frequency_data(_make_tone(1000.0), 0)
    assert not at_start.any()
    partial = analyser.get_byte_frequency_data(_make_tone(1000.0), 512)
    assert partial.any()


def test_smoothing_blends_with_previous_frame_until_reset() -> None:
    tone = np.concatenate([_make_tone(1000.0), np.zeros(int(SAMPLE_RATE), dtype=np.float32)])
    analyser = Analyser(SAMPLE_RATE, fft_size=512, smoothing_time_constant=0.8, max_decibels=0.0)
    loud = analyser.get_byte_frequency_data(tone, 4096).copy()
    decayed = analyser.get_byte_frequency_data(tone, tone.size).copy()
    assert decayed.max() > 0
    assert decayed.max() < loud.max()
    analyser.reset()
    assert not analyser.get_byte_frequency_data(tone, tone.size).any()
