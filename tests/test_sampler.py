import asyncio
import json
import math
from typing import List, Optional

import numpy as np
import pytest

from bandsweep.dsp.bins import FrequencyBand, SamplingParameters
from bandsweep.errors import (
    EmptySweep,
    ExternalCapabilityFailure,
    IndexOutOfRange,
    InvalidParameters,
    SweepCancelled,
)
from bandsweep.sweep.sampler import (
    CancellationToken,
    RunningAverage,
    SweepProgress,
    TemporalSpectrumSampler,
    sweep_average,
)
from bandsweep.sweep.scheduler import TimeStepScheduler
from bandsweep.util.sweep_logger import SweepLogger

PARAMS = SamplingParameters(sample_rate=44100.0, buffer_length=1024)
BAND = FrequencyBand(1000.0, 2000.0)


class FakePlayback:
    """Positioner + snapshot source whose band level equals 10 * position."""

    def __init__(self, length: int = 1024, fail_seek_at: Optional[float] = None, hang_at: Optional[float] = None):
        self.length = length
        self.fail_seek_at = fail_seek_at
        self.hang_at = hang_at
        self.position: Optional[float] = None
        self.calls: List[str] = []
        self.buffer = np.zeros(length, dtype=np.uint8)

    async def seek_to(self, t: float) -> None:
        self.calls.append(f"seek:{t:g}")
        if self.fail_seek_at is not None and t == self.fail_seek_at:
            raise RuntimeError("decoder error")
        if self.hang_at is not None and t == self.hang_at:
            await asyncio.sleep(10)
        await asyncio.sleep(0)
        self.position = t

    def current_snapshot(self) -> np.ndarray:
        self.calls.append(f"snap:{self.position:g}")
        self.buffer[:] = int(10 * self.position)
        return self.buffer


def _sweep(playback: FakePlayback, duration: float, **kwargs) -> float:
    return asyncio.run(sweep_average(BAND, duration, playback, playback, PARAMS, **kwargs))


def test_running_average_mean() -> None:
    acc = RunningAverage()
    for value in (1.0, 2.0, 6.0):
        acc.add(value)
    assert acc.count == 3
    assert acc.mean() == 3.0


def test_running_average_without_samples_is_empty_sweep() -> None:
    with pytest.raises(EmptySweep):
        RunningAverage().mean()


@pytest.mark.parametrize(
    "duration, expected",
    [(0.0, []), (0.99, []), (1.0, [0.0]), (3.0, [0.0, 1.0, 2.0]), (3.5, [0.0, 1.0, 2.0])],
)
def test_scheduler_emits_whole_seconds(duration: float, expected: List[float]) -> None:
    scheduler = TimeStepScheduler(duration)
    assert [step.time_s for step in scheduler] == expected
    assert scheduler.count == len(expected)


@pytest.mark.parametrize("duration", [-1.0, math.nan, math.inf])
def test_scheduler_rejects_bad_durations(duration: float) -> None:
    with pytest.raises(InvalidParameters):
        TimeStepScheduler(duration)


def test_sweep_visits_steps_in_order_and_seeks_before_each_snapshot() -> None:
    playback = FakePlayback()
    result = _sweep(playback, 3.5)
    assert playback.calls == ["seek:0", "snap:0", "seek:1", "snap:1", "seek:2", "snap:2"]
    assert result == pytest.approx((0.0 + 10.0 + 20.0) / 3)


def test_zero_duration_sweep_is_empty() -> None:
    playback = FakePlayback()
    with pytest.raises(EmptySweep):
        _sweep(playback, 0.0)
    assert playback.calls == []


def test_sub_second_sweep_is_empty() -> None:
    with pytest.raises(EmptySweep):
        _sweep(FakePlayback(), 0.5)


def test_negative_duration_is_rejected() -> None:
    with pytest.raises(InvalidParameters):
        _sweep(FakePlayback(), -2.0)


def test_seek_failure_aborts_sweep_as_capability_failure() -> None:
    playback = FakePlayback(fail_seek_at=1.0)
    with pytest.raises(ExternalCapabilityFailure) as excinfo:
        _sweep(playback, 5.0)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert playback.calls == ["seek:0", "snap:0", "seek:1"]


def test_seek_that_never_settles_times_out() -> None:
    playback = FakePlayback(hang_at=2.0)
    with pytest.raises(ExternalCapabilityFailure, match="did not settle"):
        _sweep(playback, 4.0, seek_timeout=0.05)
    assert playback.calls[-1] == "seek:2"


def test_snapshot_failure_is_wrapped() -> None:
    class BrokenSnapshots:
        def current_snapshot(self) -> np.ndarray:
            raise OSError("analyser gone")

    playback = FakePlayback()
    with pytest.raises(ExternalCapabilityFailure, match="analyser gone"):
        asyncio.run(sweep_average(BAND, 2.0, playback, BrokenSnapshots(), PARAMS))


def test_snapshot_length_must_match_bin_count() -> None:
    playback = FakePlayback(length=512)
    with pytest.raises(ExternalCapabilityFailure, match="512"):
        _sweep(playback, 2.0)


def test_band_outside_buffer_propagates_unchanged() -> None:
    playback = FakePlayback()
    with pytest.raises(IndexOutOfRange):
        asyncio.run(sweep_average(FrequencyBand(1000.0, 50000.0), 2.0, playback, playback, PARAMS))


def test_cancellation_stops_before_next_seek() -> None:
    playback = FakePlayback()
    token = CancellationToken()

    def on_progress(progress: SweepProgress) -> None:
        if progress.step == 1:
            token.cancel()

    with pytest.raises(SweepCancelled):
        _sweep(playback, 10.0, cancel_token=token, on_progress=on_progress)
    assert token.cancelled
    assert playback.calls == ["seek:0", "snap:0", "seek:1", "snap:1"]


def test_progress_reports_running_mean() -> None:
    seen: List[SweepProgress] = []
    _sweep(FakePlayback(), 3.0, on_progress=seen.append)
    assert [p.step for p in seen] == [0, 1, 2]
    assert [p.running_mean for p in seen] == pytest.approx([0.0, 5.0, 10.0])
    assert all(p.total_steps == 3 for p in seen)


def test_parameters_are_reread_every_step() -> None:
    playback = FakePlayback()
    reads: List[int] = []

    def params() -> SamplingParameters:
        reads.append(1)
        return PARAMS

    sampler = TemporalSpectrumSampler(playback, playback, params)
    asyncio.run(sampler.sweep_average(BAND, 4.0))
    assert len(reads) == 4


def test_sweep_events_are_logged(tmp_path) -> None:
    logger = SweepLogger(tmp_path / "sweep.log")
    playback = FakePlayback()
    sampler = TemporalSpectrumSampler(playback, playback, PARAMS, sweep_logger=logger)
    asyncio.run(sampler.sweep_average(BAND, 2.0))
    lines = (tmp_path / "sweep.log").read_text(encoding="utf-8").splitlines()
    events = [json.loads(line)["event"] for line in lines]
    assert events == ["sweep_start", "sweep_step", "sweep_step", "sweep_end"]
