"""Sweep a playback position across a track and average one band's energy.

Each step seeks the shared playback resource, waits for the seek to settle,
takes a fresh magnitude snapshot, and reduces it with the bin mapper. Steps
run strictly in order: a snapshot is only valid right after its own seek.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol, Union

import numpy as np

from bandsweep.dsp.bins import FrequencyBand, SamplingParameters, average_magnitude, to_bin_range
from bandsweep.errors import EmptySweep, ExternalCapabilityFailure, SweepCancelled
from bandsweep.sweep.scheduler import TimeStepScheduler
from bandsweep.util.logging import get_logger, sweep_context
from bandsweep.util.sweep_logger import SweepLogger
from bandsweep.util.time import elapsed_ms

_log = get_logger(__name__)


class TimePositioner(Protocol):
    def seek_to(self, t: float) -> Awaitable[None]:
        """Move playback to ``t`` seconds; resolves once the position has settled."""


class SpectrumSnapshotSource(Protocol):
    def current_snapshot(self) -> np.ndarray:
        """Return the magnitude buffer for the current playback position."""


ParamsProvider = Union[SamplingParameters, Callable[[], SamplingParameters]]


@dataclass
class RunningAverage:
    total: float = 0.0
    count: int = 0

    def add(self, value: float) -> None:
        self.total += float(value)
        self.count += 1

    def mean(self) -> float:
        if self.count == 0:
            raise EmptySweep("sweep visited no time steps")
        return self.total / self.count


@dataclass(frozen=True)
class SweepProgress:
    """Snapshot of sweep state handed to progress callbacks."""

    step: int
    time_s: float
    value: float
    running_mean: float
    total_steps: int


class CancellationToken:
    """Thread-safe flag checked by the sampler before every step."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SweepCancelled("sweep cancelled")


class TemporalSpectrumSampler:
    """Average a band's magnitude over every whole second of a track."""

    def __init__(
        self,
        positioner: TimePositioner,
        snapshots: SpectrumSnapshotSource,
        params: ParamsProvider,
        *,
        seek_timeout: Optional[float] = None,
        sweep_logger: Optional[SweepLogger] = None,
    ) -> None:
        self.positioner = positioner
        self.snapshots = snapshots
        self._params = params
        self.seek_timeout = seek_timeout if seek_timeout and seek_timeout > 0 else None
        self.sweep_logger = sweep_logger

    def current_params(self) -> SamplingParameters:
        if callable(self._params):
            return self._params()
        return self._params

    async def _seek(self, t: float) -> None:
        try:
            if self.seek_timeout is None:
                await self.positioner.seek_to(t)
            else:
                await asyncio.wait_for(self.positioner.seek_to(t), timeout=self.seek_timeout)
        except asyncio.TimeoutError as exc:
            raise ExternalCapabilityFailure(f"seek to {t:g}s did not settle within {self.seek_timeout:g}s") from exc
        except Exception as exc:
            raise ExternalCapabilityFailure(f"seek to {t:g}s failed: {exc}") from exc

    def _snapshot(self, params: SamplingParameters) -> np.ndarray:
        try:
            buffer = self.snapshots.current_snapshot()
        except Exception as exc:
            raise ExternalCapabilityFailure(f"spectrum snapshot failed: {exc}") from exc
        if len(buffer) != params.buffer_length:
            raise ExternalCapabilityFailure(
                f"snapshot holds {len(buffer)} bins, pipeline expects {params.buffer_length}"
            )
        return buffer

    async def sweep_average(
        self,
        band: FrequencyBand,
        duration_seconds: float,
        *,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[Callable[[SweepProgress], None]] = None,
    ) -> float:
        """Return the mean band magnitude across one snapshot per second of playback."""

        scheduler = TimeStepScheduler(duration_seconds)
        total_steps = scheduler.count
        log = sweep_context(_log, band=band.label)
        started = time.perf_counter()
        if self.sweep_logger:
            self.sweep_logger.start_sweep(
                band_hz=[band.low, band.high],
                duration_s=duration_seconds,
                total_steps=total_steps,
            )
        log.debug("sweep start: %d steps over %.3fs", total_steps, duration_seconds)

        running = RunningAverage()
        try:
            for step in scheduler:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                await self._seek(step.time_s)
                params = self.current_params()
                buffer = self._snapshot(params)
                value = average_magnitude(to_bin_range(band, params), buffer)
                running.add(value)
                if self.sweep_logger:
                    self.sweep_logger.log("sweep_step", step=step.index, time_s=step.time_s, value=value)
                if on_progress is not None:
                    on_progress(
                        SweepProgress(
                            step=step.index,
                            time_s=step.time_s,
                            value=value,
                            running_mean=running.mean(),
                            total_steps=total_steps,
                        )
                    )
            result = running.mean()
        except Exception as exc:
            if self.sweep_logger:
                self.sweep_logger.log(
                    "sweep_error",
                    error_type=type(exc).__name__,
                    error=str(exc),
                    completed_steps=running.count,
                )
            log.warning(
                "sweep aborted after %d/%d steps: %s",
                running.count,
                total_steps,
                exc,
                extra={"error_type": type(exc).__name__},
            )
            raise

        duration_ms = elapsed_ms(started)
        if self.sweep_logger:
            self.sweep_logger.log("sweep_end", steps=running.count, average=result, duration_ms=duration_ms)
        log.info("sweep average %.3f over %d steps", result, running.count, extra={"duration_ms": round(duration_ms, 1)})
        return result


async def sweep_average(
    band: FrequencyBand,
    duration_seconds: float,
    seek: TimePositioner,
    snapshot: SpectrumSnapshotSource,
    params: ParamsProvider,
    *,
    seek_timeout: Optional[float] = None,
    cancel_token: Optional[CancellationToken] = None,
    on_progress: Optional[Callable[[SweepProgress], None]] = None,
) -> float:
    """One-off helper that instantiates a TemporalSpectrumSampler and runs it."""

    sampler = TemporalSpectrumSampler(seek, snapshot, params, seek_timeout=seek_timeout)
    return await sampler.sweep_average(
        band,
        duration_seconds,
        cancel_token=cancel_token,
        on_progress=on_progress,
    )
