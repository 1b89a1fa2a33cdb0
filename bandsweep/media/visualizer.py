"""Audio visualizer pipeline: media element + analyser + band sweeps.

One ``AudioVisualizer`` owns one media element and its analysis pipeline.
Create as many as needed; nothing here is module-level state.
"""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np

from bandsweep import config
from bandsweep.dsp.analyser import Analyser
from bandsweep.dsp.bins import FrequencyBand, SamplingParameters, band_average
from bandsweep.errors import PipelineNotReady, SweepInProgress
from bandsweep.media.element import MediaElement
from bandsweep.sweep.sampler import CancellationToken, SweepProgress, TemporalSpectrumSampler
from bandsweep.util.logging import get_logger
from bandsweep.util.sweep_logger import SweepLogger

_log = get_logger(__name__)

Callback = Callable[[], None]


class AudioVisualizer:
    """Load a source, expose lifecycle callbacks, and measure band energy."""

    def __init__(
        self,
        *,
        fft_size: int = config.FFT_SIZE,
        smoothing_time_constant: float = config.SMOOTHING_TIME_CONSTANT,
        min_decibels: float = config.MIN_DECIBELS,
        max_decibels: float = config.MAX_DECIBELS,
        seek_timeout: Optional[float] = config.SEEK_TIMEOUT_S,
        element: Optional[MediaElement] = None,
        sweep_logger: Optional[SweepLogger] = None,
    ) -> None:
        self.fft_size = fft_size
        self.smoothing_time_constant = smoothing_time_constant
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self.seek_timeout = seek_timeout
        self.element = element or MediaElement()
        self.sweep_logger = sweep_logger
        self.analyser: Optional[Analyser] = None
        self.buffer_length: Optional[int] = None
        self.spectrum: Optional[np.ndarray] = None

    async def loading(
        self,
        source,
        callback_loaded: Optional[Callback] = None,
        callback_update: Optional[Callback] = None,
        callback_ended: Optional[Callback] = None,
    ) -> None:
        """Wire lifecycle callbacks, then load ``source``.

        The pipeline is initialized once, on whichever of loadedmetadata or
        canplaythrough fires first, before ``callback_loaded`` runs.
        """

        element = self.element

        def handle_loaded(_element: MediaElement) -> None:
            element.remove_event_listener("loadedmetadata", handle_loaded)
            element.remove_event_listener("canplaythrough", handle_loaded)
            self.initialize()
            if callback_loaded is not None:
                callback_loaded()

        element.add_event_listener("loadedmetadata", handle_loaded)
        element.add_event_listener("canplaythrough", handle_loaded)
        if callback_update is not None:
            element.add_event_listener("progress", lambda _e: callback_update())
            element.add_event_listener("timeupdate", lambda _e: callback_update())
        if callback_ended is not None:
            element.add_event_listener("ended", lambda _e: callback_ended())
        await element.load(source)

    def initialize(self) -> None:
        """Build the analyser for the loaded source and allocate the snapshot buffer."""

        self.analyser = Analyser(
            self.element.sample_rate,
            fft_size=self.fft_size,
            smoothing_time_constant=self.smoothing_time_constant,
            min_decibels=self.min_decibels,
            max_decibels=self.max_decibels,
        )
        self.buffer_length = self.analyser.frequency_bin_count
        self.spectrum = np.zeros(self.buffer_length, dtype=np.uint8)
        # Smoothing only spans contiguous playback; a seek starts a fresh history.
        self.element.remove_event_listener("seeked", self._on_seeked)
        self.element.add_event_listener("seeked", self._on_seeked)
        _log.debug(
            "analyser ready: fft=%d bins=%d sample_rate=%.0f",
            self.fft_size,
            self.buffer_length,
            self.element.sample_rate,
        )

    def _on_seeked(self, _element: MediaElement) -> None:
        if self.analyser is not None:
            self.analyser.reset()

    def _require_pipeline(self) -> Analyser:
        if self.analyser is None or self.spectrum is None:
            raise PipelineNotReady("initialize() has not run; load a source first")
        return self.analyser

    @property
    def sampling_parameters(self) -> SamplingParameters:
        analyser = self._require_pipeline()
        return SamplingParameters(sample_rate=analyser.sample_rate, buffer_length=analyser.frequency_bin_count)

    def current_snapshot(self) -> np.ndarray:
        """Refresh ``spectrum`` in place at the current playback position."""
        analyser = self._require_pipeline()
        return analyser.get_byte_frequency_data(self.element.samples, self.element.position_frame, out=self.spectrum)

    def get_frequencies(self, low: float, high: float) -> float:
        spectrum = self.current_snapshot()
        return self.calculate_frequency_range(low, high, spectrum)

    def calculate_frequency_range(self, min_hz: float, max_hz: float, spectrum: np.ndarray) -> float:
        return band_average(FrequencyBand(min_hz, max_hz), self.sampling_parameters, spectrum)

    async def get_average_range(
        self,
        low: float,
        high: float,
        *,
        name: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[Callable[[SweepProgress], None]] = None,
    ) -> float:
        """Sweep the whole track and return the band's mean magnitude.

        Playback returns to its prior position afterwards, whether or not the
        sweep completed. A failure to restore is logged and never replaces the
        sweep's own error.
        """

        band = FrequencyBand(low, high, name=name)
        self._require_pipeline()
        element = self.element
        if element.sweep_lock.locked():
            raise SweepInProgress("a sweep is already running on this media element")
        async with element.sweep_lock:
            sampler = TemporalSpectrumSampler(
                element,
                self,
                lambda: self.sampling_parameters,
                seek_timeout=self.seek_timeout,
                sweep_logger=self.sweep_logger,
            )
            resume_at = element.current_time
            try:
                average = await sampler.sweep_average(
                    band,
                    element.duration,
                    cancel_token=cancel_token,
                    on_progress=on_progress,
                )
            except BaseException:
                try:
                    await element.seek_to(resume_at)
                except Exception as exc:
                    _log.warning("could not restore playback to %.3fs after failed sweep: %s", resume_at, exc)
                raise
            await element.seek_to(resume_at)
            return average
