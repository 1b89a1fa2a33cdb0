"""High-level runner that loads one source and sweeps each requested band."""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from bandsweep.drivers.audiofile import AudioFileSource
from bandsweep.dsp.bins import FrequencyBand, to_bin_range
from bandsweep.media.visualizer import AudioVisualizer
from bandsweep.sweep.sampler import CancellationToken, SweepProgress
from bandsweep.util.duration import parse_duration_to_seconds
from bandsweep.util.logging import get_logger, sweep_context
from bandsweep.util.sweep_logger import SweepLogger

_log = get_logger(__name__)


@dataclass
class BandResult:
    band: str
    low_hz: float
    high_hz: float
    start_bin: int
    end_bin: int
    average: float
    steps: int

    def to_json(self) -> Dict[str, Any]:
        return asdict(self)


class SweepRunner:
    """Bind CLI args to the audio source, visualizer, and sweep logger."""

    def __init__(self, args, source=None):
        self.args = args
        self.source = source if source is not None else AudioFileSource(args.src)
        self.sweep_logger = SweepLogger.from_source_path(
            getattr(self.source, "path", None) and str(self.source.path),
            extra_targets=self._extra_targets(),
        )
        self.cancel_token = CancellationToken()
        self.visualizer = AudioVisualizer(
            fft_size=args.fft,
            smoothing_time_constant=args.smoothing,
            min_decibels=args.min_db,
            max_decibels=args.max_db,
            seek_timeout=parse_duration_to_seconds(args.seek_timeout),
            sweep_logger=self.sweep_logger,
        )
        self.results: List[BandResult] = []

    def _extra_targets(self):
        jsonl_path = getattr(self.args, "jsonl", None)
        return [jsonl_path] if jsonl_path else None

    def _progress_printer(self, band: FrequencyBand):
        if not getattr(self.args, "progress", False):
            return None

        def emit(progress: SweepProgress) -> None:
            print(
                f"[sweep] band={band.label} t={progress.time_s:.0f}s step={progress.step + 1}/{progress.total_steps} "
                f"value={progress.value:.2f} mean={progress.running_mean:.2f}",
                flush=True,
            )

        return emit

    async def _sweep_band(self, band: FrequencyBand) -> BandResult:
        visualizer = self.visualizer
        bins = to_bin_range(band, visualizer.sampling_parameters)
        steps: List[int] = []
        printer = self._progress_printer(band)

        def on_progress(progress: SweepProgress) -> None:
            steps.append(progress.step)
            if printer is not None:
                printer(progress)

        average = await visualizer.get_average_range(
            band.low,
            band.high,
            name=band.name,
            cancel_token=self.cancel_token,
            on_progress=on_progress,
        )
        return BandResult(
            band=band.label,
            low_hz=band.low,
            high_hz=band.high,
            start_bin=bins.start_index,
            end_bin=bins.end_index,
            average=average,
            steps=len(steps),
        )

    async def run_async(self) -> List[BandResult]:
        device = getattr(self.source, "device", None)
        log = sweep_context(_log, src=device)
        await self.visualizer.loading(
            self.source,
            callback_loaded=lambda: log.debug("metadata ready"),
        )
        element = self.visualizer.element
        self.sweep_logger.log(
            "media_loaded",
            src=device,
            duration_s=element.duration,
            sample_rate_hz=element.sample_rate,
            fft=self.visualizer.fft_size,
        )
        print(
            f"[sweep] source={device} duration={element.duration:.3f}s samp_rate={element.sample_rate:.0f} "
            f"fft={self.visualizer.fft_size} bands={len(self.args.bands)}",
            flush=True,
        )
        try:
            for band in self.args.bands:
                result = await self._sweep_band(band)
                self.results.append(result)
                print(json.dumps(result.to_json(), sort_keys=True), flush=True)
        finally:
            self.source.close()
        return self.results

    def run(self) -> List[BandResult]:
        return asyncio.run(self.run_async())


def run_sweeps(args, source: Optional[Any] = None) -> List[BandResult]:
    return SweepRunner(args, source).run()
