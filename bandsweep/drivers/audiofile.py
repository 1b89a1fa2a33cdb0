"""Audio sources backed by libsndfile (python-soundfile) or in-memory arrays."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
import soundfile as sf

from bandsweep.errors import MediaUnavailable


@dataclass(frozen=True)
class AudioInfo:
    sample_rate: float
    frames: int
    channels: int

    @property
    def duration_s(self) -> float:
        return self.frames / self.sample_rate if self.sample_rate > 0 else 0.0


def _to_mono(data: np.ndarray) -> np.ndarray:
    data = np.asarray(data, dtype=np.float32)
    if data.ndim == 1:
        return data
    return data.mean(axis=1, dtype=np.float32)


class AudioFileSource:
    """Decode a whole audio file into a mono float32 array."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self.device = f"file:{self.path.name}"
        self._info: Optional[AudioInfo] = None

    def probe(self) -> AudioInfo:
        try:
            info = sf.info(str(self.path))
        except (RuntimeError, OSError) as exc:
            raise MediaUnavailable(f"cannot read metadata of {self.path}: {exc}") from exc
        self._info = AudioInfo(sample_rate=float(info.samplerate), frames=int(info.frames), channels=int(info.channels))
        return self._info

    def read(self) -> np.ndarray:
        try:
            data, _ = sf.read(str(self.path), dtype="float32", always_2d=True)
        except (RuntimeError, OSError) as exc:
            raise MediaUnavailable(f"cannot decode {self.path}: {exc}") from exc
        return _to_mono(data)

    def close(self) -> None:
        self._info = None


class ArraySource:
    """Serve pre-decoded samples through the same interface as AudioFileSource."""

    def __init__(self, samples: np.ndarray, sample_rate: float, name: str = "array"):
        if sample_rate <= 0:
            raise MediaUnavailable(f"sample_rate must be positive (got {sample_rate})")
        self.samples = _to_mono(samples)
        self.sample_rate = float(sample_rate)
        self.device = f"memory:{name}"
        self.path = None

    def probe(self) -> AudioInfo:
        return AudioInfo(sample_rate=self.sample_rate, frames=int(self.samples.shape[0]), channels=1)

    def read(self) -> np.ndarray:
        return self.samples

    def close(self) -> None:
        pass
