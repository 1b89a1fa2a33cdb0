"""Time step scheduling helpers for sweep orchestrations."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator

from bandsweep.errors import InvalidParameters


@dataclass(frozen=True)
class TimeStep:
    """Single playback position emitted by the scheduler."""

    index: int
    time_s: float


class TimeStepScheduler:
    """Generate one step per whole second contained in a track.

    Step ``t`` is emitted when ``[t, t + 1)`` lies inside the duration, so a
    3.5 s track yields 0, 1, 2 and anything shorter than a second yields
    nothing.
    """

    def __init__(self, duration_s: float, step_s: float = 1.0) -> None:
        if duration_s is None or not math.isfinite(duration_s) or duration_s < 0:
            raise InvalidParameters(f"duration must be a finite, non-negative number (got {duration_s})")
        if step_s <= 0:
            raise InvalidParameters("step_s must be positive")
        self._duration_s = float(duration_s)
        self._step_s = float(step_s)

    def __iter__(self) -> Iterator[TimeStep]:
        idx = 0
        t = 0.0
        while t + self._step_s <= self._duration_s:
            yield TimeStep(index=idx, time_s=t)
            idx += 1
            t = idx * self._step_s

    @property
    def count(self) -> int:
        """Return the number of steps implied by the schedule."""

        return int(math.floor(self._duration_s / self._step_s))
