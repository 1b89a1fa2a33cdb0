"""Offline media element: playback lifecycle, events, and seeking.

The element owns the decoded samples of one source and the playback clock.
Lifecycle is an explicit state machine; listeners subscribe to named events
the same way a browser media element exposes them.
"""

from __future__ import annotations

import asyncio
import enum
from typing import Callable, Dict, FrozenSet, List, Optional

import numpy as np

from bandsweep.errors import InvalidStateTransition, PipelineNotReady
from bandsweep.util.logging import get_logger

_log = get_logger(__name__)

Listener = Callable[["MediaElement"], None]

EVENTS: FrozenSet[str] = frozenset(
    {
        "loadedmetadata",
        "canplaythrough",
        "progress",
        "timeupdate",
        "seeking",
        "seeked",
        "play",
        "pause",
        "ended",
    }
)


class MediaState(enum.Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    ENDED = "ended"


_TRANSITIONS: Dict[MediaState, FrozenSet[MediaState]] = {
    MediaState.UNLOADED: frozenset({MediaState.LOADING}),
    MediaState.LOADING: frozenset({MediaState.LOADING, MediaState.READY, MediaState.UNLOADED}),
    MediaState.READY: frozenset({MediaState.LOADING, MediaState.PLAYING}),
    MediaState.PLAYING: frozenset({MediaState.LOADING, MediaState.READY, MediaState.ENDED}),
    MediaState.ENDED: frozenset({MediaState.LOADING, MediaState.READY, MediaState.PLAYING}),
}

_SEEKABLE = frozenset({MediaState.READY, MediaState.PLAYING, MediaState.ENDED})


class MediaElement:
    """Playback state for one decoded audio source."""

    def __init__(self) -> None:
        self.state = MediaState.UNLOADED
        self.source = None
        self.duration: float = float("nan")
        self.sample_rate: float = 0.0
        self.current_time: float = 0.0
        self._samples: Optional[np.ndarray] = None
        self._listeners: Dict[str, List[Listener]] = {name: [] for name in EVENTS}
        self.sweep_lock = asyncio.Lock()

    # -- events --------------------------------------------------------------

    def add_event_listener(self, event: str, listener: Listener) -> None:
        if event not in EVENTS:
            raise ValueError(f"unknown media event '{event}'")
        self._listeners[event].append(listener)

    def remove_event_listener(self, event: str, listener: Listener) -> None:
        if event not in EVENTS:
            raise ValueError(f"unknown media event '{event}'")
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            pass

    def dispatch(self, event: str) -> None:
        for listener in list(self._listeners[event]):
            listener(self)

    # -- state machine -------------------------------------------------------

    def _transition(self, target: MediaState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidStateTransition(self.state, target)
        _log.debug("media state %s -> %s", self.state.value, target.value)
        self.state = target

    # -- loading -------------------------------------------------------------

    async def load(self, source) -> None:
        """Probe and decode ``source``, firing loadedmetadata, progress, canplaythrough."""

        self._transition(MediaState.LOADING)
        self.source = source
        self._samples = None
        self.current_time = 0.0
        try:
            info = source.probe()
            self.duration = info.duration_s
            self.sample_rate = info.sample_rate
            self.dispatch("loadedmetadata")
            samples = await asyncio.to_thread(source.read)
        except Exception:
            self.state = MediaState.UNLOADED
            self.duration = float("nan")
            raise
        self._samples = np.asarray(samples, dtype=np.float32)
        _log.info(
            "loaded %s: %.3fs @ %.0f Hz",
            getattr(source, "device", source),
            self.duration,
            self.sample_rate,
            extra={"src": getattr(source, "device", None)},
        )
        self.dispatch("progress")
        self._transition(MediaState.READY)
        self.dispatch("canplaythrough")

    @property
    def samples(self) -> np.ndarray:
        if self._samples is None:
            raise PipelineNotReady("no media loaded")
        return self._samples

    @property
    def position_frame(self) -> int:
        return int(round(self.current_time * self.sample_rate))

    # -- playback ------------------------------------------------------------

    async def seek_to(self, t: float) -> None:
        """Move playback to ``t`` seconds (clamped to the track) and wait for it to settle."""

        if self.state not in _SEEKABLE:
            raise PipelineNotReady(f"cannot seek while {self.state.value}")
        target = min(max(float(t), 0.0), self.duration)
        self.dispatch("seeking")
        await asyncio.sleep(0)
        self.current_time = target
        if self.state is MediaState.ENDED and target < self.duration:
            self._transition(MediaState.READY)
        self.dispatch("seeked")
        self.dispatch("timeupdate")

    def play(self) -> None:
        if self.state is MediaState.ENDED:
            self.current_time = 0.0
        self._transition(MediaState.PLAYING)
        self.dispatch("play")

    def pause(self) -> None:
        if self.state is not MediaState.PLAYING:
            return
        self._transition(MediaState.READY)
        self.dispatch("pause")

    def advance(self, seconds: float) -> None:
        """Move the playback clock forward while playing; fires ended at the end of the track."""

        if self.state is not MediaState.PLAYING:
            return
        self.current_time = min(self.current_time + max(float(seconds), 0.0), self.duration)
        self.dispatch("timeupdate")
        if self.current_time >= self.duration:
            self._transition(MediaState.ENDED)
            self.dispatch("ended")
