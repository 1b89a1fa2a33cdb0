"""Exception hierarchy shared by the mapper, sampler, and media adapter."""

from __future__ import annotations


class BandsweepError(Exception):
    """Base class for every error raised by bandsweep."""


class InvalidParameters(BandsweepError, ValueError):
    """Sample rate, bin count, band edges, or analyser settings are unusable."""


class IndexOutOfRange(BandsweepError, IndexError):
    """A computed bin range falls outside the magnitude buffer."""


class DivisionByZero(BandsweepError, ZeroDivisionError):
    """A bin range selects no bins (end index before start index)."""


class EmptySweep(BandsweepError):
    """A sweep visited no time steps, so no average exists."""


class ExternalCapabilityFailure(BandsweepError):
    """The seek or snapshot collaborator failed or never settled."""


class MediaUnavailable(ExternalCapabilityFailure):
    """The audio source could not be probed or decoded."""


class SweepCancelled(BandsweepError):
    """A sweep was aborted through its cancellation token."""


class SweepInProgress(BandsweepError):
    """Another sweep already owns the media resource."""


class PipelineNotReady(BandsweepError):
    """The analysis pipeline was used before initialize()."""


class InvalidStateTransition(BandsweepError):
    """The media element was asked to move to a state it cannot reach."""

    def __init__(self, current: object, target: object) -> None:
        super().__init__(f"cannot move from {current} to {target}")
        self.current = current
        self.target = target
