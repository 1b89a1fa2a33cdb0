"""Documented exit codes for the bandsweep CLI.

Exit codes follow UNIX conventions:
- 0: Success
- 1: General/unspecified error
- 2: Invalid command-line arguments or usage
- 3-7: Application-specific errors

Usage:
    from bandsweep.util.exit_codes import ExitCode
    sys.exit(ExitCode.MEDIA_UNAVAILABLE)
"""

from __future__ import annotations

from bandsweep.errors import (
    EmptySweep,
    ExternalCapabilityFailure,
    IndexOutOfRange,
    InvalidParameters,
    MediaUnavailable,
    SweepCancelled,
)


class ExitCode:
    """Exit code constants for bandsweep processes.

    Attributes:
        SUCCESS: Every requested band was swept.
        GENERAL_ERROR: Unspecified runtime error.
        INVALID_ARGS: Command-line or analyser parameters rejected.
        MEDIA_UNAVAILABLE: The audio source could not be probed or decoded.
        BAND_OUT_OF_RANGE: A band maps outside the analyser's bins.
        EMPTY_SWEEP: The track is shorter than one sweep step.
        CAPABILITY_FAILURE: A seek or snapshot failed or timed out.
        CANCELLED: The sweep was interrupted.
    """

    SUCCESS: int = 0
    GENERAL_ERROR: int = 1
    INVALID_ARGS: int = 2
    MEDIA_UNAVAILABLE: int = 3
    BAND_OUT_OF_RANGE: int = 4
    EMPTY_SWEEP: int = 5
    CAPABILITY_FAILURE: int = 6
    CANCELLED: int = 7

    @classmethod
    def message(cls, code: int) -> str:
        """Return a human-readable message for an exit code."""
        messages = {
            cls.SUCCESS: "Success",
            cls.GENERAL_ERROR: "General error",
            cls.INVALID_ARGS: "Invalid arguments",
            cls.MEDIA_UNAVAILABLE: "Audio source unavailable",
            cls.BAND_OUT_OF_RANGE: "Band outside analyser range",
            cls.EMPTY_SWEEP: "Track too short to sweep",
            cls.CAPABILITY_FAILURE: "Seek or snapshot failure",
            cls.CANCELLED: "Sweep cancelled",
        }
        return messages.get(code, f"Unknown exit code {code}")

    @classmethod
    def for_exception(cls, exc: BaseException) -> int:
        """Map a raised error onto its exit code."""
        if isinstance(exc, MediaUnavailable):
            return cls.MEDIA_UNAVAILABLE
        if isinstance(exc, ExternalCapabilityFailure):
            return cls.CAPABILITY_FAILURE
        if isinstance(exc, IndexOutOfRange):
            return cls.BAND_OUT_OF_RANGE
        if isinstance(exc, EmptySweep):
            return cls.EMPTY_SWEEP
        if isinstance(exc, (SweepCancelled, KeyboardInterrupt)):
            return cls.CANCELLED
        if isinstance(exc, InvalidParameters):
            return cls.INVALID_ARGS
        return cls.GENERAL_ERROR
