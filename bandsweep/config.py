"""
Configuration constants and environment parsing for bandsweep.

All BANDSWEEP_* environment variables are parsed here and exported as
module-level constants. The CLI and the media adapter import defaults from
this module rather than reading os.environ directly.
"""
from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    """Parse an integer from environment, returning default on missing/invalid."""
    val = os.getenv(name)
    if not val:
        return default
    try:
        return max(1, int(float(val)))
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    """Parse a float from environment, returning default on missing/invalid."""
    val = os.getenv(name)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Analyser defaults
# ---------------------------------------------------------------------------
FFT_SIZE: int = _int_env("BANDSWEEP_FFT_SIZE", 2048)
"""FFT window length in frames; the snapshot holds half as many bins."""

MIN_FFT_SIZE: int = 32
MAX_FFT_SIZE: int = 32768

SMOOTHING_TIME_CONSTANT: float = _float_env("BANDSWEEP_SMOOTHING", 0.8)
"""Weight of the previous frame when smoothing magnitudes (0 disables)."""

MIN_DECIBELS: float = _float_env("BANDSWEEP_MIN_DECIBELS", -100.0)
"""dB level mapped to byte value 0."""

MAX_DECIBELS: float = _float_env("BANDSWEEP_MAX_DECIBELS", -30.0)
"""dB level mapped to byte value 255."""

BYTE_MAX: int = 255


# ---------------------------------------------------------------------------
# Sweep behaviour
# ---------------------------------------------------------------------------
SEEK_TIMEOUT_S: float = _float_env("BANDSWEEP_SEEK_TIMEOUT", 5.0)
"""Seconds to wait for a seek to settle before failing the sweep (<= 0 waits forever)."""

SWEEP_LOG_NAME: str = os.getenv("BANDSWEEP_SWEEP_LOG", "bandsweep-sweep.log")
"""File name of the JSONL sweep log written beside the audio source."""
