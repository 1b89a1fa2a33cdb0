"""Time utilities shared across bandsweep components."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def utc_now_str() -> str:
    """Return the current UTC timestamp as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def elapsed_ms(start: float) -> float:
    """Milliseconds since a ``time.perf_counter()`` reading."""
    return (time.perf_counter() - start) * 1000.0
