"""Time utilities for token stamping and clock offset estimation."""

from __future__ import annotations

import time
from datetime import UTC, datetime


def now_ms() -> int:
    """Return the current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def monotonic_ms() -> float:
    """Return a monotonic timestamp in milliseconds for frame pacing."""
    return time.monotonic() * 1000.0


def utcnow_iso() -> str:
    """Return the current UTC time formatted as ISO-8601 with milliseconds."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def estimate_offset(t0: float, remote_time: float, t3: float) -> float:
    """Estimate ``remote - local`` from a single round-trip probe.

    Latency is assumed symmetric, so the midpoint of the round trip is the
    local instant corresponding to ``remote_time``.

    Args:
        t0: Local time the probe was sent (ms)
        remote_time: Time reported by the remote oracle (ms)
        t3: Local time the response arrived (ms)

    Returns:
        Estimated offset in milliseconds
    """
    return remote_time - (t0 + (t3 - t0) / 2)
