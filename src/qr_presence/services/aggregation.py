"""Join scan events back to locally issued tokens and collect per-participant deltas."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol


class ScanLike(Protocol):
    """Minimal view of a scan needed to compute its delta."""

    participant_id: str
    token: str
    receipt_time: int


def collect_deltas(
    events: Iterable[ScanLike],
    issued_tokens: Mapping[str, int],
) -> dict[str, list[int]]:
    """Group non-negative ``receipt - creation`` deltas by participant.

    Tokens missing from ``issued_tokens`` belong to another issuing session
    and are skipped. Negative deltas come from clock skew and are dropped.

    Args:
        events: Scans in arrival order.
        issued_tokens: Token string to creation time (ms) for this session.

    Returns:
        Participant id to deltas, both in first-seen order.
    """
    deltas: dict[str, list[int]] = {}
    for event in events:
        created_at = issued_tokens.get(event.token)
        if created_at is None:
            continue
        delta = event.receipt_time - created_at
        if delta < 0:
            continue
        deltas.setdefault(event.participant_id, []).append(delta)
    return deltas


def participant_averages(deltas: Mapping[str, list[int]]) -> dict[str, float]:
    """Return the mean delta of every participant with at least one delta."""
    return {pid: sum(values) / len(values) for pid, values in deltas.items() if values}
