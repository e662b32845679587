"""Attendance reports for an issuing session.

The monitor periodically reads the ingestion log, joins it against the
session's issued tokens and scores every participant.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass

import httpx

from qr_presence.core.clock import now_ms
from qr_presence.core.errors import PresenceError
from qr_presence.core.settings import settings
from qr_presence.services.aggregation import ScanLike, collect_deltas, participant_averages
from qr_presence.services.robust_stats import RobustEstimate, robust_mean_std
from qr_presence.services.scoring import (
    FixedThresholdPolicy,
    PopulationPolicy,
    RiskLevel,
    ScoringPolicy,
    get_policy,
    round_half_up,
)

logger = logging.getLogger(__name__)

ScanSource = Callable[[], Awaitable[Sequence[ScanLike]]]


@dataclass(frozen=True)
class ParticipantReport:
    """One presentation row per participant."""

    participant_id: str
    count: int
    avg_delta: int
    min_delta: int
    max_delta: int
    suspect_rate: int
    suspicion: int
    tier: RiskLevel


@dataclass(frozen=True)
class AttendanceReport:
    """Scored snapshot of every participant seen by this session."""

    policy: str
    generated_at: int
    estimate: RobustEstimate
    participants: tuple[ParticipantReport, ...]


def build_report(
    events: Sequence[ScanLike],
    issued_tokens: Mapping[str, int],
    policy: ScoringPolicy | None = None,
) -> AttendanceReport:
    """Score every participant whose scans match this session's tokens.

    Args:
        events: Retained scans in arrival order.
        issued_tokens: Token to creation time for the issuing session.
        policy: Policy that decides each row's tier. Defaults to the configured one.

    Returns:
        Report rows sorted by participant id.
    """
    policy = policy or get_policy()
    fixed = policy if isinstance(policy, FixedThresholdPolicy) else FixedThresholdPolicy()
    population = policy if isinstance(policy, PopulationPolicy) else PopulationPolicy()

    deltas = collect_deltas(events, issued_tokens)
    averages = participant_averages(deltas)
    estimate = robust_mean_std(
        list(averages.values()),
        z_threshold=settings.robust_z_threshold,
        max_iterations=settings.robust_max_iterations,
        tolerance=settings.robust_tolerance,
    )

    rows: list[ParticipantReport] = []
    for participant_id in sorted(deltas):
        values = deltas[participant_id]
        average = averages[participant_id]
        verdict = policy.evaluate(values, average, estimate)
        rows.append(
            ParticipantReport(
                participant_id=participant_id,
                count=len(values),
                avg_delta=round_half_up(average),
                min_delta=min(values),
                max_delta=max(values),
                suspect_rate=fixed.suspect_rate(values),
                suspicion=population.evaluate(values, average, estimate).score,
                tier=verdict.tier,
            )
        )

    return AttendanceReport(
        policy=policy.name,
        generated_at=now_ms(),
        estimate=estimate,
        participants=tuple(rows),
    )


class AttendanceMonitor:
    """Refreshes an attendance report on a fixed interval.

    A failed refresh keeps the previous report; the next tick tries again.
    """

    def __init__(
        self,
        source: ScanSource,
        issued_tokens: Mapping[str, int],
        *,
        policy: ScoringPolicy | None = None,
        interval_seconds: float | None = None,
    ) -> None:
        self._source = source
        self._issued_tokens = issued_tokens
        self.policy = policy or get_policy()
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.log_refresh_interval_seconds
        )
        self.latest: AttendanceReport | None = None
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    async def refresh_once(self) -> AttendanceReport | None:
        """Fetch the log and rebuild the report."""
        try:
            events = await self._source()
        except (httpx.HTTPError, OSError, PresenceError) as exc:
            logger.warning("Attendance log refresh failed: %s", exc)
            return self.latest

        self.latest = build_report(events, self._issued_tokens, self.policy)
        return self.latest

    async def start(self) -> None:
        """Start the background refresh loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background refresh loop."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        while not self._stopping.is_set():
            await self.refresh_once()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                continue
