"""Suspicion scoring policies for scan round-trip deltas.

Two policies are available and are not interchangeable:

* ``fixed`` classifies every delta against absolute thresholds.
* ``population`` compares a participant's average delta with the robust
  population mean and maps the deviation onto a 0-100 score.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from qr_presence.core.settings import ScoringPolicyName, settings
from qr_presence.services.robust_stats import RobustEstimate

RiskLevel = Literal["normal", "suspect", "high"]

DEFAULT_NORMAL_THRESHOLD_MS = 250
DEFAULT_SUSPECT_THRESHOLD_MS = 600
DEFAULT_DEAD_ZONE_MS = 50.0
MAX_SCORE = 100
HIGH_RISK_FROM = 50


@dataclass(frozen=True)
class DeltaClassification:
    """Fixed-threshold verdict for a single delta."""

    risk: RiskLevel
    label: str


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(value + 0.5))


def classify_delta(
    delta_ms: float,
    normal_ms: float = DEFAULT_NORMAL_THRESHOLD_MS,
    suspect_ms: float = DEFAULT_SUSPECT_THRESHOLD_MS,
) -> DeltaClassification:
    """Classify one delta against absolute thresholds."""
    if delta_ms < normal_ms:
        return DeltaClassification(risk="normal", label="trusted")
    if delta_ms < suspect_ms:
        return DeltaClassification(risk="suspect", label="suspect")
    return DeltaClassification(risk="high", label="failed")


def suspicion_score(
    student_avg: float,
    mean: float,
    std: float,
    dead_zone_ms: float = DEFAULT_DEAD_ZONE_MS,
) -> int:
    """Map a participant's deviation from the population onto 0-100.

    Deviations inside the dead-zone never count. Beyond it the z-score is
    mapped through tiers: below 1 is 0, 1-2 spans 30-70, 2-3 spans 70-95 and
    anything from 3 upward saturates between 95 and 100.
    """
    if std == 0:
        return 0

    abs_diff = abs(student_avg - mean)
    if abs_diff <= dead_zone_ms:
        return 0

    z = abs_diff / std
    if z < 1.0:
        score = 0.0
    elif z < 2.0:
        score = 30 + (z - 1.0) * 40
    elif z < 3.0:
        score = 70 + (z - 2.0) * 25
    else:
        score = 95 + min((z - 3.0) * 5, 5)
    return round_half_up(score)


def score_tier(score: int) -> RiskLevel:
    """Presentation tier for a 0-100 score or percentage."""
    if score <= 0:
        return "normal"
    if score < HIGH_RISK_FROM:
        return "suspect"
    return "high"


@dataclass(frozen=True)
class ParticipantVerdict:
    """Score and tier assigned to one participant by a policy."""

    score: int
    tier: RiskLevel


class FixedThresholdPolicy:
    """Score a participant by the share of their deltas above the normal band."""

    name: ScoringPolicyName = "fixed"

    def __init__(
        self,
        normal_ms: float | None = None,
        suspect_ms: float | None = None,
    ) -> None:
        self.normal_ms = normal_ms if normal_ms is not None else settings.fixed_normal_threshold_ms
        self.suspect_ms = (
            suspect_ms if suspect_ms is not None else settings.fixed_suspect_threshold_ms
        )

    def classify(self, delta_ms: float) -> DeltaClassification:
        """Classify a single delta."""
        return classify_delta(delta_ms, self.normal_ms, self.suspect_ms)

    def suspect_rate(self, deltas: Sequence[float]) -> int:
        """Percentage of deltas classified as suspect or high."""
        if not deltas:
            return 0
        flagged = sum(1 for d in deltas if self.classify(d).risk != "normal")
        return round_half_up(flagged / len(deltas) * 100)

    def evaluate(
        self,
        deltas: Sequence[float],
        average: float,
        estimate: RobustEstimate,
    ) -> ParticipantVerdict:
        rate = self.suspect_rate(deltas)
        return ParticipantVerdict(score=rate, tier=score_tier(rate))


class PopulationPolicy:
    """Score a participant against the robust population estimate."""

    name: ScoringPolicyName = "population"

    def __init__(self, dead_zone_ms: float | None = None) -> None:
        self.dead_zone_ms = dead_zone_ms if dead_zone_ms is not None else settings.dead_zone_ms

    def evaluate(
        self,
        deltas: Sequence[float],
        average: float,
        estimate: RobustEstimate,
    ) -> ParticipantVerdict:
        score = suspicion_score(average, estimate.mean, estimate.std, self.dead_zone_ms)
        return ParticipantVerdict(score=score, tier=score_tier(score))


ScoringPolicy = FixedThresholdPolicy | PopulationPolicy


def get_policy(name: ScoringPolicyName | None = None) -> ScoringPolicy:
    """Return the scoring policy registered under ``name``.

    Raises:
        ValueError: If the name is unknown.
    """
    selected = name or settings.scoring_policy
    if selected == "fixed":
        return FixedThresholdPolicy()
    if selected == "population":
        return PopulationPolicy()
    raise ValueError(f"Unknown scoring policy: {selected}")
