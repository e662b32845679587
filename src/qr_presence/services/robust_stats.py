"""Iterative outlier-trimmed mean and standard deviation.

The estimator runs over one average per participant rather than over raw
events, so a participant who scans very often cannot dominate the population
estimate.
"""

from __future__ import annotations

import statistics
from collections.abc import Sequence
from dataclasses import dataclass

DEFAULT_Z_THRESHOLD = 2.0
DEFAULT_MAX_ITERATIONS = 10
DEFAULT_TOLERANCE = 0.1


@dataclass(frozen=True)
class RobustEstimate:
    """Result of the trimmed estimation."""

    mean: float
    std: float
    included: tuple[float, ...]
    iterations: int


def mean_std(values: Sequence[float]) -> tuple[float, float]:
    """Population mean and standard deviation. Empty input yields ``(0, 0)``."""
    if not values:
        return 0.0, 0.0
    mean = statistics.fmean(values)
    return mean, statistics.pstdev(values, mu=mean)


def robust_mean_std(
    values: Sequence[float],
    *,
    z_threshold: float = DEFAULT_Z_THRESHOLD,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    tolerance: float = DEFAULT_TOLERANCE,
) -> RobustEstimate:
    """Trim values beyond ``z_threshold`` until the mean settles.

    Each round drops values whose z-score exceeds the threshold. Iteration
    stops when the mean moves less than ``tolerance``, when a round removes
    nothing or everything, or after ``max_iterations`` rounds.
    """
    current = [float(v) for v in values]
    prev_mean = 0.0
    iterations = 0

    while iterations < max_iterations:
        mean, std = mean_std(current)
        if abs(mean - prev_mean) < tolerance:
            break

        scale = std or 1.0
        filtered = [v for v in current if abs(v - mean) / scale <= z_threshold]
        if not filtered or len(filtered) == len(current):
            break

        current = filtered
        prev_mean = mean
        iterations += 1

    mean, std = mean_std(current)
    return RobustEstimate(mean=mean, std=std, included=tuple(current), iterations=iterations)
