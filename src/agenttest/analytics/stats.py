"""
Descriptive statistics for analytics.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from src.agenttest.contracts import MetricStats


def percentile(values: Sequence[float], p: float) -> float:
    """
    Nearest-rank percentile.

    The p-th percentile of n sorted values is the value at rank
    ceil(p / 100 * n) (1-based), clamped to [1, n]. Always an element of the
    sample, so repeated computation is deterministic.

    Returns:
        The percentile, or 0.0 for an empty sample
    """
    if not values:
        return 0.0
    if not 0 <= p <= 100:
        raise ValueError(f"percentile must be between 0 and 100, got {p}")
    ordered = sorted(values)
    rank = min(max(math.ceil(p / 100 * len(ordered)), 1), len(ordered))
    return float(ordered[rank - 1])


def metric_stats(values: Sequence[float]) -> MetricStats:
    """min/max/avg/p90 of a sample; all zeros when empty."""
    if not values:
        return MetricStats()
    return MetricStats(
        min=float(min(values)),
        max=float(max(values)),
        avg=sum(values) / len(values),
        p90=percentile(values, 90),
    )


def mean(values: Sequence[float]) -> float | None:
    """Arithmetic mean, or None for an empty sample."""
    if not values:
        return None
    return sum(values) / len(values)


def rate(part: int, total: int) -> float:
    """Percentage, 0 when total is 0."""
    if total == 0:
        return 0.0
    return part / total * 100
