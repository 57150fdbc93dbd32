"""
Statistical helpers for boundary computation.

Moments and quartiles of a sample window, in plain Python.
"""

from __future__ import annotations

import math
from typing import Sequence


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean. Raises ValueError on an empty sequence."""
    if not values:
        raise ValueError("mean of an empty sequence")
    return math.fsum(values) / len(values)


def population_stddev(values: Sequence[float], mu: float | None = None) -> float:
    """
    Population standard deviation (divides by n).

    Args:
        values: Sample window.
        mu: Precomputed mean, if the caller already has it.
    """
    if not values:
        raise ValueError("stddev of an empty sequence")
    if mu is None:
        mu = mean(values)
    variance = math.fsum((x - mu) ** 2 for x in values) / len(values)
    return math.sqrt(variance)


def percentile(sorted_values: Sequence[float], p: float) -> float | None:
    """
    p-th percentile (0-100, clamped) of an ascending sequence, or None when empty.

    Interpolates between the two closest ranks, the same rule numpy uses by
    default, so percentile([1, 2, 3, 4], 50) is 2.5.
    """
    if not sorted_values:
        return None

    rank = min(max(p, 0.0), 100.0) / 100.0 * (len(sorted_values) - 1)
    below = math.floor(rank)
    weight = rank - below
    low = float(sorted_values[below])
    if weight == 0.0:
        return low
    return low + weight * (sorted_values[below + 1] - low)


def quartiles(values: Sequence[float]) -> tuple[float, float, float]:
    """Return (Q1, median, Q3) of an unsorted, non-empty window."""
    if not values:
        raise ValueError("quartiles of an empty sequence")
    ordered = sorted(values)
    q1 = percentile(ordered, 25)
    q2 = percentile(ordered, 50)
    q3 = percentile(ordered, 75)
    assert q1 is not None and q2 is not None and q3 is not None
    return q1, q2, q3
