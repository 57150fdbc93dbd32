"""
Boundary computation and breach classification.

Given the historical sample window for one threshold identity and the active
statistic, compute the acceptable (lower, upper) range and classify a new
value against it. Everything here is deterministic and side-effect-free;
persistence happens in the ingestor.

Test kinds:
- z_score:    mean ± z(confidence) · σ
- t_test:     mean ± t(confidence, n - 1) · σ / √n
- percentage: mean · (1 ± p)
- iqr:        Q1 - k · IQR  /  Q3 + k · IQR   (baseline is the median)

σ is the population standard deviation of the window. Quantiles are
one-sided: `confidence` is the probability mass below the upper limit.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from scipy import stats

from perfwatch.config import settings
from perfwatch.core.statistics import mean, population_stddev, quartiles
from perfwatch.models.threshold import (
    BoundarySide,
    Statistic,
    StatisticConfig,
    StatisticKind,
)

logger = logging.getLogger(__name__)

StatisticLike = Union[Statistic, StatisticConfig]


@dataclass(frozen=True, slots=True)
class Limits:
    baseline: float
    lower_limit: Optional[float] = None
    upper_limit: Optional[float] = None


@dataclass(frozen=True, slots=True)
class BoundaryResult:
    """Computed limits plus the classification of the evaluated value."""

    baseline: float
    lower_limit: Optional[float]
    upper_limit: Optional[float]
    side: Optional[BoundarySide]

    @property
    def breached(self) -> bool:
        return self.side is not None


def z_value(confidence: float) -> float:
    return float(stats.norm.ppf(confidence))


def t_value(confidence: float, degrees_of_freedom: int) -> float:
    return float(stats.t.ppf(confidence, degrees_of_freedom))


def _symmetric(center: float, delta: float, statistic: StatisticLike) -> Limits:
    return Limits(
        baseline=center,
        lower_limit=center - delta if statistic.lower_enabled else None,
        upper_limit=center + delta if statistic.upper_enabled else None,
    )


def _insufficient(history: Sequence[float], statistic: StatisticLike) -> str:
    n = len(history)
    if n < max(statistic.min_sample_size, 1):
        return f"{n} samples < min_sample_size {statistic.min_sample_size}"
    return f"t_test needs at least 2 samples, got {n}"


def compute_limits(history: Sequence[float], statistic: StatisticLike) -> Optional[Limits]:
    """
    Compute the boundary limits for `history`.

    Returns None when the window is too small to evaluate: fewer samples
    than `min_sample_size`, or fewer than two for Student's t.
    """
    n = len(history)
    if n == 0 or n < statistic.min_sample_size:
        return None

    test = StatisticKind(statistic.test)

    if test == StatisticKind.Z_SCORE:
        mu = mean(history)
        sigma = population_stddev(history, mu)
        z = z_value(statistic.confidence or settings.DEFAULT_CONFIDENCE)
        return _symmetric(mu, z * sigma, statistic)

    if test == StatisticKind.T_TEST:
        if n < 2:
            return None
        mu = mean(history)
        sigma = population_stddev(history, mu)
        t = t_value(statistic.confidence or settings.DEFAULT_CONFIDENCE, n - 1)
        return _symmetric(mu, t * sigma / math.sqrt(n), statistic)

    if test == StatisticKind.PERCENTAGE:
        if statistic.percentage is None:
            raise ValueError("percentage test requires a percentage")
        mu = mean(history)
        return _symmetric(mu, abs(mu) * statistic.percentage, statistic)

    if test == StatisticKind.IQR:
        k = statistic.iqr_multiplier or settings.DEFAULT_IQR_MULTIPLIER
        q1, median, q3 = quartiles(history)
        iqr = q3 - q1
        return Limits(
            baseline=median,
            lower_limit=q1 - k * iqr if statistic.lower_enabled else None,
            upper_limit=q3 + k * iqr if statistic.upper_enabled else None,
        )

    raise ValueError(f"Unsupported statistic test: {test}")


def classify(
    value: float,
    lower_limit: Optional[float],
    upper_limit: Optional[float],
) -> Optional[BoundarySide]:
    """
    Classify `value` against the limits.

    Only strictly outside a limit is a breach; equal to a limit is not.
    An absent limit never breaches.
    """
    if lower_limit is not None and value < lower_limit:
        return BoundarySide.BELOW
    if upper_limit is not None and value > upper_limit:
        return BoundarySide.ABOVE
    return None


def evaluate(
    history: Sequence[float],
    value: float,
    statistic: StatisticLike,
) -> Optional[BoundaryResult]:
    """
    Evaluate `value` against the boundary derived from `history`.

    Returns None (not an error) when there is not enough history.
    """
    limits = compute_limits(history, statistic)
    if limits is None:
        logger.debug(f"Skipping evaluation: {_insufficient(history, statistic)}")
        return None

    return BoundaryResult(
        baseline=limits.baseline,
        lower_limit=limits.lower_limit,
        upper_limit=limits.upper_limit,
        side=classify(value, limits.lower_limit, limits.upper_limit),
    )
