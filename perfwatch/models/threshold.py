"""
Threshold Models

A Threshold names the active Statistic for one
(project, branch, testbed, measure) identity. Statistics are immutable and
versioned: replacing a threshold's configuration inserts a new Statistic and
repoints the Threshold. Boundaries and Alerts record each evaluation.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from perfwatch.models.resources import Record


def _now() -> datetime:
    return datetime.now(UTC)


class StatisticKind(str, Enum):
    """Supported statistical tests."""

    Z_SCORE = "z_score"
    T_TEST = "t_test"
    PERCENTAGE = "percentage"
    IQR = "iqr"


class BoundarySide(str, Enum):
    """Which limit a metric crossed."""

    ABOVE = "above"
    BELOW = "below"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    DISMISSED = "dismissed"


class StatisticConfig(BaseModel):
    """
    Threshold configuration as submitted by a caller.

    Semantic validation (sample-size bounds, enabled sides, kind-specific
    parameter ranges) lives in `perfwatch.core.thresholds.validate_statistic`
    so every entry point rejects bad configs with the same error.
    """

    model_config = ConfigDict(frozen=True)

    test: StatisticKind = Field(..., description="Statistical test kind")
    min_sample_size: int = Field(2, description="Minimum history length")
    max_sample_size: Optional[int] = Field(
        None, description="Use at most the N most recent samples"
    )
    window: Optional[int] = Field(
        None, description="Only use samples from the last N seconds"
    )
    lower_enabled: bool = Field(False, description="Evaluate the lower limit")
    upper_enabled: bool = Field(True, description="Evaluate the upper limit")

    # Kind-specific parameters
    confidence: Optional[float] = Field(
        None, description="One-sided confidence level (z_score, t_test)"
    )
    percentage: Optional[float] = Field(
        None, description="Allowed fractional deviation from the mean (percentage)"
    )
    iqr_multiplier: Optional[float] = Field(
        None, description="Fence multiplier k applied to the IQR (iqr)"
    )


class Statistic(Record):
    """An immutable, versioned statistic configuration."""

    threshold_id: int
    test: StatisticKind
    min_sample_size: int
    max_sample_size: Optional[int] = None
    window: Optional[int] = None
    lower_enabled: bool
    upper_enabled: bool
    confidence: Optional[float] = None
    percentage: Optional[float] = None
    iqr_multiplier: Optional[float] = None
    created: datetime = Field(default_factory=_now)

    def config(self) -> StatisticConfig:
        return StatisticConfig(
            test=self.test,
            min_sample_size=self.min_sample_size,
            max_sample_size=self.max_sample_size,
            window=self.window,
            lower_enabled=self.lower_enabled,
            upper_enabled=self.upper_enabled,
            confidence=self.confidence,
            percentage=self.percentage,
            iqr_multiplier=self.iqr_multiplier,
        )


class Threshold(Record):
    project_id: int
    branch_id: int
    testbed_id: int
    measure_id: int
    # Only None inside the transaction that creates the threshold.
    statistic_id: Optional[int] = None
    created: datetime = Field(default_factory=_now)
    modified: datetime = Field(default_factory=_now)


class ThresholdSubmission(BaseModel):
    """Create-or-replace request for one threshold identity within a project."""

    branch: str
    testbed: str
    measure: str
    statistic: StatisticConfig


class ThresholdInput(ThresholdSubmission):
    project: str


class Boundary(Record):
    """The limits computed for one metric evaluation."""

    metric_id: int
    threshold_id: int
    statistic_id: int
    baseline: float = Field(..., description="Mean (or median for IQR) of the history")
    lower_limit: Optional[float] = None
    upper_limit: Optional[float] = None


class Alert(Record):
    boundary_id: int
    metric_id: int
    side: BoundarySide
    status: AlertStatus = AlertStatus.ACTIVE
    created: datetime = Field(default_factory=_now)
    modified: datetime = Field(default_factory=_now)


class AlertDetail(BaseModel):
    """An alert together with everything needed to explain it."""

    alert: Alert
    boundary: Boundary
    statistic: Statistic
    value: float
