"""
Report Models

Defines Pydantic models for report ingestion: the caller-facing input shape,
the persisted Report / Metric rows, and the per-metric evaluation output.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from perfwatch.models.metrics import BenchmarkResults, MetricResult
from perfwatch.models.resources import Record, Version
from perfwatch.models.threshold import Alert, Boundary


def _now() -> datetime:
    return datetime.now(UTC)


class AdapterKind(str, Enum):
    """Benchmark harness output formats."""

    MAGIC = "magic"
    JSON = "json"
    RUST_BENCH = "rust_bench"
    GO_BENCH = "go_bench"


class BenchmarkInput(BaseModel):
    """All measures reported for one benchmark."""

    name: str = Field(..., min_length=1, description="Benchmark name")
    measures: Dict[str, MetricResult] = Field(
        default_factory=dict, description="Measure name -> result"
    )

    @classmethod
    def from_results(cls, results: BenchmarkResults) -> List["BenchmarkInput"]:
        return [cls(name=name, measures=dict(measures)) for name, measures in results.items()]


class ReportSubmission(BaseModel):
    """
    One ingestion request, scoped to a project by the caller.

    `benchmarks` holds already-adapted results: either a flat list (one
    iteration) or a list of lists (several iterations of the same harness).
    Alternatively `results` carries raw harness outputs, one per iteration,
    which are parsed with `adapter` before ingestion.
    """

    branch: str = Field(..., description="Branch name")
    testbed: str = Field(..., description="Testbed name")
    adapter: Optional[AdapterKind] = Field(
        None, description="Adapter kind (settings.DEFAULT_ADAPTER when omitted)"
    )
    hash: Optional[str] = Field(None, description="Source-control hash")
    start_time: datetime = Field(..., description="Benchmark run start")
    end_time: datetime = Field(..., description="Benchmark run end")
    user: Optional[str] = Field(None, description="Submitting user")
    benchmarks: List[List[BenchmarkInput]] = Field(
        default_factory=list, description="Adapted results per iteration"
    )
    results: Optional[List[str]] = Field(
        None, description="Raw harness outputs per iteration"
    )

    @field_validator("benchmarks", mode="before")
    @classmethod
    def normalize_iterations(cls, v: Any) -> Any:
        """Accept a flat list of benchmarks as a single iteration."""
        if isinstance(v, list) and v and not isinstance(v[0], list):
            return [v]
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo is not None else v.replace(tzinfo=UTC)

    @model_validator(mode="after")
    def validate_times(self):
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        if self.results is not None and self.benchmarks:
            raise ValueError("Provide either benchmarks or raw results, not both")
        return self


class ReportInput(ReportSubmission):
    """An ingestion request for a named project."""

    project: str = Field(..., description="Project name")


class Report(Record):
    """One ingestion event. Created once, never mutated."""

    project_id: int
    version_id: int
    testbed_id: int
    adapter: AdapterKind
    start_time: datetime
    end_time: datetime
    user: Optional[str] = None
    created: datetime = Field(default_factory=_now)


class Metric(Record):
    report_id: int
    benchmark_id: int
    measure_id: int
    iteration: int = Field(0, ge=0)
    value: float
    lower_variance: Optional[float] = None
    upper_variance: Optional[float] = None


class MetricEvaluation(BaseModel):
    """Outcome for one (benchmark, measure) pair of an ingested report."""

    model_config = ConfigDict(frozen=True)

    benchmark: str
    measure: str
    iteration: int
    metric_id: int
    value: float
    threshold_id: Optional[int] = None
    boundary: Optional[Boundary] = None
    alert: Optional[Alert] = None

    @property
    def alerted(self) -> bool:
        return self.alert is not None


class IngestResult(BaseModel):
    report: Report
    version: Version
    results: List[MetricEvaluation] = Field(default_factory=list)

    @property
    def alerts(self) -> List[Alert]:
        return [r.alert for r in self.results if r.alert is not None]
