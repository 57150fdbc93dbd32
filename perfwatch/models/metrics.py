"""
Canonical Metrics Models

The adapter layer turns raw harness output into `BenchmarkResults`:
an ordered mapping of benchmark name -> measure name -> MetricResult.
"""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat

# Well-known measures emitted by the bundled adapters.
LATENCY = "latency"
MEMORY = "memory"
ALLOCATIONS = "allocations"
THROUGHPUT = "throughput"

MEASURE_UNITS: Dict[str, str] = {
    LATENCY: "nanoseconds",
    MEMORY: "bytes",
    ALLOCATIONS: "allocations",
    THROUGHPUT: "megabytes / second",
}


class MetricResult(BaseModel):
    """One numeric result reported by a benchmark harness. NaN and infinities are rejected."""

    model_config = ConfigDict(frozen=True)

    value: FiniteFloat = Field(..., description="Measured value")
    lower_variance: Optional[FiniteFloat] = Field(
        None, description="Reported variance below the value"
    )
    upper_variance: Optional[FiniteFloat] = Field(
        None, description="Reported variance above the value"
    )


# benchmark name -> measure name -> result (insertion ordered)
BenchmarkResults = Dict[str, Dict[str, MetricResult]]


def latency(duration_ns: float, variance_ns: Optional[float] = None) -> MetricResult:
    """Build a latency result with a symmetric variance."""
    return MetricResult(
        value=duration_ns,
        lower_variance=variance_ns,
        upper_variance=variance_ns,
    )
