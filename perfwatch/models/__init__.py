"""
Data models for PerfWatch.

This package contains Pydantic models for:
- Canonical adapter output (benchmark -> measure -> result)
- Project resources (branches, versions, testbeds, benchmarks, measures)
- Reports and metrics
- Thresholds, statistics, boundaries and alerts
"""

from perfwatch.models.metrics import (
    BenchmarkResults,
    MetricResult,
)

from perfwatch.models.resources import (
    Benchmark,
    Branch,
    Measure,
    Project,
    Testbed,
    Version,
)

from perfwatch.models.report import (
    AdapterKind,
    BenchmarkInput,
    IngestResult,
    Metric,
    MetricEvaluation,
    Report,
    ReportInput,
    ReportSubmission,
)

from perfwatch.models.threshold import (
    Alert,
    AlertDetail,
    AlertStatus,
    Boundary,
    BoundarySide,
    Statistic,
    StatisticConfig,
    StatisticKind,
    Threshold,
    ThresholdInput,
    ThresholdSubmission,
)

__all__ = [
    # metrics
    "BenchmarkResults",
    "MetricResult",
    # resources
    "Benchmark",
    "Branch",
    "Measure",
    "Project",
    "Testbed",
    "Version",
    # report
    "AdapterKind",
    "BenchmarkInput",
    "IngestResult",
    "Metric",
    "MetricEvaluation",
    "Report",
    "ReportInput",
    "ReportSubmission",
    # threshold
    "Alert",
    "AlertDetail",
    "AlertStatus",
    "Boundary",
    "BoundarySide",
    "Statistic",
    "StatisticConfig",
    "StatisticKind",
    "Threshold",
    "ThresholdInput",
    "ThresholdSubmission",
]
