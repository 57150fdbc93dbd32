"""
Storage interface.

The core only talks to storage through a `StoreTransaction` obtained from
`Store.transaction()`. Leaving the context normally commits; any exception
rolls the whole unit of work back, so a report is either fully ingested or
not at all.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Optional

from perfwatch.models import (
    AdapterKind,
    Alert,
    AlertStatus,
    Benchmark,
    Boundary,
    BoundarySide,
    Branch,
    Measure,
    Metric,
    MetricResult,
    Project,
    Report,
    Statistic,
    StatisticConfig,
    Testbed,
    Threshold,
    Version,
)


class StoreTransaction(ABC):
    """One atomic unit of work against the store."""

    # Projects and named resources

    @abstractmethod
    async def get_project_by_name(self, name: str) -> Optional[Project]: ...

    @abstractmethod
    async def insert_project(self, name: str) -> Project: ...

    @abstractmethod
    async def get_branch(self, branch_id: int) -> Optional[Branch]: ...

    @abstractmethod
    async def get_branch_by_name(self, project_id: int, name: str) -> Optional[Branch]: ...

    @abstractmethod
    async def insert_branch(self, project_id: int, name: str) -> Branch: ...

    @abstractmethod
    async def get_testbed(self, testbed_id: int) -> Optional[Testbed]: ...

    @abstractmethod
    async def get_testbed_by_name(self, project_id: int, name: str) -> Optional[Testbed]: ...

    @abstractmethod
    async def insert_testbed(self, project_id: int, name: str, **descriptors: Optional[str]) -> Testbed: ...

    @abstractmethod
    async def get_benchmark(self, benchmark_id: int) -> Optional[Benchmark]: ...

    @abstractmethod
    async def get_benchmark_by_name(self, project_id: int, name: str) -> Optional[Benchmark]: ...

    @abstractmethod
    async def insert_benchmark(self, project_id: int, name: str) -> Benchmark: ...

    @abstractmethod
    async def get_measure(self, measure_id: int) -> Optional[Measure]: ...

    @abstractmethod
    async def get_measure_by_name(self, project_id: int, name: str) -> Optional[Measure]: ...

    @abstractmethod
    async def insert_measure(self, project_id: int, name: str, units: str) -> Measure: ...

    # Versions

    @abstractmethod
    async def get_version(self, version_id: int) -> Optional[Version]: ...

    @abstractmethod
    async def get_version_by_hash(self, branch_id: int, hash: str) -> Optional[Version]: ...

    @abstractmethod
    async def max_version_number(self, branch_id: int) -> int:
        """Highest version number on the branch, 0 if it has none."""

    @abstractmethod
    async def insert_version(self, branch_id: int, number: int, hash: Optional[str]) -> Version: ...

    # Reports and metrics

    @abstractmethod
    async def insert_report(
        self,
        *,
        project_id: int,
        version_id: int,
        testbed_id: int,
        adapter: AdapterKind,
        start_time: datetime,
        end_time: datetime,
        user: Optional[str],
    ) -> Report: ...

    @abstractmethod
    async def get_report(self, report_id: int) -> Optional[Report]: ...

    @abstractmethod
    async def list_reports(self, project_id: int) -> list[Report]:
        """Reports of a project, newest start_time first."""

    @abstractmethod
    async def delete_report(self, report_id: int) -> None:
        """Delete a report with its metrics, boundaries and alerts."""

    @abstractmethod
    async def insert_metric(
        self,
        *,
        report_id: int,
        benchmark_id: int,
        measure_id: int,
        iteration: int,
        result: MetricResult,
    ) -> Metric: ...

    @abstractmethod
    async def get_metric(self, metric_id: int) -> Optional[Metric]: ...

    @abstractmethod
    async def list_metrics(self, report_id: int) -> list[Metric]: ...

    @abstractmethod
    async def query_history(
        self,
        *,
        branch_id: int,
        testbed_id: int,
        benchmark_id: int,
        measure_id: int,
        exclude_report_id: Optional[int] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[float]:
        """
        Historical metric values for one identity, oldest first.

        Ordered by version number, then report start time. `limit` keeps the
        most recent N samples; `since` drops reports that started earlier.
        """

    # Thresholds and statistics

    @abstractmethod
    async def get_threshold(self, threshold_id: int) -> Optional[Threshold]: ...

    @abstractmethod
    async def find_threshold(self, branch_id: int, testbed_id: int, measure_id: int) -> Optional[Threshold]: ...

    @abstractmethod
    async def list_thresholds(
        self,
        project_id: int,
        *,
        branch_id: Optional[int] = None,
        testbed_id: Optional[int] = None,
        measure_id: Optional[int] = None,
    ) -> list[Threshold]: ...

    @abstractmethod
    async def insert_threshold(
        self, *, project_id: int, branch_id: int, testbed_id: int, measure_id: int
    ) -> Threshold:
        """Insert a threshold with no statistic yet; repoint it before commit."""

    @abstractmethod
    async def set_threshold_statistic(self, threshold_id: int, statistic_id: int) -> Threshold: ...

    @abstractmethod
    async def delete_threshold(self, threshold_id: int) -> None: ...

    @abstractmethod
    async def insert_statistic(self, threshold_id: int, config: StatisticConfig) -> Statistic: ...

    @abstractmethod
    async def get_statistic(self, statistic_id: int) -> Optional[Statistic]: ...

    @abstractmethod
    async def list_statistics(self, threshold_id: int) -> list[Statistic]:
        """All statistics ever attached to a threshold, oldest first."""

    # Boundaries and alerts

    @abstractmethod
    async def insert_boundary(
        self,
        *,
        metric_id: int,
        threshold_id: int,
        statistic_id: int,
        baseline: float,
        lower_limit: Optional[float],
        upper_limit: Optional[float],
    ) -> Boundary: ...

    @abstractmethod
    async def get_boundary(self, boundary_id: int) -> Optional[Boundary]: ...

    @abstractmethod
    async def count_boundaries(self, threshold_id: int) -> int: ...

    @abstractmethod
    async def delete_boundaries(self, threshold_id: int) -> None:
        """Delete a threshold's boundaries and the alerts raised on them."""

    @abstractmethod
    async def insert_alert(self, *, boundary_id: int, metric_id: int, side: BoundarySide) -> Alert: ...

    @abstractmethod
    async def get_alert(self, alert_id: int) -> Optional[Alert]: ...

    @abstractmethod
    async def list_alerts(self, project_id: int, status: Optional[AlertStatus] = None) -> list[Alert]:
        """Alerts of a project, newest first."""

    @abstractmethod
    async def set_alert_status(self, alert_id: int, status: AlertStatus) -> Alert: ...


class Store(ABC):
    """A storage backend handing out transactions."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StoreTransaction]: ...

    async def initialize(self) -> None:
        """Open connections / create schema. No-op by default."""

    async def close(self) -> None:
        """Release resources. No-op by default."""

    async def is_healthy(self) -> bool:
        return True
