"""
In-memory store.

Embedded, single-writer storage: tables of immutable records keyed by id.
A transaction works on a shallow copy of every table and swaps it in on
commit, so an exception anywhere in the unit of work leaves the store
untouched. Records are frozen, so sharing them between copies is safe.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import AsyncIterator, Callable, Optional, TypeVar

from perfwatch.core.errors import StorageFailure
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
from perfwatch.models.resources import Record
from perfwatch.storage.base import Store, StoreTransaction

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)

TABLES = (
    "project",
    "branch",
    "testbed",
    "version",
    "benchmark",
    "measure",
    "report",
    "metric",
    "threshold",
    "statistic",
    "boundary",
    "alert",
)


class _Tables:
    def __init__(self) -> None:
        self.rows: dict[str, dict[int, Record]] = {name: {} for name in TABLES}
        self.next_id: dict[str, int] = {name: 1 for name in TABLES}

    def copy(self) -> "_Tables":
        clone = _Tables()
        clone.rows = {name: dict(rows) for name, rows in self.rows.items()}
        clone.next_id = dict(self.next_id)
        return clone


class MemoryTransaction(StoreTransaction):
    def __init__(self, tables: _Tables):
        self._t = tables

    # helpers

    def _all(self, table: str) -> list:
        return list(self._t.rows[table].values())

    def _get(self, table: str, row_id: int):
        return self._t.rows[table].get(row_id)

    def _first(self, table: str, predicate: Callable[[object], bool]):
        for row in self._t.rows[table].values():
            if predicate(row):
                return row
        return None

    def _unique(self, table: str, **keys: object) -> None:
        def same(row: object) -> bool:
            return all(getattr(row, k) == v for k, v in keys.items())

        if self._first(table, same) is not None:
            raise StorageFailure(f"Unique constraint violated on {table}: {keys}")

    def _insert(self, table: str, model: type[R], **fields: object) -> R:
        row_id = self._t.next_id[table]
        self._t.next_id[table] = row_id + 1
        row = model(id=row_id, **fields)
        self._t.rows[table][row_id] = row
        return row

    def _replace(self, table: str, row: R) -> R:
        self._t.rows[table][row.id] = row
        return row

    def _require(self, table: str, row_id: int):
        row = self._get(table, row_id)
        if row is None:
            raise StorageFailure(f"Foreign key violated: {table} {row_id} does not exist")
        return row

    # projects and named resources

    async def get_project_by_name(self, name: str) -> Optional[Project]:
        return self._first("project", lambda p: p.name == name)

    async def insert_project(self, name: str) -> Project:
        self._unique("project", name=name)
        return self._insert("project", Project, name=name)

    async def get_branch(self, branch_id: int) -> Optional[Branch]:
        return self._get("branch", branch_id)

    async def get_branch_by_name(self, project_id: int, name: str) -> Optional[Branch]:
        return self._first("branch", lambda b: b.project_id == project_id and b.name == name)

    async def insert_branch(self, project_id: int, name: str) -> Branch:
        self._require("project", project_id)
        self._unique("branch", project_id=project_id, name=name)
        return self._insert("branch", Branch, project_id=project_id, name=name)

    async def get_testbed(self, testbed_id: int) -> Optional[Testbed]:
        return self._get("testbed", testbed_id)

    async def get_testbed_by_name(self, project_id: int, name: str) -> Optional[Testbed]:
        return self._first("testbed", lambda t: t.project_id == project_id and t.name == name)

    async def insert_testbed(self, project_id: int, name: str, **descriptors: Optional[str]) -> Testbed:
        self._require("project", project_id)
        self._unique("testbed", project_id=project_id, name=name)
        return self._insert("testbed", Testbed, project_id=project_id, name=name, **descriptors)

    async def get_benchmark(self, benchmark_id: int) -> Optional[Benchmark]:
        return self._get("benchmark", benchmark_id)

    async def get_benchmark_by_name(self, project_id: int, name: str) -> Optional[Benchmark]:
        return self._first("benchmark", lambda b: b.project_id == project_id and b.name == name)

    async def insert_benchmark(self, project_id: int, name: str) -> Benchmark:
        self._unique("benchmark", project_id=project_id, name=name)
        return self._insert("benchmark", Benchmark, project_id=project_id, name=name)

    async def get_measure(self, measure_id: int) -> Optional[Measure]:
        return self._get("measure", measure_id)

    async def get_measure_by_name(self, project_id: int, name: str) -> Optional[Measure]:
        return self._first("measure", lambda m: m.project_id == project_id and m.name == name)

    async def insert_measure(self, project_id: int, name: str, units: str) -> Measure:
        self._unique("measure", project_id=project_id, name=name)
        return self._insert("measure", Measure, project_id=project_id, name=name, units=units)

    # versions

    async def get_version(self, version_id: int) -> Optional[Version]:
        return self._get("version", version_id)

    async def get_version_by_hash(self, branch_id: int, hash: str) -> Optional[Version]:
        return self._first("version", lambda v: v.branch_id == branch_id and v.hash == hash)

    async def max_version_number(self, branch_id: int) -> int:
        numbers = [v.number for v in self._all("version") if v.branch_id == branch_id]
        return max(numbers, default=0)

    async def insert_version(self, branch_id: int, number: int, hash: Optional[str]) -> Version:
        self._require("branch", branch_id)
        self._unique("version", branch_id=branch_id, number=number)
        if hash is not None:
            self._unique("version", branch_id=branch_id, hash=hash)
        return self._insert("version", Version, branch_id=branch_id, number=number, hash=hash)

    # reports and metrics

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
    ) -> Report:
        self._require("version", version_id)
        self._require("testbed", testbed_id)
        return self._insert(
            "report",
            Report,
            project_id=project_id,
            version_id=version_id,
            testbed_id=testbed_id,
            adapter=adapter,
            start_time=start_time,
            end_time=end_time,
            user=user,
        )

    async def get_report(self, report_id: int) -> Optional[Report]:
        return self._get("report", report_id)

    async def list_reports(self, project_id: int) -> list[Report]:
        reports = [r for r in self._all("report") if r.project_id == project_id]
        return sorted(reports, key=lambda r: (r.start_time, r.id), reverse=True)

    async def delete_report(self, report_id: int) -> None:
        metric_ids = {m.id for m in self._all("metric") if m.report_id == report_id}
        boundary_ids = {b.id for b in self._all("boundary") if b.metric_id in metric_ids}
        for alert in self._all("alert"):
            if alert.boundary_id in boundary_ids or alert.metric_id in metric_ids:
                del self._t.rows["alert"][alert.id]
        for boundary_id in boundary_ids:
            del self._t.rows["boundary"][boundary_id]
        for metric_id in metric_ids:
            del self._t.rows["metric"][metric_id]
        self._t.rows["report"].pop(report_id, None)

    async def insert_metric(
        self,
        *,
        report_id: int,
        benchmark_id: int,
        measure_id: int,
        iteration: int,
        result: MetricResult,
    ) -> Metric:
        self._require("report", report_id)
        self._require("benchmark", benchmark_id)
        self._require("measure", measure_id)
        return self._insert(
            "metric",
            Metric,
            report_id=report_id,
            benchmark_id=benchmark_id,
            measure_id=measure_id,
            iteration=iteration,
            value=result.value,
            lower_variance=result.lower_variance,
            upper_variance=result.upper_variance,
        )

    async def get_metric(self, metric_id: int) -> Optional[Metric]:
        return self._get("metric", metric_id)

    async def list_metrics(self, report_id: int) -> list[Metric]:
        return [m for m in self._all("metric") if m.report_id == report_id]

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
        samples: list[tuple[tuple[int, datetime, int], float]] = []
        for metric in self._all("metric"):
            if metric.benchmark_id != benchmark_id or metric.measure_id != measure_id:
                continue
            if metric.report_id == exclude_report_id:
                continue
            report: Report = self._t.rows["report"][metric.report_id]
            if report.testbed_id != testbed_id:
                continue
            if since is not None and report.start_time < since:
                continue
            version: Version = self._t.rows["version"][report.version_id]
            if version.branch_id != branch_id:
                continue
            samples.append(((version.number, report.start_time, metric.id), metric.value))

        samples.sort(key=lambda s: s[0])
        values = [value for _, value in samples]
        if limit is not None:
            values = values[-limit:] if limit > 0 else []
        return values

    # thresholds and statistics

    async def get_threshold(self, threshold_id: int) -> Optional[Threshold]:
        return self._get("threshold", threshold_id)

    async def find_threshold(self, branch_id: int, testbed_id: int, measure_id: int) -> Optional[Threshold]:
        return self._first(
            "threshold",
            lambda t: t.branch_id == branch_id and t.testbed_id == testbed_id and t.measure_id == measure_id,
        )

    async def list_thresholds(
        self,
        project_id: int,
        *,
        branch_id: Optional[int] = None,
        testbed_id: Optional[int] = None,
        measure_id: Optional[int] = None,
    ) -> list[Threshold]:
        return [
            t
            for t in self._all("threshold")
            if t.project_id == project_id
            and (branch_id is None or t.branch_id == branch_id)
            and (testbed_id is None or t.testbed_id == testbed_id)
            and (measure_id is None or t.measure_id == measure_id)
        ]

    async def insert_threshold(
        self, *, project_id: int, branch_id: int, testbed_id: int, measure_id: int
    ) -> Threshold:
        self._require("branch", branch_id)
        self._require("testbed", testbed_id)
        self._require("measure", measure_id)
        self._unique("threshold", branch_id=branch_id, testbed_id=testbed_id, measure_id=measure_id)
        return self._insert(
            "threshold",
            Threshold,
            project_id=project_id,
            branch_id=branch_id,
            testbed_id=testbed_id,
            measure_id=measure_id,
        )

    async def set_threshold_statistic(self, threshold_id: int, statistic_id: int) -> Threshold:
        threshold: Threshold = self._require("threshold", threshold_id)
        self._require("statistic", statistic_id)
        return self._replace(
            "threshold",
            threshold.model_copy(update={"statistic_id": statistic_id, "modified": datetime.now(UTC)}),
        )

    async def delete_threshold(self, threshold_id: int) -> None:
        self._t.rows["threshold"].pop(threshold_id, None)

    async def insert_statistic(self, threshold_id: int, config: StatisticConfig) -> Statistic:
        self._require("threshold", threshold_id)
        return self._insert("statistic", Statistic, threshold_id=threshold_id, **config.model_dump())

    async def get_statistic(self, statistic_id: int) -> Optional[Statistic]:
        return self._get("statistic", statistic_id)

    async def list_statistics(self, threshold_id: int) -> list[Statistic]:
        return sorted(
            (s for s in self._all("statistic") if s.threshold_id == threshold_id),
            key=lambda s: s.id,
        )

    # boundaries and alerts

    async def insert_boundary(
        self,
        *,
        metric_id: int,
        threshold_id: int,
        statistic_id: int,
        baseline: float,
        lower_limit: Optional[float],
        upper_limit: Optional[float],
    ) -> Boundary:
        self._require("metric", metric_id)
        self._require("statistic", statistic_id)
        return self._insert(
            "boundary",
            Boundary,
            metric_id=metric_id,
            threshold_id=threshold_id,
            statistic_id=statistic_id,
            baseline=baseline,
            lower_limit=lower_limit,
            upper_limit=upper_limit,
        )

    async def get_boundary(self, boundary_id: int) -> Optional[Boundary]:
        return self._get("boundary", boundary_id)

    async def count_boundaries(self, threshold_id: int) -> int:
        return sum(1 for b in self._all("boundary") if b.threshold_id == threshold_id)

    async def delete_boundaries(self, threshold_id: int) -> None:
        boundary_ids = {b.id for b in self._all("boundary") if b.threshold_id == threshold_id}
        for alert in self._all("alert"):
            if alert.boundary_id in boundary_ids:
                del self._t.rows["alert"][alert.id]
        for boundary_id in boundary_ids:
            del self._t.rows["boundary"][boundary_id]

    async def insert_alert(self, *, boundary_id: int, metric_id: int, side: BoundarySide) -> Alert:
        self._require("boundary", boundary_id)
        self._unique("alert", boundary_id=boundary_id)
        return self._insert("alert", Alert, boundary_id=boundary_id, metric_id=metric_id, side=side)

    async def get_alert(self, alert_id: int) -> Optional[Alert]:
        return self._get("alert", alert_id)

    async def list_alerts(self, project_id: int, status: Optional[AlertStatus] = None) -> list[Alert]:
        alerts = []
        for alert in self._all("alert"):
            metric: Metric = self._t.rows["metric"][alert.metric_id]
            report: Report = self._t.rows["report"][metric.report_id]
            if report.project_id != project_id:
                continue
            if status is not None and alert.status != status:
                continue
            alerts.append(alert)
        return sorted(alerts, key=lambda a: (a.created, a.id), reverse=True)

    async def set_alert_status(self, alert_id: int, status: AlertStatus) -> Alert:
        alert: Alert = self._require("alert", alert_id)
        return self._replace(
            "alert", alert.model_copy(update={"status": status, "modified": datetime.now(UTC)})
        )


class MemoryStore(Store):
    """Embedded store with single-writer semantics."""

    def __init__(self) -> None:
        self._tables = _Tables()
        self._writer_lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[MemoryTransaction]:
        async with self._writer_lock:
            working = self._tables.copy()
            yield MemoryTransaction(working)
            # Only reached when the body did not raise.
            self._tables = working

    async def close(self) -> None:
        logger.info("Memory store closed")
