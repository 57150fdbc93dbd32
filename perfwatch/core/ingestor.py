"""
Metrics Ingestor

Turns one ReportInput into a Report, its Metrics, and (where a threshold is
configured) a Boundary per metric plus an Alert for every breach.

The whole report is one storage transaction held under the project's lock:
the history read, the boundary computation and the alert write for a metric
can't interleave with another report for the same project, and a failure
anywhere leaves nothing behind.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from perfwatch.adapters import parse_output
from perfwatch.config import settings
from perfwatch.core.boundary import evaluate
from perfwatch.core.errors import NotFound
from perfwatch.core.locks import KeyedLock, project_locks
from perfwatch.core.resources import (
    ensure_benchmark,
    ensure_measure,
    get_branch,
    get_project,
    get_testbed,
)
from perfwatch.core.thresholds import active_statistic
from perfwatch.core.versions import resolve_version
from perfwatch.models import (
    AdapterKind,
    BenchmarkInput,
    IngestResult,
    Metric,
    MetricEvaluation,
    Report,
    ReportInput,
    Statistic,
    Threshold,
)
from perfwatch.storage.base import Store, StoreTransaction

logger = logging.getLogger(__name__)


class MetricsIngestor:
    """Ingests benchmark reports and evaluates them against thresholds."""

    def __init__(self, store: Store, locks: KeyedLock = project_locks):
        self.store = store
        self.locks = locks

    async def ingest(self, request: ReportInput) -> IngestResult:
        """
        Persist a report and evaluate every metric it carries.

        Raw `results` are parsed with the request's adapter (or DEFAULT_ADAPTER)
        before the lock is taken, so a malformed submission never blocks other reports.

        Raises:
            AdapterError: raw results could not be parsed.
            NotFound: the project, branch or testbed does not exist.
            StorageFailure: the store failed; nothing was written.
        """
        adapter = request.adapter if request.adapter is not None else settings.DEFAULT_ADAPTER
        iterations = self._iterations(request, adapter)

        async with self.locks.hold(request.project):
            async with self.store.transaction() as tx:
                project = await get_project(tx, request.project)
                branch = await get_branch(tx, project, request.branch)
                testbed = await get_testbed(tx, project, request.testbed)
                version = await resolve_version(tx, branch.id, request.hash)

                report = await tx.insert_report(
                    project_id=project.id,
                    version_id=version.id,
                    testbed_id=testbed.id,
                    adapter=adapter,
                    start_time=request.start_time,
                    end_time=request.end_time,
                    user=request.user,
                )

                # measure id -> (threshold, active statistic), looked up once per report
                thresholds: dict[int, Optional[tuple[Threshold, Statistic]]] = {}
                results: list[MetricEvaluation] = []

                for iteration, benchmarks in enumerate(iterations):
                    for bench in benchmarks:
                        benchmark = await ensure_benchmark(tx, project.id, bench.name)
                        for measure_name, result in bench.measures.items():
                            measure = await ensure_measure(tx, project.id, measure_name)
                            metric = await tx.insert_metric(
                                report_id=report.id,
                                benchmark_id=benchmark.id,
                                measure_id=measure.id,
                                iteration=iteration,
                                result=result,
                            )

                            if measure.id not in thresholds:
                                thresholds[measure.id] = await self._threshold_for(
                                    tx, branch.id, testbed.id, measure.id
                                )
                            evaluation = MetricEvaluation(
                                benchmark=bench.name,
                                measure=measure_name,
                                iteration=iteration,
                                metric_id=metric.id,
                                value=metric.value,
                            )
                            active = thresholds[measure.id]
                            if active is not None:
                                evaluation = await self._evaluate(
                                    tx, report, metric, evaluation, *active, branch_id=branch.id
                                )
                            results.append(evaluation)

        outcome = IngestResult(report=report, version=version, results=results)
        logger.info(
            f"Ingested report {report.id} for {request.project}/{request.branch}/{request.testbed} "
            f"(version {version.number}, {len(results)} metrics, {len(outcome.alerts)} alerts)"
        )
        for evaluation in results:
            if evaluation.alert is not None:
                boundary = evaluation.boundary
                logger.warning(
                    f"⚠️ Regression in {request.project}: {evaluation.benchmark} "
                    f"[{evaluation.measure}] = {evaluation.value:g} is "
                    f"{evaluation.alert.side.value} its limit "
                    f"(baseline {boundary.baseline:g}, "
                    f"lower {boundary.lower_limit}, upper {boundary.upper_limit})"
                )
        return outcome

    async def ingest_output(
        self,
        raw: str | list[str],
        *,
        project: str,
        branch: str,
        testbed: str,
        start_time: datetime,
        end_time: datetime,
        kind: AdapterKind | str | None = None,
        hash: Optional[str] = None,
        user: Optional[str] = None,
    ) -> IngestResult:
        """Parse raw harness output (one string per iteration) and ingest it."""
        request = ReportInput(
            project=project,
            branch=branch,
            testbed=testbed,
            adapter=AdapterKind(kind) if kind is not None else None,
            hash=hash,
            start_time=start_time,
            end_time=end_time,
            user=user,
            results=[raw] if isinstance(raw, str) else list(raw),
        )
        return await self.ingest(request)

    async def get_report(self, report_id: int) -> Report:
        async with self.store.transaction() as tx:
            report = await tx.get_report(report_id)
        if report is None:
            raise NotFound("report", report_id)
        return report

    async def list_reports(self, project: str) -> list[Report]:
        async with self.store.transaction() as tx:
            proj = await get_project(tx, project)
            return await tx.list_reports(proj.id)

    async def list_metrics(self, report_id: int) -> list[Metric]:
        async with self.store.transaction() as tx:
            if await tx.get_report(report_id) is None:
                raise NotFound("report", report_id)
            return await tx.list_metrics(report_id)

    async def delete_report(self, report_id: int) -> None:
        """Delete a report with its metrics, boundaries and alerts."""
        async with self.store.transaction() as tx:
            if await tx.get_report(report_id) is None:
                raise NotFound("report", report_id)
            await tx.delete_report(report_id)
        logger.info(f"Deleted report {report_id}")

    @staticmethod
    def _iterations(request: ReportInput, adapter: AdapterKind) -> list[list[BenchmarkInput]]:
        if request.results is None:
            return request.benchmarks
        return [
            BenchmarkInput.from_results(parse_output(raw, adapter))
            for raw in request.results
        ]

    @staticmethod
    async def _threshold_for(
        tx: StoreTransaction, branch_id: int, testbed_id: int, measure_id: int
    ) -> Optional[tuple[Threshold, Statistic]]:
        threshold = await tx.find_threshold(branch_id, testbed_id, measure_id)
        if threshold is None:
            return None
        return threshold, await active_statistic(tx, threshold)

    @staticmethod
    async def _evaluate(
        tx: StoreTransaction,
        report: Report,
        metric: Metric,
        evaluation: MetricEvaluation,
        threshold: Threshold,
        statistic: Statistic,
        *,
        branch_id: int,
    ) -> MetricEvaluation:
        since = None
        if statistic.window is not None:
            since = report.start_time - timedelta(seconds=statistic.window)

        history = await tx.query_history(
            branch_id=branch_id,
            testbed_id=report.testbed_id,
            benchmark_id=metric.benchmark_id,
            measure_id=metric.measure_id,
            exclude_report_id=report.id,
            since=since,
            limit=statistic.max_sample_size,
        )

        result = evaluate(history, metric.value, statistic)
        if result is None:
            return evaluation.model_copy(update={"threshold_id": threshold.id})

        boundary = await tx.insert_boundary(
            metric_id=metric.id,
            threshold_id=threshold.id,
            statistic_id=statistic.id,
            baseline=result.baseline,
            lower_limit=result.lower_limit,
            upper_limit=result.upper_limit,
        )
        alert = None
        if result.breached:
            alert = await tx.insert_alert(
                boundary_id=boundary.id, metric_id=metric.id, side=result.side
            )
        return evaluation.model_copy(
            update={"threshold_id": threshold.id, "boundary": boundary, "alert": alert}
        )
