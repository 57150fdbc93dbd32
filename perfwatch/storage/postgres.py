"""
Postgres store.

One pooled connection and one `conn.transaction()` per unit of work. asyncpg
errors raised anywhere inside the unit of work roll it back and surface as
StorageFailure with the original exception chained.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Optional, TypeVar

import asyncpg

from perfwatch.connectors.postgres_pool import PostgresConnectionPool
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

SCHEMA_FILE = Path(__file__).parent / "schema.sql"

_TESTBED_DESCRIPTORS = (
    "os_name",
    "os_version",
    "runtime_name",
    "runtime_version",
    "cpu",
    "ram",
    "disk",
)


def _row(model: type[R], record: Optional[asyncpg.Record]) -> Optional[R]:
    if record is None:
        return None
    data: dict[str, Any] = dict(record)
    if "username" in data:
        data["user"] = data.pop("username")
    return model(**data)


def _rows(model: type[R], records: list[asyncpg.Record]) -> list[R]:
    return [_row(model, r) for r in records]  # type: ignore[misc]


class PostgresTransaction(StoreTransaction):
    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def _one(self, model: type[R], query: str, *args: Any) -> Optional[R]:
        return _row(model, await self._conn.fetchrow(query, *args))

    async def _insert(self, model: type[R], query: str, *args: Any) -> R:
        row = _row(model, await self._conn.fetchrow(query, *args))
        assert row is not None
        return row

    async def _many(self, model: type[R], query: str, *args: Any) -> list[R]:
        return _rows(model, await self._conn.fetch(query, *args))

    # projects and named resources

    async def get_project_by_name(self, name: str) -> Optional[Project]:
        return await self._one(Project, "SELECT * FROM project WHERE name = $1", name)

    async def insert_project(self, name: str) -> Project:
        return await self._insert(Project, "INSERT INTO project (name) VALUES ($1) RETURNING *", name)

    async def get_branch(self, branch_id: int) -> Optional[Branch]:
        return await self._one(Branch, "SELECT * FROM branch WHERE id = $1", branch_id)

    async def get_branch_by_name(self, project_id: int, name: str) -> Optional[Branch]:
        return await self._one(
            Branch, "SELECT * FROM branch WHERE project_id = $1 AND name = $2", project_id, name
        )

    async def insert_branch(self, project_id: int, name: str) -> Branch:
        return await self._insert(
            Branch,
            "INSERT INTO branch (project_id, name) VALUES ($1, $2) RETURNING *",
            project_id,
            name,
        )

    async def get_testbed(self, testbed_id: int) -> Optional[Testbed]:
        return await self._one(Testbed, "SELECT * FROM testbed WHERE id = $1", testbed_id)

    async def get_testbed_by_name(self, project_id: int, name: str) -> Optional[Testbed]:
        return await self._one(
            Testbed, "SELECT * FROM testbed WHERE project_id = $1 AND name = $2", project_id, name
        )

    async def insert_testbed(self, project_id: int, name: str, **descriptors: Optional[str]) -> Testbed:
        values = [descriptors.get(col) for col in _TESTBED_DESCRIPTORS]
        cols = ", ".join(_TESTBED_DESCRIPTORS)
        placeholders = ", ".join(f"${i}" for i in range(3, 3 + len(values)))
        return await self._insert(
            Testbed,
            f"INSERT INTO testbed (project_id, name, {cols}) "
            f"VALUES ($1, $2, {placeholders}) RETURNING *",
            project_id,
            name,
            *values,
        )

    async def get_benchmark(self, benchmark_id: int) -> Optional[Benchmark]:
        return await self._one(Benchmark, "SELECT * FROM benchmark WHERE id = $1", benchmark_id)

    async def get_benchmark_by_name(self, project_id: int, name: str) -> Optional[Benchmark]:
        return await self._one(
            Benchmark, "SELECT * FROM benchmark WHERE project_id = $1 AND name = $2", project_id, name
        )

    async def insert_benchmark(self, project_id: int, name: str) -> Benchmark:
        return await self._insert(
            Benchmark,
            "INSERT INTO benchmark (project_id, name) VALUES ($1, $2) RETURNING *",
            project_id,
            name,
        )

    async def get_measure(self, measure_id: int) -> Optional[Measure]:
        return await self._one(Measure, "SELECT * FROM measure WHERE id = $1", measure_id)

    async def get_measure_by_name(self, project_id: int, name: str) -> Optional[Measure]:
        return await self._one(
            Measure, "SELECT * FROM measure WHERE project_id = $1 AND name = $2", project_id, name
        )

    async def insert_measure(self, project_id: int, name: str, units: str) -> Measure:
        return await self._insert(
            Measure,
            "INSERT INTO measure (project_id, name, units) VALUES ($1, $2, $3) RETURNING *",
            project_id,
            name,
            units,
        )

    # versions

    async def get_version(self, version_id: int) -> Optional[Version]:
        return await self._one(Version, "SELECT * FROM version WHERE id = $1", version_id)

    async def get_version_by_hash(self, branch_id: int, hash: str) -> Optional[Version]:
        return await self._one(
            Version, "SELECT * FROM version WHERE branch_id = $1 AND hash = $2", branch_id, hash
        )

    async def max_version_number(self, branch_id: int) -> int:
        value = await self._conn.fetchval(
            "SELECT COALESCE(MAX(number), 0) FROM version WHERE branch_id = $1", branch_id
        )
        return int(value)

    async def insert_version(self, branch_id: int, number: int, hash: Optional[str]) -> Version:
        return await self._insert(
            Version,
            "INSERT INTO version (branch_id, number, hash) VALUES ($1, $2, $3) RETURNING *",
            branch_id,
            number,
            hash,
        )

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
        return await self._insert(
            Report,
            """
            INSERT INTO report (project_id, version_id, testbed_id, adapter, start_time, end_time, username)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
            """,
            project_id,
            version_id,
            testbed_id,
            AdapterKind(adapter).value,
            start_time,
            end_time,
            user,
        )

    async def get_report(self, report_id: int) -> Optional[Report]:
        return await self._one(Report, "SELECT * FROM report WHERE id = $1", report_id)

    async def list_reports(self, project_id: int) -> list[Report]:
        return await self._many(
            Report,
            "SELECT * FROM report WHERE project_id = $1 ORDER BY start_time DESC, id DESC",
            project_id,
        )

    async def delete_report(self, report_id: int) -> None:
        # metric, boundary and alert rows cascade
        await self._conn.execute("DELETE FROM report WHERE id = $1", report_id)

    async def insert_metric(
        self,
        *,
        report_id: int,
        benchmark_id: int,
        measure_id: int,
        iteration: int,
        result: MetricResult,
    ) -> Metric:
        return await self._insert(
            Metric,
            """
            INSERT INTO metric (report_id, benchmark_id, measure_id, iteration, value, lower_variance, upper_variance)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
            """,
            report_id,
            benchmark_id,
            measure_id,
            iteration,
            result.value,
            result.lower_variance,
            result.upper_variance,
        )

    async def get_metric(self, metric_id: int) -> Optional[Metric]:
        return await self._one(Metric, "SELECT * FROM metric WHERE id = $1", metric_id)

    async def list_metrics(self, report_id: int) -> list[Metric]:
        return await self._many(
            Metric, "SELECT * FROM metric WHERE report_id = $1 ORDER BY id", report_id
        )

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
        # Newest first so LIMIT keeps the most recent samples, then reversed.
        rows = await self._conn.fetch(
            """
            SELECT m.value
            FROM metric m
            JOIN report r ON r.id = m.report_id
            JOIN version v ON v.id = r.version_id
            WHERE v.branch_id = $1
              AND r.testbed_id = $2
              AND m.benchmark_id = $3
              AND m.measure_id = $4
              AND ($5::INTEGER IS NULL OR r.id <> $5)
              AND ($6::TIMESTAMPTZ IS NULL OR r.start_time >= $6)
            ORDER BY v.number DESC, r.start_time DESC, m.id DESC
            LIMIT $7
            """,
            branch_id,
            testbed_id,
            benchmark_id,
            measure_id,
            exclude_report_id,
            since,
            limit,
        )
        return [float(r["value"]) for r in reversed(rows)]

    # thresholds and statistics

    async def get_threshold(self, threshold_id: int) -> Optional[Threshold]:
        return await self._one(Threshold, "SELECT * FROM threshold WHERE id = $1", threshold_id)

    async def find_threshold(self, branch_id: int, testbed_id: int, measure_id: int) -> Optional[Threshold]:
        return await self._one(
            Threshold,
            "SELECT * FROM threshold WHERE branch_id = $1 AND testbed_id = $2 AND measure_id = $3",
            branch_id,
            testbed_id,
            measure_id,
        )

    async def list_thresholds(
        self,
        project_id: int,
        *,
        branch_id: Optional[int] = None,
        testbed_id: Optional[int] = None,
        measure_id: Optional[int] = None,
    ) -> list[Threshold]:
        return await self._many(
            Threshold,
            """
            SELECT * FROM threshold
            WHERE project_id = $1
              AND ($2::INTEGER IS NULL OR branch_id = $2)
              AND ($3::INTEGER IS NULL OR testbed_id = $3)
              AND ($4::INTEGER IS NULL OR measure_id = $4)
            ORDER BY created, id
            """,
            project_id,
            branch_id,
            testbed_id,
            measure_id,
        )

    async def insert_threshold(
        self, *, project_id: int, branch_id: int, testbed_id: int, measure_id: int
    ) -> Threshold:
        return await self._insert(
            Threshold,
            """
            INSERT INTO threshold (project_id, branch_id, testbed_id, measure_id)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            project_id,
            branch_id,
            testbed_id,
            measure_id,
        )

    async def set_threshold_statistic(self, threshold_id: int, statistic_id: int) -> Threshold:
        threshold = await self._one(
            Threshold,
            "UPDATE threshold SET statistic_id = $2, modified = now() WHERE id = $1 RETURNING *",
            threshold_id,
            statistic_id,
        )
        if threshold is None:
            raise StorageFailure(f"threshold {threshold_id} does not exist")
        return threshold

    async def delete_threshold(self, threshold_id: int) -> None:
        await self._conn.execute("DELETE FROM threshold WHERE id = $1", threshold_id)

    async def insert_statistic(self, threshold_id: int, config: StatisticConfig) -> Statistic:
        return await self._insert(
            Statistic,
            """
            INSERT INTO statistic (
                threshold_id, test, min_sample_size, max_sample_size, "window",
                lower_enabled, upper_enabled, confidence, percentage, iqr_multiplier
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            RETURNING *
            """,
            threshold_id,
            config.test.value,
            config.min_sample_size,
            config.max_sample_size,
            config.window,
            config.lower_enabled,
            config.upper_enabled,
            config.confidence,
            config.percentage,
            config.iqr_multiplier,
        )

    async def get_statistic(self, statistic_id: int) -> Optional[Statistic]:
        return await self._one(Statistic, "SELECT * FROM statistic WHERE id = $1", statistic_id)

    async def list_statistics(self, threshold_id: int) -> list[Statistic]:
        return await self._many(
            Statistic, "SELECT * FROM statistic WHERE threshold_id = $1 ORDER BY id", threshold_id
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
        return await self._insert(
            Boundary,
            """
            INSERT INTO boundary (metric_id, threshold_id, statistic_id, baseline, lower_limit, upper_limit)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
            """,
            metric_id,
            threshold_id,
            statistic_id,
            baseline,
            lower_limit,
            upper_limit,
        )

    async def get_boundary(self, boundary_id: int) -> Optional[Boundary]:
        return await self._one(Boundary, "SELECT * FROM boundary WHERE id = $1", boundary_id)

    async def count_boundaries(self, threshold_id: int) -> int:
        value = await self._conn.fetchval(
            "SELECT COUNT(*) FROM boundary WHERE threshold_id = $1", threshold_id
        )
        return int(value)

    async def delete_boundaries(self, threshold_id: int) -> None:
        # alert rows cascade
        await self._conn.execute("DELETE FROM boundary WHERE threshold_id = $1", threshold_id)

    async def insert_alert(self, *, boundary_id: int, metric_id: int, side: BoundarySide) -> Alert:
        return await self._insert(
            Alert,
            "INSERT INTO alert (boundary_id, metric_id, side) VALUES ($1, $2, $3) RETURNING *",
            boundary_id,
            metric_id,
            BoundarySide(side).value,
        )

    async def get_alert(self, alert_id: int) -> Optional[Alert]:
        return await self._one(Alert, "SELECT * FROM alert WHERE id = $1", alert_id)

    async def list_alerts(self, project_id: int, status: Optional[AlertStatus] = None) -> list[Alert]:
        return await self._many(
            Alert,
            """
            SELECT a.* FROM alert a
            JOIN metric m ON m.id = a.metric_id
            JOIN report r ON r.id = m.report_id
            WHERE r.project_id = $1
              AND ($2::TEXT IS NULL OR a.status = $2)
            ORDER BY a.created DESC, a.id DESC
            """,
            project_id,
            AlertStatus(status).value if status is not None else None,
        )

    async def set_alert_status(self, alert_id: int, status: AlertStatus) -> Alert:
        alert = await self._one(
            Alert,
            "UPDATE alert SET status = $2, modified = now() WHERE id = $1 RETURNING *",
            alert_id,
            AlertStatus(status).value,
        )
        if alert is None:
            raise StorageFailure(f"alert {alert_id} does not exist")
        return alert


class PostgresStore(Store):
    def __init__(self, pool: PostgresConnectionPool):
        self.pool = pool

    async def initialize(self) -> None:
        await self.pool.initialize()

    async def create_schema(self) -> None:
        await self.pool.execute(SCHEMA_FILE.read_text())

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresTransaction]:
        try:
            async with self.pool.get_connection() as conn:
                # Serializable so concurrent history reads and inserts cannot interleave.
                async with conn.transaction(isolation="serializable"):
                    yield PostgresTransaction(conn)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Postgres transaction rolled back: {e}")
            raise StorageFailure(str(e)) from e

    async def close(self) -> None:
        await self.pool.close()

    async def is_healthy(self) -> bool:
        return await self.pool.is_healthy()
