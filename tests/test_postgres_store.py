"""
E2E tests for the Postgres store.

Requires a reachable Postgres configured through POSTGRES_* settings.
Run with: E2E_TEST=1 uv run pytest tests/test_postgres_store.py
"""

from __future__ import annotations

import uuid
from datetime import timedelta

import pytest
import pytest_asyncio

from perfwatch.config import settings
from perfwatch.connectors.postgres_pool import PostgresConnectionPool
from perfwatch.core.alerts import AlertService
from perfwatch.core.errors import NotFound
from perfwatch.core.ingestor import MetricsIngestor
from perfwatch.core.resources import ResourceService
from perfwatch.core.thresholds import ThresholdService
from perfwatch.models import (
    BenchmarkInput,
    MetricResult,
    ReportInput,
    StatisticConfig,
    StatisticKind,
    ThresholdInput,
)
from perfwatch.setup_schema import split_sql_statements
from perfwatch.storage.postgres import PostgresStore

from tests.conftest import T0


@pytest_asyncio.fixture
async def pg_store():
    pool = PostgresConnectionPool(
        host=settings.POSTGRES_HOST,
        port=settings.POSTGRES_PORT,
        database=settings.POSTGRES_DATABASE,
        user=settings.POSTGRES_USER,
        password=settings.POSTGRES_PASSWORD,
        min_size=1,
        max_size=2,
        pool_name="e2e",
    )
    store = PostgresStore(pool)
    await store.initialize()
    await store.create_schema()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def pg_project(pg_store: PostgresStore) -> str:
    name = f"e2e-{uuid.uuid4().hex[:8]}"
    resources = ResourceService(pg_store)
    await resources.create_project(name)
    await resources.create_branch(name, "main")
    await resources.create_testbed(name, "ci")
    return name


def _report(project: str, value: float, hour: int) -> ReportInput:
    start = T0 + timedelta(hours=hour)
    return ReportInput(
        project=project,
        branch="main",
        testbed="ci",
        start_time=start,
        end_time=start + timedelta(minutes=1),
        benchmarks=[BenchmarkInput(name="bench", measures={"latency": MetricResult(value=value)})],
    )


def test_schema_statements_are_split() -> None:
    sql = "-- comment\nCREATE TABLE a (\n  id int\n);\n\nCREATE INDEX b ON a (id);\n"
    assert split_sql_statements(sql) == ["CREATE TABLE a (\n  id int\n);", "CREATE INDEX b ON a (id);"]


@pytest.mark.e2e
@pytest.mark.asyncio
async def test_ingest_and_alert(pg_store: PostgresStore, pg_project: str) -> None:
    thresholds = ThresholdService(pg_store)
    ingestor = MetricsIngestor(pg_store)

    threshold = await thresholds.create_or_replace(
        ThresholdInput(
            project=pg_project,
            branch="main",
            testbed="ci",
            measure="latency",
            statistic=StatisticConfig(test=StatisticKind.Z_SCORE, min_sample_size=1),
        )
    )
    await ingestor.ingest(_report(pg_project, 100.0, 1))
    outcome = await ingestor.ingest(_report(pg_project, 200.0, 2))

    assert outcome.version.number == 2
    assert outcome.results[0].boundary.threshold_id == threshold.id
    [alert] = outcome.alerts

    detail = await AlertService(pg_store).get(alert.id)
    assert detail.value == 200.0
    assert detail.statistic.id == threshold.statistic_id

    await thresholds.delete(threshold.id, cascade=True)
    with pytest.raises(NotFound):
        await thresholds.get(threshold.id)


@pytest.mark.e2e
@pytest.mark.asyncio
async def test_failed_report_is_rolled_back(pg_store: PostgresStore, pg_project: str) -> None:
    ingestor = MetricsIngestor(pg_store)
    bad = _report(pg_project, 1.0, 1).model_copy(update={"testbed": "missing"})
    with pytest.raises(NotFound):
        await ingestor.ingest(bad)
    assert await ingestor.list_reports(pg_project) == []
