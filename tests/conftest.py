"""
Global pytest configuration and fixtures for PerfWatch tests.

This module provides:
- In-memory store fixtures seeded with a project, branch and testbed
- Service fixtures (ingestor, thresholds, alerts)
- FastAPI test client fixtures
- Harness output samples shared by adapter and ingestion tests

E2E tests run against a real Postgres database (see tests/test_postgres_store.py)
and are skipped unless E2E_TEST=1.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from typing import Callable, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from perfwatch.core.alerts import AlertService
from perfwatch.core.ingestor import MetricsIngestor
from perfwatch.core.locks import KeyedLock
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
from perfwatch.storage.memory import MemoryStore

PROJECT = "demo"
BRANCH = "main"
TESTBED = "ci-linux"

T0 = datetime(2026, 1, 1, tzinfo=UTC)


def is_e2e_test() -> bool:
    """Check if we're running E2E tests (vs unit tests)."""
    return os.getenv("E2E_TEST", "").lower() in ("1", "true", "yes")


# =============================================================================
# Harness output samples
# =============================================================================

RUST_BENCH_OUTPUT = """
running 5 tests
test tests::ignored ... ignored
test tests::bench_add_two ... bench:       1,246 ns/iter (+/- 14)
test tests::bench_add_three ... bench:         1.5 μs/iter (+/- 2)
test tests::bench_add_four ... bench:           3 ms/iter (+/- 1)
test tests::bench_add_five ... bench:           2 s/iter (+/- 1)

test result: ok. 0 passed; 0 failed; 1 ignored; 4 measured; 0 filtered out; finished in 0.00s
"""

GO_BENCH_OUTPUT = """goos: linux
goarch: amd64
pkg: example.com/fib
cpu: Intel(R) Core(TM) i7-8650U CPU @ 1.90GHz
BenchmarkFib10-8   	 4587074	       261.3 ns/op	      16 B/op	       1 allocs/op
BenchmarkFib20-8   	   39608	     30183 ns/op
PASS
ok  	example.com/fib	3.110s
"""

JSON_OUTPUT = """{
  "bench_a": {"latency": {"value": 88.0, "lower_variance": 1.0, "upper_variance": 2.0}},
  "bench_b": {"latency": {"value": 120.5}, "throughput": {"value": 42.0}}
}"""


# =============================================================================
# Store and service fixtures
# =============================================================================


@pytest_asyncio.fixture
async def store() -> MemoryStore:
    """Memory store seeded with the demo project, its main branch and a testbed."""
    memory = MemoryStore()
    resources = ResourceService(memory)
    await resources.create_project(PROJECT)
    await resources.create_branch(PROJECT, BRANCH)
    await resources.create_testbed(PROJECT, TESTBED, os_name="linux")
    return memory


@pytest.fixture
def locks() -> KeyedLock:
    return KeyedLock()


@pytest.fixture
def ingestor(store: MemoryStore, locks: KeyedLock) -> MetricsIngestor:
    return MetricsIngestor(store, locks)


@pytest.fixture
def thresholds(store: MemoryStore, locks: KeyedLock) -> ThresholdService:
    return ThresholdService(store, locks)


@pytest.fixture
def alerts(store: MemoryStore) -> AlertService:
    return AlertService(store)


# =============================================================================
# Request factories
# =============================================================================


@pytest.fixture
def make_report() -> Callable[..., ReportInput]:
    """
    Factory for single-benchmark latency reports.

    Each call defaults to a start time one hour after the previous one so
    history ordering follows call order.
    """
    counter = {"n": 0}

    def _make(
        value: float,
        *,
        benchmark: str = "bench_add",
        measure: str = "latency",
        hash: str | None = None,
        start_time: datetime | None = None,
        branch: str = BRANCH,
        testbed: str = TESTBED,
    ) -> ReportInput:
        counter["n"] += 1
        start = start_time or T0 + timedelta(hours=counter["n"])
        return ReportInput(
            project=PROJECT,
            branch=branch,
            testbed=testbed,
            hash=hash,
            start_time=start,
            end_time=start + timedelta(minutes=1),
            benchmarks=[
                BenchmarkInput(name=benchmark, measures={measure: MetricResult(value=value)})
            ],
        )

    return _make


@pytest.fixture
def threshold_input() -> Callable[..., ThresholdInput]:
    def _make(test: StatisticKind = StatisticKind.Z_SCORE, measure: str = "latency", **config) -> ThresholdInput:
        return ThresholdInput(
            project=PROJECT,
            branch=BRANCH,
            testbed=TESTBED,
            measure=measure,
            statistic=StatisticConfig(test=test, **config),
        )

    return _make


# =============================================================================
# FastAPI Test Client
# =============================================================================


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """FastAPI test client backed by a fresh memory store."""
    from perfwatch.main import app

    app.state.store = MemoryStore()
    with TestClient(app) as test_client:
        yield test_client
    app.state.store = None


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "e2e: mark test as end-to-end (requires a real Postgres database)",
    )


def pytest_collection_modifyitems(config, items):
    """
    Automatically skip E2E tests unless E2E_TEST=1 is set.
    """
    if is_e2e_test():
        return

    skip_e2e = pytest.mark.skip(reason="E2E tests require E2E_TEST=1")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)
