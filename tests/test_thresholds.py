"""
Tests for threshold / statistic versioning.

Covers:
- Statistic config validation (rejected before any write)
- Create-or-replace keeps every statistic version
- Listing, statistic history and cascading deletes
"""

from __future__ import annotations

import pytest

from perfwatch.core.errors import InvalidStatisticConfig, NotFound, ThresholdInUse
from perfwatch.core.ingestor import MetricsIngestor
from perfwatch.core.thresholds import ThresholdService, validate_statistic
from perfwatch.models import StatisticConfig, StatisticKind
from perfwatch.storage.memory import MemoryStore

from tests.conftest import PROJECT


class TestValidateStatistic:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"test": StatisticKind.Z_SCORE, "min_sample_size": 0},
            {"test": StatisticKind.T_TEST, "min_sample_size": 1},
            {"test": StatisticKind.Z_SCORE, "min_sample_size": 5, "max_sample_size": 4},
            {"test": StatisticKind.Z_SCORE, "window": 0},
            {"test": StatisticKind.Z_SCORE, "lower_enabled": False, "upper_enabled": False},
            {"test": StatisticKind.Z_SCORE, "confidence": 0.5},
            {"test": StatisticKind.T_TEST, "confidence": 1.0},
            {"test": StatisticKind.PERCENTAGE},
            {"test": StatisticKind.PERCENTAGE, "percentage": 0.0},
            {"test": StatisticKind.PERCENTAGE, "percentage": 1.5, "lower_enabled": True},
            {"test": StatisticKind.IQR, "iqr_multiplier": -1.0},
            {"test": StatisticKind.IQR, "confidence": 0.9},
            {"test": StatisticKind.Z_SCORE, "percentage": 0.1},
        ],
    )
    def test_rejects_invalid_configs(self, kwargs: dict) -> None:
        with pytest.raises(InvalidStatisticConfig):
            validate_statistic(StatisticConfig(**kwargs))

    def test_fills_defaults(self) -> None:
        z = validate_statistic(StatisticConfig(test=StatisticKind.Z_SCORE))
        assert z.confidence == 0.99
        iqr = validate_statistic(StatisticConfig(test=StatisticKind.IQR))
        assert iqr.iqr_multiplier == 1.5
        assert iqr.confidence is None

    def test_upper_only_percentage_may_exceed_one(self) -> None:
        config = validate_statistic(StatisticConfig(test=StatisticKind.PERCENTAGE, percentage=2.0))
        assert config.percentage == 2.0


class TestCreateOrReplace:
    @pytest.mark.asyncio
    async def test_create_then_replace_keeps_history(
        self, thresholds: ThresholdService, threshold_input
    ) -> None:
        created = await thresholds.create_or_replace(threshold_input())
        replaced = await thresholds.create_or_replace(
            threshold_input(StatisticKind.PERCENTAGE, percentage=0.2)
        )

        assert replaced.id == created.id
        assert replaced.statistic_id != created.statistic_id

        history = await thresholds.statistics(created.id)
        assert [s.test for s in history] == [StatisticKind.Z_SCORE, StatisticKind.PERCENTAGE]
        assert history[0].confidence == 0.99

        active = await thresholds.get_statistic(created.id)
        assert active.id == replaced.statistic_id
        assert active.percentage == 0.2

    @pytest.mark.asyncio
    async def test_invalid_config_writes_nothing(
        self, store: MemoryStore, thresholds: ThresholdService, threshold_input
    ) -> None:
        with pytest.raises(InvalidStatisticConfig):
            await thresholds.create_or_replace(threshold_input(min_sample_size=0))

        assert await thresholds.list(PROJECT) == []
        async with store.transaction() as tx:
            project = await tx.get_project_by_name(PROJECT)
            assert await tx.get_measure_by_name(project.id, "latency") is None

    @pytest.mark.asyncio
    async def test_unknown_branch(self, thresholds: ThresholdService, threshold_input) -> None:
        request = threshold_input().model_copy(update={"branch": "nope"})
        with pytest.raises(NotFound) as exc_info:
            await thresholds.create_or_replace(request)
        assert exc_info.value.resource == "branch"

    @pytest.mark.asyncio
    async def test_measure_is_created_on_demand(
        self, store: MemoryStore, thresholds: ThresholdService, threshold_input
    ) -> None:
        await thresholds.create_or_replace(threshold_input(measure="memory"))
        async with store.transaction() as tx:
            project = await tx.get_project_by_name(PROJECT)
            measure = await tx.get_measure_by_name(project.id, "memory")
        assert measure is not None
        assert measure.units == "bytes"


class TestQueries:
    @pytest.mark.asyncio
    async def test_list_filters(self, thresholds: ThresholdService, threshold_input) -> None:
        await thresholds.create_or_replace(threshold_input(measure="latency"))
        await thresholds.create_or_replace(threshold_input(measure="memory"))

        assert len(await thresholds.list(PROJECT)) == 2
        assert len(await thresholds.list(PROJECT, measure="memory")) == 1
        assert await thresholds.list(PROJECT, measure="throughput") == []

    @pytest.mark.asyncio
    async def test_get_missing(self, thresholds: ThresholdService) -> None:
        with pytest.raises(NotFound):
            await thresholds.get(42)
        with pytest.raises(NotFound):
            await thresholds.statistics(42)


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_unused(self, thresholds: ThresholdService, threshold_input) -> None:
        threshold = await thresholds.create_or_replace(threshold_input())
        await thresholds.delete(threshold.id)
        with pytest.raises(NotFound):
            await thresholds.get(threshold.id)

    @pytest.mark.asyncio
    async def test_in_use_requires_cascade(
        self,
        store: MemoryStore,
        thresholds: ThresholdService,
        ingestor: MetricsIngestor,
        threshold_input,
        make_report,
    ) -> None:
        threshold = await thresholds.create_or_replace(threshold_input(min_sample_size=1))
        await ingestor.ingest(make_report(100.0))
        outcome = await ingestor.ingest(make_report(500.0))
        assert outcome.alerts

        with pytest.raises(ThresholdInUse):
            await thresholds.delete(threshold.id)

        await thresholds.delete(threshold.id, cascade=True)

        async with store.transaction() as tx:
            project = await tx.get_project_by_name(PROJECT)
            assert await tx.count_boundaries(threshold.id) == 0
            assert await tx.list_alerts(project.id) == []
            # Statistics survive the threshold
            assert len(await tx.list_statistics(threshold.id)) == 1
