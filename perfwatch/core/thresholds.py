"""
Threshold / Statistic versioning.

A Threshold points at its active Statistic. Statistics are never updated in
place: every configuration change inserts a new Statistic and repoints the
Threshold, so boundaries computed under an older configuration stay
explainable.
"""

from __future__ import annotations

import logging
from typing import Optional

from perfwatch.config import settings
from perfwatch.core.errors import InvalidStatisticConfig, NotFound, ThresholdInUse
from perfwatch.core.locks import KeyedLock, project_locks
from perfwatch.core.resources import ensure_measure, get_branch, get_project, get_testbed
from perfwatch.models import (
    Statistic,
    StatisticConfig,
    StatisticKind,
    Threshold,
    ThresholdInput,
)
from perfwatch.storage.base import Store, StoreTransaction

logger = logging.getLogger(__name__)


def validate_statistic(config: StatisticConfig) -> StatisticConfig:
    """
    Validate a statistic configuration and fill in defaulted parameters.

    Raises:
        InvalidStatisticConfig: on any out-of-range or inconsistent setting.
    """
    test = StatisticKind(config.test)

    if config.min_sample_size < 1:
        raise InvalidStatisticConfig("min_sample_size must be at least 1")
    if test == StatisticKind.T_TEST and config.min_sample_size < 2:
        raise InvalidStatisticConfig("t_test needs min_sample_size of at least 2")
    if config.max_sample_size is not None and config.max_sample_size < config.min_sample_size:
        raise InvalidStatisticConfig(
            f"max_sample_size ({config.max_sample_size}) must be >= "
            f"min_sample_size ({config.min_sample_size})"
        )
    if config.window is not None and config.window <= 0:
        raise InvalidStatisticConfig("window must be a positive number of seconds")
    if not (config.lower_enabled or config.upper_enabled):
        raise InvalidStatisticConfig("at least one of lower_enabled / upper_enabled is required")

    updates: dict[str, object] = {}

    if test in (StatisticKind.Z_SCORE, StatisticKind.T_TEST):
        confidence = config.confidence if config.confidence is not None else settings.DEFAULT_CONFIDENCE
        if not 0.5 < confidence < 1.0:
            raise InvalidStatisticConfig(f"confidence must be in (0.5, 1), got {confidence}")
        updates["confidence"] = confidence
    elif config.confidence is not None:
        raise InvalidStatisticConfig(f"confidence does not apply to {test.value}")

    if test == StatisticKind.PERCENTAGE:
        if config.percentage is None:
            raise InvalidStatisticConfig("percentage test requires a percentage")
        if config.percentage <= 0:
            raise InvalidStatisticConfig("percentage must be positive")
        if config.lower_enabled and config.percentage > 1:
            raise InvalidStatisticConfig("percentage must be <= 1 when the lower side is enabled")
    elif config.percentage is not None:
        raise InvalidStatisticConfig(f"percentage does not apply to {test.value}")

    if test == StatisticKind.IQR:
        multiplier = (
            config.iqr_multiplier
            if config.iqr_multiplier is not None
            else settings.DEFAULT_IQR_MULTIPLIER
        )
        if multiplier <= 0:
            raise InvalidStatisticConfig("iqr_multiplier must be positive")
        updates["iqr_multiplier"] = multiplier
    elif config.iqr_multiplier is not None:
        raise InvalidStatisticConfig(f"iqr_multiplier does not apply to {test.value}")

    return config.model_copy(update=updates) if updates else config


async def active_statistic(tx: StoreTransaction, threshold: Threshold) -> Statistic:
    if threshold.statistic_id is None:
        raise NotFound("statistic", f"threshold {threshold.id}")
    statistic = await tx.get_statistic(threshold.statistic_id)
    if statistic is None:
        raise NotFound("statistic", threshold.statistic_id)
    return statistic


class ThresholdService:
    """Create, replace, inspect and delete thresholds."""

    def __init__(self, store: Store, locks: KeyedLock = project_locks):
        self.store = store
        self.locks = locks

    async def create_or_replace(self, request: ThresholdInput) -> Threshold:
        """
        Attach a new statistic to the (branch, testbed, measure) identity.

        The configuration is validated before anything is written. An existing
        threshold is repointed to the new statistic; otherwise one is created.
        """
        config = validate_statistic(request.statistic)

        async with self.locks.hold(request.project):
            async with self.store.transaction() as tx:
                project = await get_project(tx, request.project)
                branch = await get_branch(tx, project, request.branch)
                testbed = await get_testbed(tx, project, request.testbed)
                measure = await ensure_measure(tx, project.id, request.measure)

                threshold = await tx.find_threshold(branch.id, testbed.id, measure.id)
                created = threshold is None
                if threshold is None:
                    threshold = await tx.insert_threshold(
                        project_id=project.id,
                        branch_id=branch.id,
                        testbed_id=testbed.id,
                        measure_id=measure.id,
                    )

                statistic = await tx.insert_statistic(threshold.id, config)
                threshold = await tx.set_threshold_statistic(threshold.id, statistic.id)

        logger.info(
            f"{'Created' if created else 'Replaced'} threshold {threshold.id} "
            f"({request.branch}/{request.testbed}/{request.measure}) "
            f"-> statistic {statistic.id} [{config.test.value}]"
        )
        return threshold

    async def get(self, threshold_id: int) -> Threshold:
        async with self.store.transaction() as tx:
            threshold = await tx.get_threshold(threshold_id)
        if threshold is None:
            raise NotFound("threshold", threshold_id)
        return threshold

    async def get_statistic(self, threshold_id: int) -> Statistic:
        """The threshold's currently active statistic."""
        async with self.store.transaction() as tx:
            threshold = await tx.get_threshold(threshold_id)
            if threshold is None:
                raise NotFound("threshold", threshold_id)
            return await active_statistic(tx, threshold)

    async def list(
        self,
        project: str,
        *,
        branch: Optional[str] = None,
        testbed: Optional[str] = None,
        measure: Optional[str] = None,
    ) -> list[Threshold]:
        async with self.store.transaction() as tx:
            proj = await get_project(tx, project)
            branch_id = (await get_branch(tx, proj, branch)).id if branch else None
            testbed_id = (await get_testbed(tx, proj, testbed)).id if testbed else None
            measure_id = None
            if measure:
                found = await tx.get_measure_by_name(proj.id, measure)
                if found is None:
                    return []
                measure_id = found.id
            return await tx.list_thresholds(
                proj.id, branch_id=branch_id, testbed_id=testbed_id, measure_id=measure_id
            )

    async def statistics(self, threshold_id: int) -> list[Statistic]:
        """Every statistic the threshold has pointed at, oldest first."""
        async with self.store.transaction() as tx:
            if await tx.get_threshold(threshold_id) is None:
                raise NotFound("threshold", threshold_id)
            return await tx.list_statistics(threshold_id)

    async def delete(self, threshold_id: int, *, cascade: bool = False) -> None:
        """
        Delete a threshold.

        Boundaries (and their alerts) computed under the threshold block the
        delete unless `cascade` is set. Statistics are always kept.
        """
        async with self.store.transaction() as tx:
            if await tx.get_threshold(threshold_id) is None:
                raise NotFound("threshold", threshold_id)

            in_use = await tx.count_boundaries(threshold_id)
            if in_use and not cascade:
                raise ThresholdInUse(
                    f"threshold {threshold_id} is referenced by {in_use} boundaries; "
                    "delete with cascade to remove them"
                )
            if in_use:
                await tx.delete_boundaries(threshold_id)
            await tx.delete_threshold(threshold_id)

        logger.info(f"Deleted threshold {threshold_id} (cascade={cascade}, boundaries={in_use})")
