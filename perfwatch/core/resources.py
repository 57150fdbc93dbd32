"""
Named project resources.

Lookups used by ingestion and threshold configuration (branches and testbeds
must already exist) plus the get-or-insert helpers for benchmarks and
measures, and a small service to create the resources themselves.
"""

from __future__ import annotations

import logging
from typing import Optional

from perfwatch.core.errors import AlreadyExists, NotFound
from perfwatch.models import Benchmark, Branch, Measure, Project, Testbed
from perfwatch.models.metrics import MEASURE_UNITS
from perfwatch.storage.base import Store, StoreTransaction

logger = logging.getLogger(__name__)


async def get_project(tx: StoreTransaction, name: str) -> Project:
    project = await tx.get_project_by_name(name)
    if project is None:
        raise NotFound("project", name)
    return project


async def get_branch(tx: StoreTransaction, project: Project, name: str) -> Branch:
    branch = await tx.get_branch_by_name(project.id, name)
    if branch is None:
        raise NotFound("branch", f"{project.name}/{name}")
    return branch


async def get_testbed(tx: StoreTransaction, project: Project, name: str) -> Testbed:
    testbed = await tx.get_testbed_by_name(project.id, name)
    if testbed is None:
        raise NotFound("testbed", f"{project.name}/{name}")
    return testbed


async def ensure_benchmark(tx: StoreTransaction, project_id: int, name: str) -> Benchmark:
    benchmark = await tx.get_benchmark_by_name(project_id, name)
    if benchmark is None:
        benchmark = await tx.insert_benchmark(project_id, name)
        logger.debug(f"Created benchmark {name!r} (id={benchmark.id})")
    return benchmark


async def ensure_measure(
    tx: StoreTransaction, project_id: int, name: str, units: Optional[str] = None
) -> Measure:
    measure = await tx.get_measure_by_name(project_id, name)
    if measure is None:
        units = units if units is not None else MEASURE_UNITS.get(name, "")
        measure = await tx.insert_measure(project_id, name, units)
        logger.debug(f"Created measure {name!r} ({units})")
    return measure


class ResourceService:
    """Creates projects, branches and testbeds."""

    def __init__(self, store: Store):
        self.store = store

    async def create_project(self, name: str) -> Project:
        async with self.store.transaction() as tx:
            if await tx.get_project_by_name(name) is not None:
                raise AlreadyExists("project", name)
            project = await tx.insert_project(name)
        logger.info(f"Created project {name!r}")
        return project

    async def ensure_project(self, name: str) -> Project:
        async with self.store.transaction() as tx:
            project = await tx.get_project_by_name(name)
            if project is None:
                project = await tx.insert_project(name)
        return project

    async def create_branch(self, project: str, name: str) -> Branch:
        async with self.store.transaction() as tx:
            proj = await get_project(tx, project)
            if await tx.get_branch_by_name(proj.id, name) is not None:
                raise AlreadyExists("branch", f"{project}/{name}")
            branch = await tx.insert_branch(proj.id, name)
        logger.info(f"Created branch {project}/{name}")
        return branch

    async def create_testbed(self, project: str, name: str, **descriptors: Optional[str]) -> Testbed:
        async with self.store.transaction() as tx:
            proj = await get_project(tx, project)
            if await tx.get_testbed_by_name(proj.id, name) is not None:
                raise AlreadyExists("testbed", f"{project}/{name}")
            testbed = await tx.insert_testbed(proj.id, name, **descriptors)
        logger.info(f"Created testbed {project}/{name}")
        return testbed
