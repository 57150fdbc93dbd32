"""
Project Resource Models

Projects and the named resources that live inside them: branches and their
versions, testbeds, benchmarks and measures. All records are immutable.
"""

from datetime import UTC, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(UTC)


class Record(BaseModel):
    """Base for persisted, immutable rows."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Storage-assigned identifier")


class Project(Record):
    name: str = Field(..., description="Project name (unique)")
    created: datetime = Field(default_factory=_now)


class Branch(Record):
    """A named line of history within a project."""

    project_id: int
    name: str
    created: datetime = Field(default_factory=_now)


class Version(Record):
    """
    A numbered point on a branch.

    `number` strictly increases with insertion order within a branch and
    `hash`, when present, is unique per branch.
    """

    branch_id: int
    number: int = Field(..., ge=1)
    hash: Optional[str] = Field(None, description="Source-control hash")
    created: datetime = Field(default_factory=_now)


class Testbed(Record):
    """A named execution environment."""

    project_id: int
    name: str
    os_name: Optional[str] = None
    os_version: Optional[str] = None
    runtime_name: Optional[str] = None
    runtime_version: Optional[str] = None
    cpu: Optional[str] = None
    ram: Optional[str] = None
    disk: Optional[str] = None
    created: datetime = Field(default_factory=_now)


class Benchmark(Record):
    project_id: int
    name: str
    created: datetime = Field(default_factory=_now)


class Measure(Record):
    """A kind of quantity (latency, throughput, ...) and its unit."""

    project_id: int
    name: str
    units: str = Field("", description="Unit of measure")
    created: datetime = Field(default_factory=_now)
