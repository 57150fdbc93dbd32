"""
API routes for projects and their branches and testbeds.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from perfwatch.api.dependencies import get_resource_service
from perfwatch.api.error_handling import http_exception
from perfwatch.core.resources import ResourceService
from perfwatch.models import Branch, Project, Testbed

router = APIRouter()


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Project name")


class BranchCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Branch name")


class TestbedCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Testbed name")
    os_name: Optional[str] = None
    os_version: Optional[str] = None
    runtime_name: Optional[str] = None
    runtime_version: Optional[str] = None
    cpu: Optional[str] = None
    ram: Optional[str] = None
    disk: Optional[str] = None


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate, service: ResourceService = Depends(get_resource_service)
):
    try:
        return await service.create_project(body.name)
    except Exception as e:
        raise http_exception("create project", e)


@router.post("/{project}/branches", response_model=Branch, status_code=status.HTTP_201_CREATED)
async def create_branch(
    project: str,
    body: BranchCreate,
    service: ResourceService = Depends(get_resource_service),
):
    try:
        return await service.create_branch(project, body.name)
    except Exception as e:
        raise http_exception("create branch", e)


@router.post("/{project}/testbeds", response_model=Testbed, status_code=status.HTTP_201_CREATED)
async def create_testbed(
    project: str,
    body: TestbedCreate,
    service: ResourceService = Depends(get_resource_service),
):
    """
    Register a testbed. The optional descriptors (OS, runtime, hardware) are
    informational only and never used for evaluation.
    """
    try:
        descriptors = body.model_dump(exclude={"name"})
        return await service.create_testbed(project, body.name, **descriptors)
    except Exception as e:
        raise http_exception("create testbed", e)
