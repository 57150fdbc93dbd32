"""
API routes for thresholds and their statistic history.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from perfwatch.api.dependencies import get_threshold_service
from perfwatch.api.error_handling import http_exception
from perfwatch.core.thresholds import ThresholdService
from perfwatch.models import Statistic, Threshold, ThresholdInput, ThresholdSubmission

router = APIRouter()


@router.post("", response_model=Threshold, status_code=status.HTTP_201_CREATED)
async def create_or_replace_threshold(
    project: str,
    body: ThresholdSubmission,
    service: ThresholdService = Depends(get_threshold_service),
):
    """
    Create a threshold, or replace the statistic of an existing one.

    Replacing never edits the previous statistic; boundaries computed under
    it keep pointing at it.
    """
    try:
        return await service.create_or_replace(
            ThresholdInput(project=project, **body.model_dump())
        )
    except Exception as e:
        raise http_exception("create threshold", e)


@router.get("", response_model=List[Threshold])
async def list_thresholds(
    project: str,
    branch: Optional[str] = Query(None),
    testbed: Optional[str] = Query(None),
    measure: Optional[str] = Query(None),
    service: ThresholdService = Depends(get_threshold_service),
):
    try:
        return await service.list(project, branch=branch, testbed=testbed, measure=measure)
    except Exception as e:
        raise http_exception("list thresholds", e)


@router.get("/{threshold_id}", response_model=Threshold)
async def get_threshold(
    project: str, threshold_id: int, service: ThresholdService = Depends(get_threshold_service)
):
    try:
        return await service.get(threshold_id)
    except Exception as e:
        raise http_exception("get threshold", e)


@router.get("/{threshold_id}/statistics", response_model=List[Statistic])
async def list_threshold_statistics(
    project: str, threshold_id: int, service: ThresholdService = Depends(get_threshold_service)
):
    try:
        return await service.statistics(threshold_id)
    except Exception as e:
        raise http_exception("list threshold statistics", e)


@router.delete("/{threshold_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_threshold(
    project: str,
    threshold_id: int,
    cascade: bool = Query(False, description="Also delete boundaries and alerts"),
    service: ThresholdService = Depends(get_threshold_service),
):
    try:
        await service.delete(threshold_id, cascade=cascade)
    except Exception as e:
        raise http_exception("delete threshold", e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
