"""
API routes for benchmark report ingestion.
"""

from typing import List

from fastapi import APIRouter, Depends, Response, status

from perfwatch.api.dependencies import get_ingestor
from perfwatch.api.error_handling import http_exception
from perfwatch.core.ingestor import MetricsIngestor
from perfwatch.models import IngestResult, Metric, Report, ReportInput, ReportSubmission

router = APIRouter()


@router.post("", response_model=IngestResult, status_code=status.HTTP_201_CREATED)
async def create_report(
    project: str,
    body: ReportSubmission,
    ingestor: MetricsIngestor = Depends(get_ingestor),
):
    """
    Ingest a benchmark report.

    The body carries either adapted `benchmarks` or raw harness output in
    `results` (one string per iteration) to be parsed with `adapter`.
    The response lists every metric with its boundary and any alert raised.
    """
    try:
        request = ReportInput(project=project, **body.model_dump())
        return await ingestor.ingest(request)
    except Exception as e:
        raise http_exception("ingest report", e)


@router.get("", response_model=List[Report])
async def list_reports(project: str, ingestor: MetricsIngestor = Depends(get_ingestor)):
    try:
        return await ingestor.list_reports(project)
    except Exception as e:
        raise http_exception("list reports", e)


@router.get("/{report_id}", response_model=Report)
async def get_report(project: str, report_id: int, ingestor: MetricsIngestor = Depends(get_ingestor)):
    try:
        return await ingestor.get_report(report_id)
    except Exception as e:
        raise http_exception("get report", e)


@router.get("/{report_id}/metrics", response_model=List[Metric])
async def list_report_metrics(
    project: str, report_id: int, ingestor: MetricsIngestor = Depends(get_ingestor)
):
    try:
        return await ingestor.list_metrics(report_id)
    except Exception as e:
        raise http_exception("list report metrics", e)


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(project: str, report_id: int, ingestor: MetricsIngestor = Depends(get_ingestor)):
    try:
        await ingestor.delete_report(report_id)
    except Exception as e:
        raise http_exception("delete report", e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
