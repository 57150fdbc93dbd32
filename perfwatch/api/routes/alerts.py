"""
API routes for alerts.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from perfwatch.api.dependencies import get_alert_service
from perfwatch.api.error_handling import http_exception
from perfwatch.core.alerts import AlertService
from perfwatch.models import Alert, AlertDetail, AlertStatus

router = APIRouter()


class AlertUpdate(BaseModel):
    status: AlertStatus


@router.get("", response_model=List[Alert])
async def list_alerts(
    project: str,
    status: Optional[AlertStatus] = Query(None),
    service: AlertService = Depends(get_alert_service),
):
    try:
        return await service.list(project, status)
    except Exception as e:
        raise http_exception("list alerts", e)


@router.get("/{alert_id}", response_model=AlertDetail)
async def get_alert(project: str, alert_id: int, service: AlertService = Depends(get_alert_service)):
    """Alert with its boundary, the statistic that produced it and the metric value."""
    try:
        return await service.get(alert_id)
    except Exception as e:
        raise http_exception("get alert", e)


@router.patch("/{alert_id}", response_model=Alert)
async def update_alert(
    project: str,
    alert_id: int,
    body: AlertUpdate,
    service: AlertService = Depends(get_alert_service),
):
    try:
        return await service.update_status(alert_id, body.status)
    except Exception as e:
        raise http_exception("update alert", e)
