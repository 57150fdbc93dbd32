"""
Alert queries and status changes.
"""

from __future__ import annotations

import logging
from typing import Optional

from perfwatch.core.errors import NotFound
from perfwatch.core.resources import get_project
from perfwatch.models import Alert, AlertDetail, AlertStatus
from perfwatch.storage.base import Store

logger = logging.getLogger(__name__)


class AlertService:
    def __init__(self, store: Store):
        self.store = store

    async def list(self, project: str, status: Optional[AlertStatus] = None) -> list[Alert]:
        async with self.store.transaction() as tx:
            proj = await get_project(tx, project)
            return await tx.list_alerts(proj.id, status)

    async def get(self, alert_id: int) -> AlertDetail:
        """
        Return the alert with the boundary and statistic that produced it.

        The statistic is the one in force at evaluation time, which may have
        since been superseded on the threshold.
        """
        async with self.store.transaction() as tx:
            alert = await tx.get_alert(alert_id)
            if alert is None:
                raise NotFound("alert", alert_id)
            boundary = await tx.get_boundary(alert.boundary_id)
            if boundary is None:
                raise NotFound("boundary", alert.boundary_id)
            statistic = await tx.get_statistic(boundary.statistic_id)
            if statistic is None:
                raise NotFound("statistic", boundary.statistic_id)
            metric = await tx.get_metric(alert.metric_id)
            if metric is None:
                raise NotFound("metric", alert.metric_id)

        return AlertDetail(alert=alert, boundary=boundary, statistic=statistic, value=metric.value)

    async def update_status(self, alert_id: int, status: AlertStatus) -> Alert:
        async with self.store.transaction() as tx:
            if await tx.get_alert(alert_id) is None:
                raise NotFound("alert", alert_id)
            alert = await tx.set_alert_status(alert_id, AlertStatus(status))
        logger.info(f"Alert {alert_id} -> {alert.status.value}")
        return alert
