"""
FastAPI dependencies.
"""

from fastapi import Request

from perfwatch.core.alerts import AlertService
from perfwatch.core.ingestor import MetricsIngestor
from perfwatch.core.resources import ResourceService
from perfwatch.core.thresholds import ThresholdService
from perfwatch.storage.base import Store


def get_store(request: Request) -> Store:
    """The store created by the application lifespan."""
    return request.app.state.store


def get_ingestor(request: Request) -> MetricsIngestor:
    return MetricsIngestor(get_store(request))


def get_threshold_service(request: Request) -> ThresholdService:
    return ThresholdService(get_store(request))


def get_alert_service(request: Request) -> AlertService:
    return AlertService(get_store(request))


def get_resource_service(request: Request) -> ResourceService:
    return ResourceService(get_store(request))
