from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Path, Query, Request

from src.api.schemas.common import ErrorResponse, utc_now
from src.api.schemas.metrics import AggregatedMetricsResponse, LogsResponse, MetricSample, MetricsHistoryResponse
from src.api.schemas.uptime import UptimePeriod
from src.api.services import metrics_service
from src.api.services.time_range import resolve_time_range
from src.api.state import get_state

router = APIRouter(prefix="/api/metrics", tags=["Metrics"])


@router.get(
    "/{instance_id}",
    response_model=MetricSample,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Get current metrics",
    description="Fetch the newest container stats sample for an instance.",
    operation_id="get_current_metrics",
)
def get_current_metrics(request: Request, instance_id: str = Path(..., description="Instance identifier")) -> MetricSample:
    """Return the newest metrics sample for an instance."""
    sample = metrics_service.get_current_metrics(request, instance_id)
    if not sample:
        raise HTTPException(status_code=404, detail="no metrics for instance")
    return sample


@router.get(
    "/{instance_id}/history",
    response_model=MetricsHistoryResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Get metrics history",
    description="Page through stored samples for an instance, newest first.",
    operation_id="get_metrics_history",
)
def get_metrics_history(
    request: Request,
    instance_id: str = Path(..., description="Instance identifier"),
    offset: int = Query(0, ge=0, le=100000),
    limit: int = Query(100, ge=1, le=10000),
) -> MetricsHistoryResponse:
    """Return a page of metrics samples."""
    return metrics_service.get_metrics_history(request, instance_id, offset, limit)


@router.get(
    "/{instance_id}/aggregate",
    response_model=AggregatedMetricsResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Get aggregated metrics",
    description="Average, max and min of container stats over a window.",
    operation_id="get_aggregated_metrics",
)
def get_aggregated_metrics(
    request: Request,
    instance_id: str = Path(..., description="Instance identifier"),
    period: Optional[UptimePeriod] = Query(default=None, description="Window preset (1h, 24h, 7d, 30d, 90d)."),
    start: Optional[datetime] = Query(default=None, alias="from", description="Window start (ISO-8601)."),
    end: Optional[datetime] = Query(default=None, alias="to", description="Window end (ISO-8601)."),
) -> AggregatedMetricsResponse:
    """Return aggregated metrics for an instance."""
    default_period = get_state(request.app).config.uptime_default_period
    start, end = resolve_time_range(period or default_period, start, end, utc_now())
    return metrics_service.aggregate_metrics(request, instance_id, start, end)


@router.get(
    "/{instance_id}/logs",
    response_model=LogsResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Get instance logs",
    description="Page through stored log lines for an instance, newest first.",
    operation_id="get_instance_logs",
)
def get_logs(
    request: Request,
    instance_id: str = Path(..., description="Instance identifier"),
    offset: int = Query(0, ge=0, le=100000),
    limit: int = Query(100, ge=1, le=10000),
) -> LogsResponse:
    """Return a page of log entries."""
    return metrics_service.get_logs(request, instance_id, offset, limit)
