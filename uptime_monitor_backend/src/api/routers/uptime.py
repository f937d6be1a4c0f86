from __future__ import annotations

from datetime import datetime
from typing import Optional, Tuple

from fastapi import APIRouter, HTTPException, Path, Query, Request, status

from src.api.schemas.common import ErrorResponse, utc_now
from src.api.schemas.uptime import (
    InstanceStatus,
    InstanceStatusList,
    StatusEvent,
    StatusEventCreate,
    UptimePeriod,
    UptimeResult,
    UptimeSummary,
)
from src.api.services import uptime_service
from src.api.services.time_range import resolve_time_range
from src.api.state import get_state

router = APIRouter(prefix="/api/uptime", tags=["Uptime"])

_STORE_ERRORS = {503: {"model": ErrorResponse}}


def _window(
    request: Request,
    period: Optional[str],
    start: Optional[datetime],
    end: Optional[datetime],
) -> Tuple[datetime, datetime]:
    default_period = get_state(request.app).config.uptime_default_period
    return resolve_time_range(period or default_period, start, end, utc_now())


# Registered before "/{instance_id}" so "summary" and "status" are not captured as instance ids.
@router.get(
    "/summary",
    response_model=UptimeSummary,
    responses=_STORE_ERRORS,
    summary="Overall uptime summary",
    description="Aggregate uptime over every instance with events in the window.",
    operation_id="get_overall_uptime_summary",
)
def get_overall_summary(
    request: Request,
    period: Optional[UptimePeriod] = Query(default=None, description="Window preset (1h, 24h, 7d, 30d, 90d)."),
    start: Optional[datetime] = Query(default=None, alias="from", description="Window start (ISO-8601)."),
    end: Optional[datetime] = Query(default=None, alias="to", description="Window end (ISO-8601)."),
) -> UptimeSummary:
    """Return the overall uptime summary."""
    start, end = _window(request, period, start, end)
    return uptime_service.get_overall_summary(request, start, end)


@router.get(
    "/user/{user_id}",
    response_model=UptimeSummary,
    responses=_STORE_ERRORS,
    summary="User uptime summary",
    description="Aggregate uptime over every instance owned by a user.",
    operation_id="get_user_uptime_summary",
)
def get_user_summary(
    request: Request,
    user_id: str = Path(..., description="User identifier"),
    period: Optional[UptimePeriod] = Query(default=None, description="Window preset (1h, 24h, 7d, 30d, 90d)."),
    start: Optional[datetime] = Query(default=None, alias="from", description="Window start (ISO-8601)."),
    end: Optional[datetime] = Query(default=None, alias="to", description="Window end (ISO-8601)."),
) -> UptimeSummary:
    """Return the uptime summary for a user."""
    start, end = _window(request, period, start, end)
    return uptime_service.get_user_summary(request, user_id, start, end)


@router.get(
    "/type/{infra_type}",
    response_model=UptimeSummary,
    responses=_STORE_ERRORS,
    summary="Uptime by infrastructure type",
    description="Aggregate uptime over every instance of one infrastructure type.",
    operation_id="get_uptime_by_type",
)
def get_type_summary(
    request: Request,
    infra_type: str = Path(..., description="Infrastructure type (postgres_cluster, nginx_cluster, dind, ...)"),
    period: Optional[UptimePeriod] = Query(default=None, description="Window preset (1h, 24h, 7d, 30d, 90d)."),
    start: Optional[datetime] = Query(default=None, alias="from", description="Window start (ISO-8601)."),
    end: Optional[datetime] = Query(default=None, alias="to", description="Window end (ISO-8601)."),
) -> UptimeSummary:
    """Return the uptime summary for an infrastructure type."""
    start, end = _window(request, period, start, end)
    return uptime_service.get_type_summary(request, infra_type, start, end)


@router.get(
    "/status",
    response_model=InstanceStatusList,
    responses=_STORE_ERRORS,
    summary="List current statuses",
    description="Current status of every instance that reported an event, optionally narrowed by owner or type.",
    operation_id="list_instance_statuses",
)
def list_statuses(
    request: Request,
    user_id: str = Query("", description="Only instances owned by this user."),
    infra_type: str = Query("", alias="type", description="Only instances of this infrastructure type."),
) -> InstanceStatusList:
    """Return the current status of each known instance."""
    items = uptime_service.list_current_statuses(request, user_id=user_id.strip(), infra_type=infra_type.strip())
    return InstanceStatusList(items=items, total=len(items))


@router.get(
    "/{instance_id}/status",
    response_model=InstanceStatus,
    responses={404: {"model": ErrorResponse}, **_STORE_ERRORS},
    summary="Instance current status",
    description="Status of an instance as of its newest event.",
    operation_id="get_instance_status",
)
def get_instance_status(
    request: Request,
    instance_id: str = Path(..., description="Instance identifier"),
) -> InstanceStatus:
    """Return the current status of one instance."""
    current = uptime_service.get_current_status(request, instance_id)
    if current is None:
        raise HTTPException(status_code=404, detail="no status events for instance")
    return current


@router.post(
    "/event",
    response_model=StatusEvent,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, **_STORE_ERRORS},
    summary="Record status change",
    description="Record a status-change event for uptime tracking (webhooks and internal producers).",
    operation_id="record_status_event",
)
def record_status_event(request: Request, payload: StatusEventCreate) -> StatusEvent:
    """Record a status-change event."""
    for field in ("instance_id", "user_id", "type", "action"):
        if not getattr(payload, field).strip():
            raise HTTPException(status_code=400, detail=f"{field} must not be empty")
    return uptime_service.record_status_change(request, payload)


@router.get(
    "/{instance_id}",
    response_model=UptimeResult,
    responses=_STORE_ERRORS,
    summary="Instance uptime",
    description="Uptime, status history and outages for a single instance over the window.",
    operation_id="get_instance_uptime",
)
def get_instance_uptime(
    request: Request,
    instance_id: str = Path(..., description="Instance identifier"),
    period: Optional[UptimePeriod] = Query(default=None, description="Window preset (1h, 24h, 7d, 30d, 90d)."),
    start: Optional[datetime] = Query(default=None, alias="from", description="Window start (ISO-8601)."),
    end: Optional[datetime] = Query(default=None, alias="to", description="Window end (ISO-8601)."),
) -> UptimeResult:
    """Return uptime statistics for an instance."""
    start, end = _window(request, period, start, end)
    return uptime_service.get_instance_uptime(request, instance_id, start, end)
