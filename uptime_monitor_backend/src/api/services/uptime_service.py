from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import Request

from src.api.db.monitoring_store import UptimeEventFilter
from src.api.schemas.common import utc_now
from src.api.schemas.uptime import InstanceStatus, StatusEvent, StatusEventCreate, UptimeResult, UptimeSummary
from src.api.services import uptime_engine
from src.api.state import AppState, get_state

logger = logging.getLogger(__name__)


def _fetch_events(state: AppState, f: UptimeEventFilter) -> List[StatusEvent]:
    """
    Fetch events for a window, optionally prefixed with each instance's last event before it.

    Store failures propagate (MonitoringStoreError); the engine is never run on partial data.
    """
    events = state.store.query_uptime_events(f)
    if state.config.uptime_seed_prior_status and f.start is not None:
        since = None
        if state.config.uptime_seed_lookback_seconds > 0:
            since = f.start - timedelta(seconds=state.config.uptime_seed_lookback_seconds)
        prior = state.store.query_latest_uptime_events_before(f, f.start, since=since)
        events = prior + events
    return events


def _event_filter(state: AppState, start: datetime, end: datetime, **kwargs: str) -> UptimeEventFilter:
    return UptimeEventFilter(
        start=start,
        end=end,
        max_results=state.config.uptime_query_max_results,
        **kwargs,
    )


# PUBLIC_INTERFACE
def record_status_change(request: Request, payload: StatusEventCreate) -> StatusEvent:
    """Persist a status-change event, defaulting its timestamp to now."""
    state = get_state(request.app)
    event = StatusEvent(
        instance_id=payload.instance_id.strip(),
        instance_name=payload.instance_name,
        user_id=payload.user_id.strip(),
        type=payload.type.strip(),
        action=payload.action.strip(),
        status=payload.status.strip(),
        previous_status=payload.previous_status,
        timestamp=payload.timestamp or utc_now(),
        message=payload.message,
        metadata=payload.metadata,
    )

    logger.info(
        "Recording uptime event instanceId=%s action=%s status=%s",
        event.instance_id,
        event.action,
        event.status,
    )
    state.store.index_uptime_event(event)
    return event


# PUBLIC_INTERFACE
def get_instance_uptime(request: Request, instance_id: str, start: datetime, end: datetime) -> UptimeResult:
    """Uptime statistics for a single instance over [start, end)."""
    state = get_state(request.app)
    events = _fetch_events(state, _event_filter(state, start, end, instance_id=instance_id))
    return uptime_engine.compute_uptime(events, instance_id, start, end)


def _summary(state: AppState, start: datetime, end: datetime, **kwargs: str) -> UptimeSummary:
    events = _fetch_events(state, _event_filter(state, start, end, **kwargs))
    return uptime_engine.compute_summary(events, start, end, limit=state.config.uptime_top_performers)


# PUBLIC_INTERFACE
def get_user_summary(request: Request, user_id: str, start: datetime, end: datetime) -> UptimeSummary:
    """Uptime summary over every instance owned by a user."""
    return _summary(get_state(request.app), start, end, user_id=user_id)


# PUBLIC_INTERFACE
def get_type_summary(request: Request, infra_type: str, start: datetime, end: datetime) -> UptimeSummary:
    """Uptime summary over every instance of one infrastructure type."""
    return _summary(get_state(request.app), start, end, type=infra_type)


# PUBLIC_INTERFACE
def get_overall_summary(request: Request, start: datetime, end: datetime) -> UptimeSummary:
    """Uptime summary over every instance with events in the window."""
    return _summary(get_state(request.app), start, end)


# PUBLIC_INTERFACE
def list_current_statuses(request: Request, user_id: str = "", infra_type: str = "") -> List[InstanceStatus]:
    """Current status of every instance, from each instance's newest event up to now."""
    state = get_state(request.app)
    f = UptimeEventFilter(user_id=user_id, type=infra_type, max_results=state.config.uptime_query_max_results)
    latest = state.store.query_latest_uptime_events_before(f, utc_now())
    return uptime_engine.latest_statuses(latest)


# PUBLIC_INTERFACE
def get_current_status(request: Request, instance_id: str) -> Optional[InstanceStatus]:
    """Current status of one instance, or None if it never reported an event."""
    state = get_state(request.app)
    latest = state.store.query_latest_uptime_events_before(UptimeEventFilter(instance_id=instance_id), utc_now())
    statuses = uptime_engine.latest_statuses(latest)
    return statuses[0] if statuses else None
