from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

from fastapi import Request

from src.api.schemas.metrics import (
    AggregatedMetricsResponse,
    AggregatedValue,
    LogsResponse,
    MetricSample,
    MetricsHistoryResponse,
)
from src.api.services.time_range import format_period
from src.api.state import get_state

logger = logging.getLogger(__name__)


def _page_limit(request: Request, limit: int) -> int:
    cap = get_state(request.app).config.metrics_history_max_return
    return max(1, min(int(limit), cap))


def _aggregate(samples: Sequence[MetricSample], pick: Callable[[MetricSample], float]) -> AggregatedValue:
    vals = [float(pick(s)) for s in samples]
    if not vals:
        return AggregatedValue()
    return AggregatedValue(avg=sum(vals) / len(vals), max=max(vals), min=min(vals))


# PUBLIC_INTERFACE
def aggregate_samples(
    instance_id: str,
    samples: Sequence[MetricSample],
    start: datetime,
    end: datetime,
) -> AggregatedMetricsResponse:
    """Compute avg/max/min per metric over a set of samples; all zeros when there are none."""
    return AggregatedMetricsResponse(
        instance_id=instance_id,
        period=format_period(start, end),
        start=start,
        end=end,
        cpu_percent=_aggregate(samples, lambda s: s.cpu_percent),
        memory_percent=_aggregate(samples, lambda s: s.memory_percent),
        network_rx=_aggregate(samples, lambda s: s.network_rx),
        network_tx=_aggregate(samples, lambda s: s.network_tx),
        disk_read=_aggregate(samples, lambda s: s.disk_read),
        disk_write=_aggregate(samples, lambda s: s.disk_write),
        data_points=len(samples),
    )


# PUBLIC_INTERFACE
def get_current_metrics(request: Request, instance_id: str) -> Optional[MetricSample]:
    """Return the newest metric sample for an instance, or None if it has none."""
    samples = get_state(request.app).store.query_metrics(instance_id, offset=0, limit=1)
    return samples[0] if samples else None


# PUBLIC_INTERFACE
def get_metrics_history(request: Request, instance_id: str, offset: int, limit: int) -> MetricsHistoryResponse:
    """Return a page of metric samples, newest first, with the number stored for the instance."""
    store = get_state(request.app).store
    items = store.query_metrics(instance_id, offset=offset, limit=_page_limit(request, limit))
    return MetricsHistoryResponse(items=items, total=store.count_metrics(instance_id))


# PUBLIC_INTERFACE
def aggregate_metrics(request: Request, instance_id: str, start: datetime, end: datetime) -> AggregatedMetricsResponse:
    """Aggregate every sample of an instance inside [start, end]."""
    state = get_state(request.app)
    samples = state.store.query_metrics(
        instance_id,
        start=start,
        end=end,
        offset=0,
        limit=state.config.uptime_query_max_results,
    )
    logger.debug("Aggregating %s samples for instanceId=%s", len(samples), instance_id)
    return aggregate_samples(instance_id, samples, start, end)


# PUBLIC_INTERFACE
def get_logs(request: Request, instance_id: str, offset: int, limit: int) -> LogsResponse:
    """Return a page of instance log entries, newest first, with the number stored for the instance."""
    store = get_state(request.app).store
    items = store.query_logs(instance_id, offset=offset, limit=_page_limit(request, limit))
    return LogsResponse(items=items, total=store.count_logs(instance_id))
