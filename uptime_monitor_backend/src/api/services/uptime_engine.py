"""Uptime computation engine.

Pure functions over already-retrieved status events: no I/O, no shared mutable state.

- determine_status / classify: map an event to a canonical status string.
- compute_uptime: rebuild a gap-free up/down timeline for one instance over [start, end).
- compute_summary: run compute_uptime per instance and roll the results up by type, with rankings.
- latest_statuses: current status per instance from its newest event.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Dict, Iterable, List, Optional

from src.api.schemas.uptime import (
    InstanceStatus,
    OutageEvent,
    StatusEvent,
    StatusHistoryEntry,
    TypeUptime,
    UptimeResult,
    UptimeSummary,
)
from src.api.services.time_range import as_utc, format_period


UNKNOWN_STATUS = "unknown"
ONGOING_REASON = "ongoing"
TOP_PERFORMERS_LIMIT = 5

UP_STATUSES = frozenset({"running", "healthy", "started", "created", "active"})

# Statuses counted as "active" in per-type roll-ups (narrower than UP_STATUSES).
ACTIVE_STATUSES = frozenset({"running", "healthy"})

ACTION_TO_STATUS = MappingProxyType(
    {
        "created": "running",
        "started": "running",
        "stopped": "stopped",
        "deleted": "deleted",
        "failed": "failed",
        "healthy": "running",
        "unhealthy": "failed",
        "start": "running",
        "stop": "stopped",
        "create": "running",
        "delete": "deleted",
    }
)

_ONE_SECOND = timedelta(seconds=1)


# PUBLIC_INTERFACE
def is_status_up(status: str) -> bool:
    """Return True for up-like canonical statuses; everything else counts as down."""
    return status in UP_STATUSES


# PUBLIC_INTERFACE
def determine_status(action: str, status: str) -> str:
    """
    Resolve the canonical status of an event.

    An explicit status wins verbatim. Otherwise the action is mapped through ACTION_TO_STATUS;
    unrecognized actions become their own status (and therefore classify as down).
    """
    if status:
        return status
    return ACTION_TO_STATUS.get(action, action)


# PUBLIC_INTERFACE
def classify(event: StatusEvent) -> str:
    """Canonical status for a single event."""
    return determine_status(event.action, event.status)


def _seconds(delta: timedelta) -> int:
    return delta // _ONE_SECOND


def _clamp(ts: datetime, lo: datetime, hi: datetime) -> datetime:
    if ts < lo:
        return lo
    if ts > hi:
        return hi
    return ts


# PUBLIC_INTERFACE
def compute_uptime(
    events: Iterable[StatusEvent],
    instance_id: str,
    start: datetime,
    end: datetime,
) -> UptimeResult:
    """
    Compute uptime for one instance over the half-open window [start, end).

    Events may arrive in any order; they are sorted by timestamp (stable, so ties keep input order)
    and clamped into the window. Time before the first event counts as down ("unknown").
    An empty event set means the whole window is downtime.

    total_uptime_seconds + total_downtime_seconds always equals the window length in whole seconds.
    A window with end < start is treated as zero-length.
    """
    start = as_utc(start)
    end = as_utc(end)
    # Zero-length window for end < start; clamping below then pins every event to start.
    effective_end = max(start, end)
    window_seconds = _seconds(effective_end - start)
    period = format_period(start, end)

    ordered = sorted(events, key=lambda e: as_utc(e.timestamp))
    if not ordered:
        return UptimeResult(
            instance_id=instance_id,
            total_uptime_seconds=0,
            total_downtime_seconds=window_seconds,
            uptime_percent=0.0,
            current_status=UNKNOWN_STATUS,
            period=period,
            start=start,
            end=end,
        )

    first = ordered[0]
    uptime = timedelta(0)
    cursor = start
    last_status = UNKNOWN_STATUS
    outage_start: Optional[datetime] = None
    history: List[StatusHistoryEntry] = []
    outages: List[OutageEvent] = []

    for event in ordered:
        event_time = _clamp(as_utc(event.timestamp), start, effective_end)
        delta = event_time - cursor
        was_up = is_status_up(last_status)
        if was_up:
            uptime += delta

        new_status = classify(event)
        now_up = is_status_up(new_status)

        if was_up and not now_up:
            outage_start = event_time
        elif not was_up and now_up and outage_start is not None:
            outages.append(
                OutageEvent(
                    start_time=outage_start,
                    end_time=event_time,
                    duration_seconds=_seconds(event_time - outage_start),
                    reason=last_status,
                )
            )
            outage_start = None

        history.append(
            StatusHistoryEntry(
                timestamp=event.timestamp,
                from_status=last_status,
                to_status=new_status,
                action=event.action,
                duration_seconds=_seconds(delta),
            )
        )
        last_status = new_status
        cursor = event_time

    if is_status_up(last_status):
        uptime += effective_end - cursor

    if outage_start is not None:
        outages.append(
            OutageEvent(
                start_time=outage_start,
                end_time=effective_end,
                duration_seconds=_seconds(effective_end - outage_start),
                reason=ONGOING_REASON,
            )
        )

    uptime_seconds = _seconds(uptime)
    uptime_percent = uptime_seconds / window_seconds * 100.0 if window_seconds > 0 else 0.0

    return UptimeResult(
        instance_id=instance_id,
        instance_name=first.instance_name,
        infrastructure_type=first.type,
        user_id=first.user_id,
        total_uptime_seconds=uptime_seconds,
        total_downtime_seconds=window_seconds - uptime_seconds,
        uptime_percent=uptime_percent,
        current_status=last_status,
        period=period,
        start=start,
        end=end,
        status_history=history,
        outage_events=outages,
    )


# PUBLIC_INTERFACE
def compute_summary(
    events: Iterable[StatusEvent],
    start: datetime,
    end: datetime,
    limit: int = TOP_PERFORMERS_LIMIT,
) -> UptimeSummary:
    """
    Aggregate uptime across every instance present in a mixed event collection.

    Two different averages are reported on purpose:
    - by_type[...].average_uptime is time-weighted: sum(uptime) / sum(uptime + downtime).
    - average_uptime_percent is the plain mean of each instance's uptime_percent.

    Rankings are deterministic: ties on uptime_percent are broken by instance_id ascending.
    """
    grouped: Dict[str, List[StatusEvent]] = {}
    instance_types: Dict[str, str] = {}
    for event in events:
        grouped.setdefault(event.instance_id, []).append(event)
        if event.type:
            instance_types[event.instance_id] = event.type

    results: List[UptimeResult] = []
    by_type: Dict[str, TypeUptime] = {}
    for instance_id, instance_events in grouped.items():
        result = compute_uptime(instance_events, instance_id, start, end)
        results.append(result)

        infra_type = instance_types.get(instance_id) or UNKNOWN_STATUS
        bucket = by_type.setdefault(infra_type, TypeUptime(type=infra_type))
        bucket.count += 1
        bucket.total_uptime_seconds += result.total_uptime_seconds
        bucket.total_downtime_seconds += result.total_downtime_seconds
        if result.current_status in ACTIVE_STATUSES:
            bucket.active_count += 1

    for bucket in by_type.values():
        total = bucket.total_uptime_seconds + bucket.total_downtime_seconds
        if total > 0:
            bucket.average_uptime = bucket.total_uptime_seconds / total * 100.0

    ranked = sorted(results, key=lambda r: (-r.uptime_percent, r.instance_id))
    worst = sorted(results, key=lambda r: (r.uptime_percent, r.instance_id))
    limit = max(0, int(limit))

    average = 0.0
    if results:
        average = min(100.0, sum(r.uptime_percent for r in results) / len(results))

    return UptimeSummary(
        period=format_period(as_utc(start), as_utc(end)),
        start=as_utc(start),
        end=as_utc(end),
        total_instances=len(results),
        average_uptime_percent=average,
        by_type=by_type,
        top_performers=ranked[:limit],
        worst_performers=worst[:limit],
        infrastructures=ranked,
    )


# PUBLIC_INTERFACE
def latest_statuses(events: Iterable[StatusEvent]) -> List[InstanceStatus]:
    """
    Current status per instance: the newest event wins, later input wins on equal timestamps.

    The type falls back to the last non-empty type reported for the instance, then "unknown".
    """
    latest: Dict[str, StatusEvent] = {}
    instance_types: Dict[str, str] = {}
    for event in events:
        cur = latest.get(event.instance_id)
        if cur is None or as_utc(event.timestamp) >= as_utc(cur.timestamp):
            latest[event.instance_id] = event
        if event.type:
            instance_types[event.instance_id] = event.type

    out: List[InstanceStatus] = []
    for instance_id in sorted(latest):
        event = latest[instance_id]
        status = classify(event)
        out.append(
            InstanceStatus(
                instance_id=instance_id,
                instance_name=event.instance_name,
                user_id=event.user_id,
                type=event.type or instance_types.get(instance_id) or UNKNOWN_STATUS,
                status=status,
                is_up=is_status_up(status),
                action=event.action,
                last_changed_at=as_utc(event.timestamp),
            )
        )
    return out
