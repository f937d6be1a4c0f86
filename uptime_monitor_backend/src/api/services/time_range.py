from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple


PERIOD_DURATIONS: Dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
}


def as_utc(ts: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


# PUBLIC_INTERFACE
def resolve_time_range(
    period: str,
    start: Optional[datetime],
    end: Optional[datetime],
    now: datetime,
) -> Tuple[datetime, datetime]:
    """
    Resolve a query window from a period preset and optional explicit bounds.

    The preset gives [now - period, now]; explicit start/end override each bound individually.
    The result is not reordered: end < start is passed through and yields an empty window downstream.
    """
    duration = PERIOD_DURATIONS.get(period, PERIOD_DURATIONS["24h"])
    resolved_end = as_utc(end) if end is not None else as_utc(now)
    resolved_start = as_utc(start) if start is not None else as_utc(now) - duration
    return resolved_start, resolved_end


# PUBLIC_INTERFACE
def format_period(start: datetime, end: datetime) -> str:
    """Label a window with the smallest preset that covers it, or 'custom'."""
    span = end - start
    if span <= timedelta(hours=1):
        return "1h"
    if span <= timedelta(hours=24):
        return "24h"
    if span <= timedelta(days=7):
        return "7d"
    if span <= timedelta(days=30):
        return "30d"
    return "custom"
