from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


UptimePeriod = Literal["1h", "24h", "7d", "30d", "90d"]


class StatusEvent(BaseModel):
    """A single reported status change for an infrastructure instance."""

    model_config = ConfigDict(frozen=True)

    instance_id: str = Field(..., description="Instance the event belongs to.")
    instance_name: str = Field("", description="Display name of the instance, if reported.")
    user_id: str = Field("", description="Owner of the instance.")
    type: str = Field("", description="Infrastructure type (postgres_cluster, nginx_cluster, dind, ...).")
    action: str = Field("", description="Free-form lifecycle verb, e.g. 'started' or 'stopped'.")
    status: str = Field("", description="Explicit canonical status; empty when only the action is known.")
    previous_status: str = Field("", description="Status reported before this change (informational).")
    timestamp: datetime = Field(..., description="UTC timestamp of the change.")
    message: str = Field("", description="Optional human-readable message.")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional structured metadata.")


class StatusEventCreate(BaseModel):
    """Request body for POST /api/uptime/event."""

    instance_id: str = Field(..., description="Instance the event belongs to.")
    instance_name: str = Field("", description="Display name of the instance.")
    user_id: str = Field(..., description="Owner of the instance.")
    type: str = Field(..., description="Infrastructure type.")
    action: str = Field(..., description="Lifecycle verb (created, started, stopped, deleted, failed, ...).")
    status: str = Field("", description="Explicit canonical status (running, stopped, failed, ...).")
    previous_status: str = Field("", description="Status before this change.")
    timestamp: Optional[datetime] = Field(default=None, description="Event time; defaults to now (UTC).")
    message: str = Field("", description="Optional message.")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional structured metadata.")


class StatusHistoryEntry(BaseModel):
    """One status transition inside an uptime window."""

    timestamp: datetime = Field(..., description="Timestamp reported by the event (not clamped).")
    from_status: str = Field(..., description="Canonical status before the transition.")
    to_status: str = Field(..., description="Canonical status after the transition.")
    action: str = Field(..., description="Action reported by the event.")
    duration_seconds: int = Field(..., ge=0, description="Seconds spent in from_status, clamped to the window.")


class OutageEvent(BaseModel):
    """A contiguous down interval inside an uptime window."""

    start_time: datetime = Field(..., description="When the instance went down.")
    end_time: datetime = Field(..., description="When it came back up, or the window end if still down.")
    duration_seconds: int = Field(..., ge=0, description="Outage length in seconds.")
    reason: str = Field(..., description="Down status that caused the outage, or 'ongoing'.")


class UptimeResult(BaseModel):
    """Uptime statistics for a single instance over a window."""

    instance_id: str = Field(..., description="Instance identifier.")
    instance_name: str = Field("", description="Instance display name (from its earliest event).")
    infrastructure_type: str = Field("", description="Infrastructure type (from its earliest event).")
    user_id: str = Field("", description="Owner (from its earliest event).")

    total_uptime_seconds: int = Field(..., ge=0, description="Seconds spent in an up-like status.")
    total_downtime_seconds: int = Field(..., ge=0, description="Seconds spent down or unknown.")
    uptime_percent: float = Field(..., ge=0, le=100, description="Uptime as a percentage of the window.")
    current_status: str = Field(..., description="Canonical status in effect at the window end.")

    period: str = Field(..., description="Period label for the window (1h, 24h, 7d, 30d, custom).")
    start: datetime = Field(..., description="Window start (inclusive).")
    end: datetime = Field(..., description="Window end (exclusive).")

    status_history: List[StatusHistoryEntry] = Field(default_factory=list, description="Ordered transitions.")
    outage_events: List[OutageEvent] = Field(default_factory=list, description="Ordered outages.")


class TypeUptime(BaseModel):
    """Uptime rolled up over all instances of one infrastructure type."""

    type: str = Field(..., description="Infrastructure type.")
    count: int = Field(0, ge=0, description="Number of instances of this type.")
    active_count: int = Field(0, ge=0, description="Instances currently running or healthy.")
    total_uptime_seconds: int = Field(0, ge=0, description="Sum of instance uptime.")
    total_downtime_seconds: int = Field(0, ge=0, description="Sum of instance downtime.")
    average_uptime: float = Field(0.0, ge=0, le=100, description="Time-weighted uptime percentage.")


class UptimeSummary(BaseModel):
    """Uptime statistics aggregated over several instances."""

    period: str = Field(..., description="Period label for the window.")
    start: datetime = Field(..., description="Window start (inclusive).")
    end: datetime = Field(..., description="Window end (exclusive).")

    total_instances: int = Field(..., ge=0, description="Number of instances with events.")
    average_uptime_percent: float = Field(
        ..., ge=0, le=100, description="Unweighted mean of instance uptime percentages."
    )
    by_type: Dict[str, TypeUptime] = Field(default_factory=dict, description="Roll-up per infrastructure type.")

    top_performers: List[UptimeResult] = Field(default_factory=list, description="Highest uptime first.")
    worst_performers: List[UptimeResult] = Field(default_factory=list, description="Lowest uptime first.")
    infrastructures: List[UptimeResult] = Field(
        default_factory=list, description="All instances, highest uptime first."
    )


class InstanceStatus(BaseModel):
    """Current status of one instance, taken from its newest event."""

    instance_id: str = Field(..., description="Instance identifier.")
    instance_name: str = Field("", description="Instance display name, if reported.")
    user_id: str = Field("", description="Owner of the instance.")
    type: str = Field(..., description="Infrastructure type, or 'unknown'.")
    status: str = Field(..., description="Canonical status of the newest event.")
    is_up: bool = Field(..., description="Whether the status counts as up.")
    action: str = Field("", description="Action reported by the newest event.")
    last_changed_at: datetime = Field(..., description="Timestamp of the newest event.")


class InstanceStatusList(BaseModel):
    """Envelope for the current-status listing."""

    items: List[InstanceStatus] = Field(..., description="One entry per instance, ordered by instance_id.")
    total: int = Field(..., ge=0, description="Number of instances listed.")
