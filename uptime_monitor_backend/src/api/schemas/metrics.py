from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, Field


class MetricSample(BaseModel):
    """A single container stats sample written by the collector."""

    instance_id: str = Field(..., description="Instance ID the sample corresponds to.")
    ts: datetime = Field(..., description="UTC timestamp of the sample.")
    cpu_percent: float = Field(0.0, ge=0, description="Container CPU usage percent.")
    memory_used: int = Field(0, ge=0, description="Memory used (bytes).")
    memory_limit: int = Field(0, ge=0, description="Memory limit (bytes).")
    memory_percent: float = Field(0.0, ge=0, description="Memory used as a percent of the limit.")
    network_rx: int = Field(0, ge=0, description="Network bytes received.")
    network_tx: int = Field(0, ge=0, description="Network bytes transmitted.")
    disk_read: int = Field(0, ge=0, description="Block I/O bytes read.")
    disk_write: int = Field(0, ge=0, description="Block I/O bytes written.")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Collector-specific extras.")


class MetricsHistoryResponse(BaseModel):
    """Envelope for a page of metric samples."""

    items: List[MetricSample] = Field(..., description="Samples, newest first.")
    total: int = Field(..., ge=0, description="Number of samples stored for the instance.")


class AggregatedValue(BaseModel):
    """Average, maximum and minimum of one metric over a window."""

    avg: float = Field(0.0, description="Arithmetic mean.")
    max: float = Field(0.0, description="Maximum value.")
    min: float = Field(0.0, description="Minimum value.")


class AggregatedMetricsResponse(BaseModel):
    """Aggregated container metrics for an instance over a window."""

    instance_id: str = Field(..., description="Instance ID.")
    period: str = Field(..., description="Period label for the window.")
    start: datetime = Field(..., description="Window start.")
    end: datetime = Field(..., description="Window end.")
    cpu_percent: AggregatedValue = Field(default_factory=AggregatedValue)
    memory_percent: AggregatedValue = Field(default_factory=AggregatedValue)
    network_rx: AggregatedValue = Field(default_factory=AggregatedValue)
    network_tx: AggregatedValue = Field(default_factory=AggregatedValue)
    disk_read: AggregatedValue = Field(default_factory=AggregatedValue)
    disk_write: AggregatedValue = Field(default_factory=AggregatedValue)
    data_points: int = Field(0, ge=0, description="Number of samples aggregated.")


class LogEntry(BaseModel):
    """A single instance log line."""

    instance_id: str = Field(..., description="Instance ID.")
    ts: datetime = Field(..., description="UTC timestamp of the log line.")
    message: str = Field(..., description="Log message.")
    level: str = Field("info", description="Log level.")
    action: str = Field("", description="Lifecycle action associated with the line, if any.")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional structured metadata.")


class LogsResponse(BaseModel):
    """Envelope for a page of log entries."""

    items: List[LogEntry] = Field(..., description="Log entries, newest first.")
    total: int = Field(..., ge=0, description="Number of log entries stored for the instance.")
