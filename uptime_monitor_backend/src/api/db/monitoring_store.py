from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from src.api.db.mongo import MongoManager
from src.api.schemas.metrics import LogEntry, MetricSample
from src.api.schemas.uptime import StatusEvent

logger = logging.getLogger(__name__)


class MonitoringStoreError(RuntimeError):
    """Raised when the backing store cannot serve a read or write."""


@dataclass(frozen=True)
class UptimeEventFilter:
    """Filter for uptime event queries; empty string fields are ignored."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    instance_id: str = ""
    user_id: str = ""
    type: str = ""
    status: str = ""
    max_results: int = 10000


def _event_to_doc(event: StatusEvent) -> dict:
    return {
        "instanceId": event.instance_id,
        "instanceName": event.instance_name,
        "userId": event.user_id,
        "type": event.type,
        "action": event.action,
        "status": event.status,
        "previousStatus": event.previous_status,
        "ts": event.timestamp,
        "message": event.message,
        "metadata": dict(event.metadata),
    }


def _doc_to_event(doc: dict) -> StatusEvent:
    return StatusEvent(
        instance_id=doc["instanceId"],
        instance_name=doc.get("instanceName") or "",
        user_id=doc.get("userId") or "",
        type=doc.get("type") or "",
        action=doc.get("action") or "",
        status=doc.get("status") or "",
        previous_status=doc.get("previousStatus") or "",
        timestamp=doc["ts"],
        message=doc.get("message") or "",
        metadata=doc.get("metadata") or {},
    )


def _doc_to_sample(doc: dict) -> MetricSample:
    return MetricSample(
        instance_id=doc["instanceId"],
        ts=doc["ts"],
        cpu_percent=float(doc.get("cpuPercent") or 0.0),
        memory_used=int(doc.get("memoryUsed") or 0),
        memory_limit=int(doc.get("memoryLimit") or 0),
        memory_percent=float(doc.get("memoryPercent") or 0.0),
        network_rx=int(doc.get("networkRx") or 0),
        network_tx=int(doc.get("networkTx") or 0),
        disk_read=int(doc.get("diskRead") or 0),
        disk_write=int(doc.get("diskWrite") or 0),
        metadata=doc.get("metadata") or {},
    )


def _doc_to_log(doc: dict) -> LogEntry:
    return LogEntry(
        instance_id=doc["instanceId"],
        ts=doc["ts"],
        message=doc.get("message") or "",
        level=doc.get("level") or "info",
        action=doc.get("action") or "",
        metadata=doc.get("metadata") or {},
    )


def _events_query_from_filter(f: UptimeEventFilter) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if f.instance_id:
        query["instanceId"] = f.instance_id
    if f.user_id:
        query["userId"] = f.user_id
    if f.type:
        query["type"] = f.type
    if f.status:
        query["status"] = f.status

    if f.start or f.end:
        ts: Dict[str, Any] = {}
        if f.start:
            ts["$gte"] = f.start
        if f.end:
            ts["$lte"] = f.end
        query["ts"] = ts

    return query


class MonitoringStore:
    """
    MongoDB-backed store for uptime events, metric samples and instance logs.

    Every pymongo failure is logged and re-raised as MonitoringStoreError so callers can report
    a retrieval failure instead of computing over partial data.
    """

    def __init__(self, mongo: MongoManager):
        self._mongo = mongo

    # PUBLIC_INTERFACE
    def index_uptime_event(self, event: StatusEvent) -> None:
        """Persist one status-change event."""
        try:
            self._mongo.collections().uptime_events.insert_one(_event_to_doc(event))
        except PyMongoError as exc:
            logger.exception("Failed to index uptime event instanceId=%s", event.instance_id)
            raise MonitoringStoreError("failed to index uptime event") from exc

    # PUBLIC_INTERFACE
    def query_uptime_events(self, f: UptimeEventFilter) -> List[StatusEvent]:
        """Return events matching the filter, oldest first, capped at f.max_results."""
        query = _events_query_from_filter(f)
        try:
            cur = (
                self._mongo.collections()
                .uptime_events.find(query, projection={"_id": 0})
                .sort("ts", ASCENDING)
                .limit(max(1, int(f.max_results)))
            )
            docs = list(cur)
        except PyMongoError as exc:
            logger.exception("Failed to query uptime events filter=%s", query)
            raise MonitoringStoreError("failed to query uptime events") from exc
        return [_doc_to_event(d) for d in docs]

    # PUBLIC_INTERFACE
    def query_latest_uptime_events_before(
        self,
        f: UptimeEventFilter,
        before: datetime,
        since: Optional[datetime] = None,
    ) -> List[StatusEvent]:
        """
        Return, per instance matching the filter, the newest event strictly before `before`.

        With `since`, instances whose newest event is older than it are left out.
        """
        match = _events_query_from_filter(UptimeEventFilter(instance_id=f.instance_id, user_id=f.user_id, type=f.type))
        match["ts"] = {"$lt": before}
        if since is not None:
            match["ts"]["$gte"] = since
        pipeline = [
            {"$match": match},
            {"$sort": {"ts": DESCENDING}},
            {"$group": {"_id": "$instanceId", "doc": {"$first": "$$ROOT"}}},
            {"$replaceRoot": {"newRoot": "$doc"}},
            {"$project": {"_id": 0}},
            {"$limit": max(1, int(f.max_results))},
        ]
        try:
            docs = list(self._mongo.collections().uptime_events.aggregate(pipeline))
        except PyMongoError as exc:
            logger.exception("Failed to query prior uptime events filter=%s", match)
            raise MonitoringStoreError("failed to query prior uptime events") from exc
        return [_doc_to_event(d) for d in docs]

    # PUBLIC_INTERFACE
    def query_metrics(
        self,
        instance_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 100,
    ) -> List[MetricSample]:
        """Return metric samples for an instance, newest first."""
        query: Dict[str, Any] = {"instanceId": instance_id}
        if start or end:
            ts: Dict[str, Any] = {}
            if start:
                ts["$gte"] = start
            if end:
                ts["$lte"] = end
            query["ts"] = ts
        try:
            docs = list(
                self._mongo.collections()
                .metrics_samples.find(query, projection={"_id": 0})
                .sort("ts", DESCENDING)
                .skip(max(0, int(offset)))
                .limit(max(1, int(limit)))
            )
        except PyMongoError as exc:
            logger.exception("Failed to query metrics instanceId=%s", instance_id)
            raise MonitoringStoreError("failed to query metrics") from exc
        return [_doc_to_sample(d) for d in docs]

    # PUBLIC_INTERFACE
    def count_metrics(self, instance_id: str) -> int:
        """Number of stored metric samples for an instance."""
        try:
            return int(self._mongo.collections().metrics_samples.count_documents({"instanceId": instance_id}))
        except PyMongoError as exc:
            logger.exception("Failed to count metrics instanceId=%s", instance_id)
            raise MonitoringStoreError("failed to count metrics") from exc

    # PUBLIC_INTERFACE
    def query_logs(self, instance_id: str, offset: int = 0, limit: int = 100) -> List[LogEntry]:
        """Return log entries for an instance, newest first."""
        try:
            docs = list(
                self._mongo.collections()
                .instance_logs.find({"instanceId": instance_id}, projection={"_id": 0})
                .sort("ts", DESCENDING)
                .skip(max(0, int(offset)))
                .limit(max(1, int(limit)))
            )
        except PyMongoError as exc:
            logger.exception("Failed to query logs instanceId=%s", instance_id)
            raise MonitoringStoreError("failed to query logs") from exc
        return [_doc_to_log(d) for d in docs]

    # PUBLIC_INTERFACE
    def count_logs(self, instance_id: str) -> int:
        """Number of stored log entries for an instance."""
        try:
            return int(self._mongo.collections().instance_logs.count_documents({"instanceId": instance_id}))
        except PyMongoError as exc:
            logger.exception("Failed to count logs instanceId=%s", instance_id)
            raise MonitoringStoreError("failed to count logs") from exc
