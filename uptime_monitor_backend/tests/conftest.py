from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator
from datetime import datetime
from typing import List, Optional

import httpx
import pytest

from src.api.db.monitoring_store import MonitoringStoreError, UptimeEventFilter
from src.api.schemas.metrics import LogEntry, MetricSample
from src.api.schemas.uptime import StatusEvent


class InMemoryMonitoringStore:
    """
    Drop-in replacement for MonitoringStore that keeps everything in lists.

    Applies the same filter semantics as the Mongo queries so API tests need no running MongoDB.
    """

    def __init__(self) -> None:
        self.events: List[StatusEvent] = []
        self.samples: List[MetricSample] = []
        self.logs: List[LogEntry] = []

    def _matches(self, e: StatusEvent, f: UptimeEventFilter) -> bool:
        if f.instance_id and e.instance_id != f.instance_id:
            return False
        if f.user_id and e.user_id != f.user_id:
            return False
        if f.type and e.type != f.type:
            return False
        if f.status and e.status != f.status:
            return False
        return True

    def index_uptime_event(self, event: StatusEvent) -> None:
        self.events.append(event)

    def query_uptime_events(self, f: UptimeEventFilter) -> List[StatusEvent]:
        out = []
        for e in self.events:
            if not self._matches(e, f):
                continue
            if f.start is not None and e.timestamp < f.start:
                continue
            if f.end is not None and e.timestamp > f.end:
                continue
            out.append(e)
        # Hand events back in reverse order: the engine must not depend on store ordering.
        out.sort(key=lambda e: e.timestamp, reverse=True)
        return out[: f.max_results]

    def query_latest_uptime_events_before(
        self, f: UptimeEventFilter, before: datetime, since: Optional[datetime] = None
    ) -> List[StatusEvent]:
        latest: dict = {}
        for e in self.events:
            if not self._matches(e, UptimeEventFilter(instance_id=f.instance_id, user_id=f.user_id, type=f.type)):
                continue
            if e.timestamp >= before:
                continue
            if since is not None and e.timestamp < since:
                continue
            cur = latest.get(e.instance_id)
            if cur is None or e.timestamp > cur.timestamp:
                latest[e.instance_id] = e
        return list(latest.values())

    def query_metrics(
        self,
        instance_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 100,
    ) -> List[MetricSample]:
        out = [
            s
            for s in self.samples
            if s.instance_id == instance_id
            and (start is None or s.ts >= start)
            and (end is None or s.ts <= end)
        ]
        out.sort(key=lambda s: s.ts, reverse=True)
        return out[offset : offset + limit]

    def count_metrics(self, instance_id: str) -> int:
        return sum(1 for s in self.samples if s.instance_id == instance_id)

    def query_logs(self, instance_id: str, offset: int = 0, limit: int = 100) -> List[LogEntry]:
        out = [entry for entry in self.logs if entry.instance_id == instance_id]
        out.sort(key=lambda entry: entry.ts, reverse=True)
        return out[offset : offset + limit]

    def count_logs(self, instance_id: str) -> int:
        return sum(1 for entry in self.logs if entry.instance_id == instance_id)


class FailingMonitoringStore:
    """Store whose every call fails, as when MongoDB is unreachable."""

    def _fail(self, *args, **kwargs):
        raise MonitoringStoreError("failed to query uptime events")

    index_uptime_event = _fail
    query_uptime_events = _fail
    query_latest_uptime_events_before = _fail
    query_metrics = _fail
    query_logs = _fail
    count_metrics = _fail
    count_logs = _fail


@pytest.fixture(scope="session")
def app():
    """
    FastAPI app fixture.

    BACKEND_MONGO_URI only has to be well-formed: MongoClient is created lazily and httpx's
    ASGITransport does not run startup hooks, so no MongoDB connection is made.
    """
    with pytest.MonkeyPatch.context() as mp:
        mp.setenv("BACKEND_MONGO_URI", os.getenv("BACKEND_MONGO_URI") or "mongodb://localhost:27017")
        mp.delenv("UPTIME_SEED_PRIOR_STATUS", raising=False)
        mp.delenv("UPTIME_DEFAULT_PERIOD", raising=False)
        mp.delenv("UPTIME_TOP_PERFORMERS", raising=False)

        from src.api.main import app as fastapi_app

        yield fastapi_app


@pytest.fixture
def app_state(app):
    """Typed AppState of the app under test."""
    from src.api.state import get_state

    return get_state(app)


@pytest.fixture
def store(app_state, monkeypatch: pytest.MonkeyPatch) -> Iterator[InMemoryMonitoringStore]:
    """Replace the Mongo-backed store with an in-memory one for the duration of a test."""
    mem = InMemoryMonitoringStore()
    monkeypatch.setattr(app_state, "store", mem)
    yield mem


@pytest.fixture
def failing_store(app_state, monkeypatch: pytest.MonkeyPatch) -> FailingMonitoringStore:
    """Replace the store with one that always fails."""
    bad = FailingMonitoringStore()
    monkeypatch.setattr(app_state, "store", bad)
    return bad


@pytest.fixture
async def async_client(app) -> AsyncIterator[httpx.AsyncClient]:
    """Async HTTP client bound to the FastAPI ASGI app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
