from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


APP_DB_NAME = "uptimemon"


@dataclass(frozen=True)
class MongoCollections:
    """Convenience wrapper for app collections."""

    uptime_events: Collection

    # Written by the external container-stats collector; read-only here.
    metrics_samples: Collection
    instance_logs: Collection


class MongoManager:
    """
    MongoDB connection manager.

    Maintains one MongoClient for the app's own storage DB ("uptimemon").
    Datetimes come back timezone-aware (UTC) so they compare cleanly with request windows.
    """

    def __init__(self, app_mongo_uri: str, db_name: str = APP_DB_NAME):
        self._app_mongo_uri = app_mongo_uri
        self._db_name = db_name
        self._app_client: Optional[MongoClient] = None
        self._lock = RLock()

    def connect_app(self) -> None:
        """Initialize app Mongo client if needed."""
        with self._lock:
            if self._app_client is not None:
                return
            # MongoClient is thread-safe and manages internal pooling.
            self._app_client = MongoClient(self._app_mongo_uri, connect=True, tz_aware=True)

    # PUBLIC_INTERFACE
    def ping(self, timeout_ms: int = 1500) -> bool:
        """
        Ping the configured MongoDB to validate connectivity.

        This is used by startup validation and the connectivity-check endpoint.
        """
        try:
            if self._app_client is None:
                # Ensure client exists before pinging
                self.connect_app()
            assert self._app_client is not None
            self._app_client.admin.command("ping", maxTimeMS=int(max(250, timeout_ms)))
            return True
        except PyMongoError:
            logger.exception("Mongo ping failed (PyMongoError)")
            return False
        except Exception:
            logger.exception("Mongo ping failed (unexpected)")
            return False

    def close(self) -> None:
        """Close the app Mongo client."""
        with self._lock:
            if self._app_client is not None:
                try:
                    self._app_client.close()
                except Exception:
                    logger.exception("Error closing app MongoClient")
                self._app_client = None

    def app_db(self) -> Database:
        """Return the app database handle (uptimemon unless overridden)."""
        if self._app_client is None:
            self.connect_app()
        assert self._app_client is not None
        return self._app_client[self._db_name]

    def collections(self) -> MongoCollections:
        """Return app collections."""
        db = self.app_db()
        return MongoCollections(
            uptime_events=db["uptime_events"],
            metrics_samples=db["metrics_samples"],
            instance_logs=db["instance_logs"],
        )

    def init_indexes(self, *, events_ttl_seconds: int = 0) -> None:
        """
        Create required indexes (idempotent).

        TTL behavior:
        - events_ttl_seconds == 0 disables TTL index creation on uptime_events.ts

        Note: MongoDB TTL cleanup is performed by MongoDB's internal TTL monitor and is not immediate.
        """
        cols = self.collections()

        # ---- Uptime events ----
        # Query shapes: one instance, one user, one type, or everything, always with a ts range.
        cols.uptime_events.create_index([("instanceId", ASCENDING), ("ts", ASCENDING)], name="idx_events_instance_ts")
        cols.uptime_events.create_index([("userId", ASCENDING), ("ts", ASCENDING)], name="idx_events_user_ts")
        cols.uptime_events.create_index([("type", ASCENDING), ("ts", ASCENDING)], name="idx_events_type_ts")

        # TTL index: on ts (Date). Must be single-field index.
        if int(events_ttl_seconds) > 0:
            cols.uptime_events.create_index(
                [("ts", ASCENDING)],
                name="ttl_uptime_events_ts",
                expireAfterSeconds=int(events_ttl_seconds),
            )

        # ---- Metrics samples / logs ----
        cols.metrics_samples.create_index([("instanceId", ASCENDING), ("ts", DESCENDING)], name="idx_samples_instance_ts")
        cols.instance_logs.create_index([("instanceId", ASCENDING), ("ts", DESCENDING)], name="idx_logs_instance_ts")
