from __future__ import annotations

from dataclasses import dataclass

from fastapi import FastAPI

from src.api.config import BackendConfig
from src.api.db.mongo import MongoManager
from src.api.db.monitoring_store import MonitoringStore


@dataclass
class AppState:
    """Typed app.state container for shared singletons."""

    config: BackendConfig
    mongo: MongoManager
    store: MonitoringStore


# PUBLIC_INTERFACE
def init_state(app: FastAPI, config: BackendConfig) -> None:
    """Initialize app.state with Mongo manager, monitoring store and config."""
    mongo = MongoManager(config.mongo_uri)
    app.state.state = AppState(config=config, mongo=mongo, store=MonitoringStore(mongo))


# PUBLIC_INTERFACE
def get_state(app: FastAPI) -> AppState:
    """Fetch typed AppState from a FastAPI app."""
    return app.state.state  # type: ignore[attr-defined]
