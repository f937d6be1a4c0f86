from __future__ import annotations

import logging
import os
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.config import load_config
from src.api.db.monitoring_store import MonitoringStoreError
from src.api.routers import health, metrics, uptime
from src.api.schemas.common import ErrorResponse
from src.api.state import get_state, init_state

openapi_tags = [
    {"name": "Health", "description": "Service health and liveness."},
    {"name": "Uptime", "description": "Status-change events and uptime statistics per instance, user, type."},
    {"name": "Metrics", "description": "Container metrics and logs collected for infrastructure instances."},
]

logger = logging.getLogger(__name__)

config = load_config()
logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(
    title="Infrastructure Uptime Monitor API",
    description=(
        "Backend API for monitoring containerized infrastructure (databases, proxies, sandboxes). "
        "Status-change events are stored in MongoDB (uptimemon DB) and uptime is computed on demand "
        "for single instances, users, infrastructure types, or the whole fleet."
    ),
    version="0.1.0",
    openapi_tags=openapi_tags,
)

# Initialize typed app state (config + Mongo manager + monitoring store)
init_state(app, config)


@app.exception_handler(MonitoringStoreError)
async def _on_store_error(request: Request, exc: MonitoringStoreError) -> JSONResponse:
    """Report store failures as 503 instead of computing over missing data."""
    body = ErrorResponse(detail=str(exc), code="STORE_UNAVAILABLE", meta={"path": request.url.path})
    return JSONResponse(status_code=503, content=body.model_dump())


@app.on_event("startup")
async def _on_startup() -> None:
    """Startup hook: connect to Mongo, validate connectivity and ensure indexes."""
    state = get_state(app)

    # Connect + verify early so a misconfigured Mongo fails the deploy instead of every request.
    state.mongo.connect_app()
    if not state.mongo.ping():
        raise RuntimeError("Mongo connectivity check failed during startup. Verify BACKEND_MONGO_URI.")

    state.mongo.init_indexes(events_ttl_seconds=int(state.config.uptime_events_ttl_seconds))
    logger.info(
        "Uptime monitor started (max_results=%s, seed_prior_status=%s)",
        state.config.uptime_query_max_results,
        state.config.uptime_seed_prior_status,
    )


@app.on_event("shutdown")
async def _on_shutdown() -> None:
    """Shutdown hook: close Mongo connections."""
    get_state(app).mongo.close()


def _env_frontend_url() -> str | None:
    return os.getenv("FRONTEND_URL")


def _env_cors_extra_origins() -> List[str]:
    # Comma-separated list for preview deployments, etc.
    raw = os.getenv("CORS_ALLOW_ORIGINS") or ""
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    return parts


# CORS: allow local frontend by default, plus explicit frontend URL and optional extra origins.
allowed_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
frontend_url = _env_frontend_url()
if frontend_url:
    allowed_origins.append(frontend_url)
allowed_origins.extend(_env_cors_extra_origins())

# De-dupe while preserving order
_seen = set()
allowed_origins = [o for o in allowed_origins if not (o in _seen or _seen.add(o))]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(uptime.router)
app.include_router(metrics.router)
