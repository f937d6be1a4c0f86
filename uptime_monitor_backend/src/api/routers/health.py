from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from src.api.config import sanitize_mongo_uri
from src.api.schemas.common import HealthResponse, utc_now
from src.api.state import get_state

router = APIRouter(tags=["Health"])


class StoreHealthResponse(BaseModel):
    """Reachability of the MongoDB event store backing uptime queries."""

    ok: bool = Field(..., description="Whether MongoDB answered a ping.")
    mongo_uri_source: str = Field(..., description="Env var the Mongo URI was read from.")
    mongo_uri_sanitized: str = Field(..., description="Mongo URI with the password masked.")
    timestamp: str = Field(..., description="UTC time of the check (ISO string).")
    meta: Dict[str, Any] = Field(default_factory=dict, description="Store settings relevant to uptime queries.")


@router.get(
    "/",
    response_model=HealthResponse,
    summary="Health check",
    description="Liveness check for the uptime monitor API.",
    operation_id="health_check",
)
def health_check() -> HealthResponse:
    """Return service liveness status."""
    return HealthResponse(status="ok", message="Healthy", timestamp=utc_now())


@router.get(
    "/api/health/mongo",
    response_model=StoreHealthResponse,
    summary="Event store health",
    description="Pings MongoDB and reports the effective URI (password masked) and event retention settings.",
    operation_id="mongo_connectivity_check",
)
def mongo_connectivity_check(request: Request) -> StoreHealthResponse:
    """Report whether the event store is reachable."""
    state = get_state(request.app)
    cfg = state.config
    return StoreHealthResponse(
        ok=state.mongo.ping(),
        mongo_uri_source=cfg.mongo_uri_source,
        mongo_uri_sanitized=sanitize_mongo_uri(cfg.mongo_uri),
        timestamp=utc_now().isoformat(),
        meta={
            "events_ttl_seconds": cfg.uptime_events_ttl_seconds,
            "seed_prior_status": cfg.uptime_seed_prior_status,
        },
    )
