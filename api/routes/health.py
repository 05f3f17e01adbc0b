"""Health check endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from core.clock import utc_now_iso
from core.observability.metrics import get_metrics

router = APIRouter()

VERSION = "1.0.0"


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint."""
    bus = getattr(request.app.state, "bus", None)
    return HealthResponse(
        status="healthy",
        timestamp=utc_now_iso(),
        version=VERSION,
        services={
            "api": "up",
            "progress": "up" if bus is not None else "down",
            "sseClients": str(bus.client_count if bus is not None else 0),
            "mode": request.app.state.settings.migration_mode,
        },
    )


@router.get("/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """Readiness probe for Kubernetes."""
    if getattr(request.app.state, "bus", None) is None:
        response.status_code = 503
        return {"status": "starting"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness probe for Kubernetes."""
    return {"status": "alive"}


@router.get("/metrics")
async def metrics_summary() -> Dict[str, Any]:
    """Extractor, migration and protocol counters."""
    return get_metrics().get_summary()
