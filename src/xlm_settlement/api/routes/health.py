"""Health check and metrics endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from xlm_settlement.api.dependencies import Metrics

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    ledger_address: str | None
    inbound_stream: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(request: Request) -> HealthResponse:
    """Check engine and inbound stream health."""
    engine = getattr(request.app.state, "engine", None)
    stream_status = "stopped"
    if engine is not None and engine.reconciler.running:
        stream_status = "running"

    return HealthResponse(
        status="healthy" if stream_status == "running" else "degraded",
        timestamp=datetime.now(timezone.utc),
        ledger_address=engine.address if engine is not None else None,
        inbound_stream=stream_status,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check() -> dict[str, str]:
    """Readiness check for container orchestration."""
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}


@router.get("/metrics", response_class=PlainTextResponse)
async def metrics(collector: Metrics) -> str:
    """Prometheus text exposition of engine counters."""
    return collector.snapshot().to_prometheus()
