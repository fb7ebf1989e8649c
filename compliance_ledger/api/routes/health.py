"""Health and metrics endpoints."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import Response
from pydantic import BaseModel, Field

from compliance_ledger.common.metrics import get_content_type, get_metrics
from compliance_ledger.core.config import settings

router = APIRouter()

_startup_time: Optional[datetime] = None


def set_startup_time() -> None:
    global _startup_time
    _startup_time = datetime.now(timezone.utc)


class HealthResponse(BaseModel):
    status: str = Field(description="Overall health status")
    version: str
    environment: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    uptime_seconds: Optional[float] = None


@router.get("/health", response_model=HealthResponse, summary="Liveness check")
async def health() -> HealthResponse:
    uptime = None
    if _startup_time is not None:
        uptime = (datetime.now(timezone.utc) - _startup_time).total_seconds()
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
        uptime_seconds=uptime,
    )


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Returns application metrics in Prometheus format",
    response_class=Response,
)
async def metrics():
    return Response(content=get_metrics(), media_type=get_content_type())
