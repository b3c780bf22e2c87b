"""Health probe responses."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # Serving, but records are not durable
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Liveness probe body."""

    status: HealthStatus
    version: str
    timestamp: datetime


class ComponentHealth(BaseModel):
    """State of one dependency checked by the readiness probe."""

    status: HealthStatus
    message: str | None = None
    latency_ms: float | None = None


class HealthDetailResponse(HealthResponse):
    """Readiness probe body."""

    database: ComponentHealth = Field(..., description="Screening record store")
    providers: list[str] = Field(default_factory=list, description="Registered screening vendors")
    default_provider: str | None = Field(default=None, description="Vendor for new registrations")
    active_workflows: int = Field(default=0, description="Screening tasks currently running")

    model_config = {"json_schema_extra": {"example": {
        "status": "healthy",
        "version": "0.1.0",
        "timestamp": "2026-01-30T12:00:00Z",
        "database": {"status": "healthy", "latency_ms": 1.5},
        "providers": ["checkr", "iprospect"],
        "default_provider": "checkr",
        "active_workflows": 2,
    }}}
