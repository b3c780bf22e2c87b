"""Liveness and readiness probes.

- GET /health - process is up
- GET /health/ready - database reachable and a default provider registered
"""

import time
from datetime import UTC, datetime

from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from geargrab.api.schemas.health import (
    ComponentHealth,
    HealthDetailResponse,
    HealthResponse,
    HealthStatus,
)

router = APIRouter(tags=["health"])

APP_VERSION = "0.1.0"

# Worst status wins when components disagree
STATUS_RANK = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Always 200 while the process serves requests. No authentication.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        version=APP_VERSION,
        timestamp=datetime.now(UTC),
    )


@router.get(
    "/health/ready",
    response_model=HealthDetailResponse,
    summary="Readiness check",
    description="Reports the record store and provider registry. No authentication.",
)
async def health_ready(request: Request) -> HealthDetailResponse:
    """Readiness for load balancers.

    An in-memory deployment reports ``degraded``: it works, but records
    do not survive a restart.
    """
    services = request.app.state.services
    database = await _check_database(request.app.state.engine)
    providers = services.registry.names()
    provider_status = HealthStatus.HEALTHY if providers else HealthStatus.UNHEALTHY

    return HealthDetailResponse(
        status=max(database.status, provider_status, key=STATUS_RANK.__getitem__),
        version=APP_VERSION,
        timestamp=datetime.now(UTC),
        database=database,
        providers=providers,
        default_provider=services.registry.default_name,
        active_workflows=services.supervisor.active_count,
    )


async def _check_database(engine: AsyncEngine | None) -> ComponentHealth:
    if engine is None:
        return ComponentHealth(
            status=HealthStatus.DEGRADED,
            message="In-memory store (no database configured)",
        )

    started = time.perf_counter()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        status, message = HealthStatus.UNHEALTHY, f"Database unreachable: {type(e).__name__}"
    else:
        status, message = HealthStatus.HEALTHY, None

    return ComponentHealth(
        status=status,
        message=message,
        latency_ms=round((time.perf_counter() - started) * 1000, 2),
    )
