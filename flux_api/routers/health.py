"""
Health check endpoints.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
import structlog

from ..config import Settings, get_settings
from ..infrastructure import PostgresDatabase, get_database
from ..models.api_responses import DatabaseHealthResponse, HealthCheckResponse

logger = structlog.get_logger()

# Mounted under /api
router = APIRouter()
# Mounted under the versioned prefix
v1_router = APIRouter()

STARTED_AT = time.monotonic()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@v1_router.get(
    "/test",
    status_code=status.HTTP_200_OK,
    summary="Test Endpoint",
    description="Liveness probe for the versioned API",
    tags=["Health Checks"]
)
async def test_endpoint() -> Dict[str, Any]:
    return {
        "success": True,
        "message": "Test endpoint working",
        "timestamp": utc_now_iso()
    }


@router.get(
    "/health",
    status_code=status.HTTP_200_OK,
    summary="Basic Health Check",
    description="Returns the basic health status of the API service",
    response_description="Service health information",
    response_model=HealthCheckResponse,
    tags=["Health Checks"]
)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthCheckResponse:
    """
    **Basic health check endpoint**

    Returns essential service information including:
    - Service status
    - Application name and version
    - Environment name
    - Current timestamp and process uptime

    This endpoint is used for basic monitoring and load balancer health checks.
    """
    return HealthCheckResponse(
        status="healthy",
        service=settings.app_name,
        version=settings.version,
        environment=settings.environment,
        timestamp=utc_now_iso(),
        uptime_seconds=round(time.monotonic() - STARTED_AT, 3)
    )


@router.get(
    "/health/ping",
    status_code=status.HTTP_200_OK,
    summary="Ping",
    tags=["Health Checks"]
)
async def ping() -> Dict[str, Any]:
    return {"success": True, "message": "pong"}


@router.get(
    "/database-health",
    summary="Database Health Check",
    description="Checks PostgreSQL connectivity; 503 when the database is unreachable",
    response_model=DatabaseHealthResponse,
    tags=["Health Checks"],
    responses={503: {"model": DatabaseHealthResponse, "description": "Database is unhealthy"}}
)
async def database_health(database: PostgresDatabase = Depends(get_database)):
    """
    **Database health check**

    Reports `healthy` when a `SELECT 1` round trip succeeds, `disabled` when
    no `DATABASE_URL` is configured and `unhealthy` otherwise.
    """
    result = await database.health_check()
    healthy = result["status"] != "unhealthy"
    body = DatabaseHealthResponse(
        success=healthy,
        status=result["status"],
        message=result["message"],
        details=result.get("details", {}),
        timestamp=utc_now_iso()
    )

    if not healthy:
        logger.warning("Database health check failed", details=result.get("details"))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=body.model_dump()
        )
    return body
