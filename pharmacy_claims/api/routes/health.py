"""
Health Check Routes
Service health monitoring endpoints
Source: https://microservices.io/patterns/observability/health-check-api.html
"""

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from pharmacy_claims.api.deps import get_gateway
from pharmacy_claims.gateways.persistence_gateway import PersistenceGateway
from pharmacy_claims.utils.errors import StorageError
from pharmacy_claims.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])

SERVICE_NAME = "pharmacy-claims-api"


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Liveness probe; does not touch the database."""
    return {"status": "healthy"}


@router.get("/health/detailed")
async def detailed_health_check(
    gateway: PersistenceGateway = Depends(get_gateway),
) -> JSONResponse:
    """
    Readiness probe with dependency status.

    Returns 503 when the database does not answer.
    """
    try:
        await gateway.ping()
        db_healthy = True
    except StorageError as e:
        logger.error(f"Database health check failed: {e}")
        db_healthy = False

    overall_status = "healthy" if db_healthy else "unhealthy"
    return JSONResponse(
        status_code=200 if db_healthy else 503,
        content={
            "status": overall_status,
            "service": SERVICE_NAME,
            "checks": {"database": overall_status},
        },
    )
