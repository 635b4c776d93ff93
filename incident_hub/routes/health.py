"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

from fastapi import APIRouter, Depends, HTTPException
import logging

from incident_hub.core.settings import settings
from incident_hub.routes.dependencies import resolve_store
from incident_hub.services.incident_store import IncidentStore
from incident_hub.utils.timestamps import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": utc_now().isoformat(),
    }


@router.get("/db")
def database_health(store: IncidentStore = Depends(resolve_store)):
    """
    Database connectivity check.
    Asks the configured incident store for a lightweight round trip.
    """
    try:
        details = store.healthcheck()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(e)}",
        )

    return {
        "status": "healthy",
        **details,
        "timestamp": utc_now().isoformat(),
    }
