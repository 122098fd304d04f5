"""Health check endpoints.

Provides endpoints for:
- Basic health checks
- Kubernetes readiness/liveness probes
"""

import time
from typing import Dict, Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from digitalsky.core.config import settings
from digitalsky.core.db_client import db
from digitalsky.core.logging import get_logger
from digitalsky.core.storage import get_file_storage

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/")
async def root() -> Dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "message": f"Welcome to {settings.PROJECT_NAME}",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "status": "running",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/health",
    }


@router.get("/health")
async def health_check():
    """
    Health check endpoint with database connectivity verification.

    Returns 200 if healthy, 503 if database is unavailable.
    """
    db_available = await db.test_connection(timeout=5.0)

    if not db_available:
        logger.warning("Health check failed: database unavailable")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "timestamp": time.time(),
                "version": settings.VERSION,
                "database": "unavailable",
            },
        )

    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "database": "connected",
        "storage": settings.STORAGE_BACKEND,
    }


@router.get("/ready")
async def readiness_check():
    """Readiness probe endpoint for Kubernetes."""
    db_available = await db.test_connection(timeout=5.0)
    storage_available = get_file_storage().health_check()

    if not (db_available and storage_available):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "ready": False,
                "database": db_available,
                "storage": storage_available,
                "timestamp": time.time(),
            },
        )

    return {"ready": True, "timestamp": time.time()}


@router.get("/live")
async def liveness_check() -> Dict[str, Any]:
    """Liveness probe endpoint for Kubernetes."""
    return {"alive": True, "timestamp": time.time()}
