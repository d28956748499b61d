"""Health check endpoints for load balancers and monitoring."""

import os
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from plantops.auth.deps import get_store
from plantops.config import settings
from plantops.services.record_store import PlantRoutedRecordStore

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Lightweight health check for load balancer (no data service call)."""
    return {
        "status": "ok",
        "service": "PlantOps",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": os.getenv("ENVIRONMENT", "development"),
    }


@router.get("/health/ready")
async def readiness_check(store: PlantRoutedRecordStore = Depends(get_store)):
    """Readiness check: the approval partition must be readable."""
    result = await store.read_shared(settings.approval_partition)
    healthy = result.ok

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "service": "PlantOps",
            "checks": {
                "data_service": "ok" if healthy else f"error: {(result.error or '')[:100]}",
                "plants": list(store.router.plants),
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
