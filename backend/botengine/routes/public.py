# /botengine/routes/public.py

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest
from datetime import datetime, timezone

from botengine.config.settings import settings
from botengine.utils.dependencies import verify_metrics_access
from botengine.services.db_service import db_service
from botengine.services.cache_service import cache_service

# Endpoints that do not require tenant authentication: health checks and
# the root endpoint. /metrics is protected by an API key when one is set.

router = APIRouter()

@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Revenda Bot Engine",
        "version": "1.0.0",
        "status": "operational",
        "environment": settings.environment
    }

@router.get("/health", summary="Basic Health Check")
async def health_check():
    """Basic health check for load balancers."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc)}

@router.get("/health/ready", summary="Readiness Probe")
async def readiness_check():
    """Readiness probe checking MongoDB and Redis."""
    if not await db_service.health_check():
        raise HTTPException(status_code=503, detail="Service not ready: database unavailable")
    try:
        await cache_service.redis.ping()
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Service not ready: {e}")
    return {"status": "ready"}

@router.get("/metrics", response_class=PlainTextResponse, dependencies=[Depends(verify_metrics_access)])
async def get_metrics():
    """Prometheus metrics endpoint."""
    return PlainTextResponse(generate_latest())
