"""Health-check router."""

import logging
import os
from datetime import datetime, timezone

from fastapi import APIRouter

from gigboard import database
from gigboard.scheduler import scheduler

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/")
async def root():
    """Health check"""
    return {"status": "ok", "message": "Gigboard API is running"}


@router.get("/api/v1/health")
async def health_check():
    """Detailed health check with configuration and degradation status."""
    degraded = []
    if database.async_session_factory is None:
        degraded.append("database")
    if not os.getenv("JWT_SECRET"):
        degraded.append("jwt_secret_default")

    return {
        "status": "healthy" if "database" not in degraded else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "database": "configured" if database.async_session_factory else "disabled",
            "scheduler": "running" if scheduler.running else "stopped",
        },
        "degraded": degraded or None,
    }
