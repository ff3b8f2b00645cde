"""
Health and Monitoring Router.

Public, unauthenticated endpoints for liveness probes and operators.

Endpoints Provided:
- `/healthcheck`: Lightweight liveness check.
- `/monitoring/ping`: Connectivity test.
- `/monitoring/detailed`: Component status, currently the storage backend and
  the media directory. A failing component reports ``degraded`` instead of
  failing the whole check.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter

from core import config
from core.database import get_database_info
from core.logging_config import get_logger

logger = get_logger(__name__)

SERVICE_NAME = "Short Video API"
VERSION = "1.0.0"

health_router = APIRouter(tags=["Health & Monitoring"])

monitoring_router = APIRouter(prefix="/monitoring", tags=["Health & Monitoring"])


@health_router.get("/healthcheck")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint (no authentication required)

    Returns:
        Dict with status, timestamp, and version info
    """
    logger.debug("Health check requested")

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
        "service": SERVICE_NAME,
    }


@monitoring_router.get("/ping")
async def ping() -> Dict[str, str]:
    logger.debug("Ping requested")
    return {
        "message": "pong",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
    }


@monitoring_router.get("/detailed")
async def detailed_health_check() -> Dict[str, Any]:
    """Detailed health check with component status"""
    logger.info("Detailed health check requested")

    health_status: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
        "service": SERVICE_NAME,
        "environment": config.get_environment(),
        "components": {},
    }

    try:
        db_info = await get_database_info()
        healthy = db_info.get("connection_healthy", False)
        health_status["components"]["storage"] = {
            "status": "healthy" if healthy else "unhealthy",
            "info": db_info,
        }
        if not healthy:
            health_status["status"] = "degraded"
    except Exception as e:
        logger.error(f"Storage health check failed: {e}")
        health_status["components"]["storage"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "degraded"

    media_root = config.get_media_root()
    media_ok = os.path.isdir(media_root) and os.access(media_root, os.W_OK)
    health_status["components"]["media"] = {
        "status": "healthy" if media_ok else "unhealthy",
        "root": media_root,
    }
    if not media_ok:
        health_status["status"] = "degraded"

    return health_status
