"""
Short Video API - Main Application Entry Point.

This module initializes and configures the FastAPI application for the Short
Video API: a short-video social platform where users upload, watch, like and
comment on videos, follow each other, and see occasional ads in their feed.

Key Responsibilities:
- Configure and launch the FastAPI application.
- Set up middleware for correlation IDs, error handling, performance logging
  and request validation.
- Initialize the storage backend (relational or in-memory) and the
  authentication service.
- Serve uploaded media from ``/media``.
- Mount the API routers (health, auth, users, videos/feed/comments/ads).
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from api.auth_endpoints import router as auth_router
from api.endpoints import router
from api.health_router import health_router, monitoring_router
from api.user_endpoints import router as user_router
from core import config
from core.auth import init_auth_service
from core.database import close_storage, init_storage
from core.logging_config import get_logger, setup_logging
from core.middleware import (
    CorrelationMiddleware,
    ErrorHandlingMiddleware,
    PerformanceMiddleware,
    RequestValidationMiddleware,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    logger = get_logger("api.startup")

    os.makedirs(config.get_media_root(), exist_ok=True)

    storage = await init_storage()
    logger.info(f"Storage initialized ({storage.backend_name})")

    init_auth_service()
    logger.info("Authentication service initialized")

    logger.info("Service startup completed")
    yield

    # Cleanup on shutdown
    logger.info("Shutting down Short Video API")
    await close_storage()
    logger.info("Cleanup completed")


app = FastAPI(
    title="Short Video API",
    description="Short-video sharing with feed, comments, follows and ads",
    version="1.0.0",
    lifespan=lifespan,
)

# Innermost first: errors are rendered before the outer layers see the response
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(RequestValidationMiddleware)
app.add_middleware(PerformanceMiddleware)
app.add_middleware(CorrelationMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health routers first (no authentication required for monitoring)
app.include_router(health_router)
app.include_router(monitoring_router)

app.include_router(auth_router, prefix="/api")
app.include_router(user_router, prefix="/api")
app.include_router(router, prefix="/api")

app.mount(
    "/media",
    StaticFiles(directory=config.get_media_root(), check_dir=False),
    name="media",
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=config.get_environment() == "development",
        log_level="info",
    )
