"""
Database Management and Configuration.

This module builds the storage backend the application runs on and exposes it
to the rest of the code through a process-wide accessor, mirroring how the
engine and session factory are usually shared in a FastAPI service.

Key Components:
- `create_engine_from_url`: Builds the async SQLAlchemy engine. SQLite (via
  `aiosqlite`) is used for development and tests, PostgreSQL (via `asyncpg`)
  in production. In-memory SQLite URLs get a `StaticPool` so every session sees
  the same database.
- `init_storage`: Creates the configured `StorageProvider` (``sql`` or
  ``memory``) and initialises it. Called from the application lifespan.
- `get_storage`: Dependency used by routes to reach the active provider.
- `get_database_info`: Diagnostic information for health checks, with
  credentials masked.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool, StaticPool

from core import config
from providers.storage_provider import (
    MemoryStorageProvider,
    SQLStorageProvider,
    StorageProvider,
)

logger = logging.getLogger(__name__)

_storage: Optional[StorageProvider] = None


def create_engine_from_url(database_url: str) -> AsyncEngine:
    """Create async engine based on database type"""
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url or database_url.rstrip("/").endswith(":"):
            return create_async_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=False,
            )
        return create_async_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=False,  # Set to True for SQL debugging
            poolclass=AsyncAdaptedQueuePool,
        )

    # PostgreSQL configuration with asyncpg
    return create_async_engine(
        database_url,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Validate connections before use
        echo=False,
    )


def build_storage(backend: Optional[str] = None) -> StorageProvider:
    """Construct (but do not initialise) the configured storage provider"""
    backend = (backend or config.get_storage_backend()).lower()
    if backend == "memory":
        return MemoryStorageProvider(path=config.get_memory_store_path() or None)
    if backend == "sql":
        return SQLStorageProvider(create_engine_from_url(config.get_database_url()))
    raise ValueError(f"Unknown storage backend: {backend}")


async def init_storage(provider: Optional[StorageProvider] = None) -> StorageProvider:
    """
    Initialise and install the global storage provider.
    Called during application startup.
    """
    global _storage
    storage = provider or build_storage()
    await storage.initialize()
    _storage = storage
    logger.info(f"Storage initialized ({storage.backend_name} backend)")
    return storage


async def close_storage() -> None:
    global _storage
    if _storage is not None:
        await _storage.close()
        _storage = None


def get_storage() -> StorageProvider:
    """Get the active storage provider for dependency injection"""
    if _storage is None:
        raise RuntimeError("Storage has not been initialized")
    return _storage


async def get_database_info() -> Dict[str, Any]:
    """
    Get basic database information for health checks.
    """
    storage = get_storage()
    health = await storage.health_check()
    info: Dict[str, Any] = {
        "backend": storage.backend_name,
        "connection_healthy": health.get("status") == "healthy",
    }

    if storage.backend_name == "sql":
        database_url = config.get_database_url()
        info["database_url"] = (
            database_url.split("@")[1] if "@" in database_url else "masked"
        )  # Hide credentials
        info["database_type"] = (
            "postgresql" if "postgresql" in database_url else "sqlite"
        )
    else:
        info["rows"] = health.get("rows", {})

    return info
