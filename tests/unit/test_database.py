"""
Unit tests for storage wiring.

Verifies backend selection from the environment, the global provider
lifecycle and the health information reported for monitoring.
"""
import pytest

from core import database
from core.database import (
    build_storage,
    close_storage,
    get_database_info,
    get_storage,
    init_storage,
)
from providers.storage_provider import MemoryStorageProvider, SQLStorageProvider


@pytest.fixture
async def reset_global_storage():
    yield
    await close_storage()


@pytest.mark.unit
def test_build_storage_selects_backend(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

    assert isinstance(build_storage("memory"), MemoryStorageProvider)
    assert isinstance(build_storage("sql"), SQLStorageProvider)
    with pytest.raises(ValueError):
        build_storage("redis")


@pytest.mark.unit
def test_build_storage_uses_environment(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "memory")

    assert isinstance(build_storage(), MemoryStorageProvider)


@pytest.mark.unit
async def test_storage_lifecycle(reset_global_storage):
    with pytest.raises(RuntimeError):
        get_storage()

    storage = await init_storage(MemoryStorageProvider())
    assert get_storage() is storage

    await close_storage()
    assert database._storage is None


@pytest.mark.unit
async def test_memory_database_info(reset_global_storage):
    await init_storage(MemoryStorageProvider())

    info = await get_database_info()

    assert info["backend"] == "memory"
    assert info["connection_healthy"] is True
    assert "rows" in info


@pytest.mark.unit
async def test_sql_database_info_masks_credentials(monkeypatch, reset_global_storage):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    await init_storage(build_storage("sql"))

    info = await get_database_info()

    assert info["backend"] == "sql"
    assert info["connection_healthy"] is True
    assert info["database_type"] == "sqlite"
    assert info["database_url"] == "masked"
