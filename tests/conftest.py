import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock
from typing import Generator

from fastapi.testclient import TestClient

from main import app
from api.dependencies import ad_throttle, get_media_inspector
from core.database import create_engine_from_url
from core.models import Comment, User, Video
from providers.storage_provider import MemoryStorageProvider, SQLStorageProvider
from tests.fakes import FakeMediaInspector

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch, tmp_path):
    """Set up test environment variables."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.delenv("MEMORY_STORE_PATH", raising=False)
    monkeypatch.setenv("MEDIA_ROOT", str(tmp_path / "media"))
    monkeypatch.setenv("JWT_SECRET_KEY", "test-secret-key")
    ad_throttle.entries.clear()


@pytest.fixture
def media_root(tmp_path):
    return str(tmp_path / "media")


@pytest.fixture
def fake_inspector():
    return FakeMediaInspector()


@pytest.fixture
def test_client(fake_inspector) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app, backed by the memory store."""
    app.dependency_overrides[get_media_inspector] = lambda: fake_inspector
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def register_user(test_client):
    """Register a user and return (user, auth headers)."""

    def _register(username="alice", password="secret123"):
        response = test_client.post(
            "/api/auth/register", json={"username": username, "password": password}
        )
        assert response.status_code == 201, response.text
        data = response.json()
        return data["user"], {"Authorization": f"Bearer {data['access_token']}"}

    return _register


@pytest.fixture
async def memory_storage():
    storage = MemoryStorageProvider()
    await storage.initialize()
    return storage


@pytest.fixture
async def sql_storage():
    storage = SQLStorageProvider(create_engine_from_url("sqlite+aiosqlite:///:memory:"))
    await storage.initialize()
    yield storage
    await storage.close()


@pytest.fixture(params=["memory", "sql"])
async def storage(request):
    """Both backends, for tests of behaviour that must not depend on the backend."""
    if request.param == "memory":
        provider = MemoryStorageProvider()
    else:
        provider = SQLStorageProvider(create_engine_from_url("sqlite+aiosqlite:///:memory:"))
    await provider.initialize()
    yield provider
    await provider.close()


@pytest.fixture
def make_user(storage):
    async def _make(username):
        async with storage.session() as s:
            return await s.add(User(username=username))

    return _make


@pytest.fixture
def make_video(storage):
    async def _make(user_id, minutes=0, is_private=False, title="clip"):
        async with storage.session() as s:
            return await s.add(
                Video(
                    user_id=user_id,
                    title=title,
                    video_url=f"/media/videos/{title}.mp4",
                    duration=10,
                    is_private=is_private,
                    created_at=BASE_TIME + timedelta(minutes=minutes),
                )
            )

    return _make


@pytest.fixture
def make_comment(storage):
    async def _make(video_id, user_id, minutes=0, parent_id=None, content="nice"):
        async with storage.session() as s:
            comment = await s.add(
                Comment(
                    video_id=video_id,
                    user_id=user_id,
                    content=content,
                    parent_id=parent_id,
                    created_at=BASE_TIME + timedelta(minutes=minutes),
                )
            )
            await s.increment(Video, video_id, "comments_count", 1)
            return comment

    return _make

