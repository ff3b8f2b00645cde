"""
Runtime configuration for the Short Video API.

All settings come from environment variables so the same build can run against
the in-memory store during development and a relational database in
production. Values are read at call time, which lets tests override them with
``monkeypatch.setenv``.
"""

import os
from typing import List


def get_environment() -> str:
    return os.getenv("ENVIRONMENT", "development").lower()


def get_storage_backend() -> str:
    """Either ``sql`` (default) or ``memory``"""
    return os.getenv("STORAGE_BACKEND", "sql").lower()


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./short_video.db")


def get_memory_store_path() -> str:
    # Empty means the memory store is volatile
    return os.getenv("MEMORY_STORE_PATH", "")


def get_media_root() -> str:
    return os.getenv("MEDIA_ROOT", "./media")


def get_max_upload_bytes() -> int:
    return int(os.getenv("MAX_UPLOAD_BYTES", str(100 * 1024 * 1024)))


def get_max_video_duration() -> int:
    return int(os.getenv("MAX_VIDEO_DURATION", "60"))


def get_access_token_expire_minutes() -> int:
    return int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(30 * 24 * 60)))


def get_cors_origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
