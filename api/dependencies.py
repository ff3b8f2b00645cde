"""
Request dependencies: services bound to the active storage provider, media
collaborators, the authenticated user and the anonymous ad-tracking session.
"""

import secrets
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core import config
from core.auth import get_auth_service
from core.database import get_storage
from core.exceptions import AuthenticationError
from core.models import User
from core.validation import InputValidator
from providers.media_provider import FFmpegMediaInspector, LocalMediaStore, MediaInspector, MediaStore
from providers.storage_provider import StorageProvider
from services.ad_service import AdService
from services.comment_service import CommentService
from services.feed_service import AdThrottle, FeedService
from services.follow_service import FollowService
from services.user_service import UserService
from services.video_service import VideoService

SESSION_COOKIE = "session_id"
SESSION_HEADER = "X-Session-ID"
SESSION_COOKIE_MAX_AGE = 365 * 24 * 3600

bearer_scheme = HTTPBearer(auto_error=False)

# Soft per-session ad throttle shared by all feed requests of this process
ad_throttle = AdThrottle()
media_inspector = FFmpegMediaInspector()


def get_media_store() -> MediaStore:
    return LocalMediaStore(config.get_media_root(), config.get_max_upload_bytes())


def get_media_inspector() -> MediaInspector:
    return media_inspector


def get_user_service(
    storage: StorageProvider = Depends(get_storage),
    media_store: MediaStore = Depends(get_media_store),
) -> UserService:
    return UserService(storage, media_store)


def get_follow_service(storage: StorageProvider = Depends(get_storage)) -> FollowService:
    return FollowService(storage)


def get_comment_service(storage: StorageProvider = Depends(get_storage)) -> CommentService:
    return CommentService(storage)


def get_ad_service(storage: StorageProvider = Depends(get_storage)) -> AdService:
    return AdService(storage)


def get_feed_service(
    storage: StorageProvider = Depends(get_storage),
    ad_service: AdService = Depends(get_ad_service),
) -> FeedService:
    return FeedService(storage, ad_service, ad_throttle)


def get_video_service(
    storage: StorageProvider = Depends(get_storage),
    media_store: MediaStore = Depends(get_media_store),
    inspector: MediaInspector = Depends(get_media_inspector),
) -> VideoService:
    return VideoService(storage, media_store, inspector)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    user_service: UserService = Depends(get_user_service),
) -> Optional[User]:
    """The caller's account, None when no bearer token was sent"""
    if credentials is None:
        return None

    user_id = get_auth_service().verify_access_token(credentials.credentials)
    async with user_service.storage.session() as s:
        user = await s.get(User, user_id)
    if user is None:
        raise AuthenticationError("User no longer exists")
    return user


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise AuthenticationError("Authentication required")
    return user


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None:
        raise AuthenticationError("Authentication required")
    return credentials.credentials


def get_client_session_id(request: Request, response: Response) -> str:
    """
    Anonymous session id for ad tracking: ``X-Session-ID`` header, then the
    ``session_id`` cookie, otherwise a fresh id set as a cookie.
    """
    session_id = request.headers.get(SESSION_HEADER) or request.cookies.get(SESSION_COOKIE)
    if session_id:
        return InputValidator.validate_session_id(session_id)

    session_id = secrets.token_urlsafe(16)
    attach_session_cookie(response, session_id)
    request.state.new_session_id = session_id
    return session_id


def attach_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        session_id,
        max_age=SESSION_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
    )


def get_today() -> str:
    """UTC calendar day that keys the daily ad quota"""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")
