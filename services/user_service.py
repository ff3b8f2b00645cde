"""
User Account Service.

Registration, login, profile edits and account deletion. Account deletion
keeps every denormalised counter consistent: follow counters of the other
parties, ``comments_count`` of every video the user commented on, and the
user's own videos (with their comments and media) are removed in one unit of
work before the media files are deleted.
"""

import logging
from typing import Optional

from core.auth import PasswordManager
from core.exceptions import (
    AuthenticationError,
    PermissionDeniedError,
    ResourceNotFoundError,
    ValidationError,
)
from core.models import Comment, User, Video
from core.validation import InputValidator
from providers.media_provider import MediaStore
from providers.storage_provider import StorageProvider
from services.comment_service import remove_comment_with_replies
from services.follow_service import purge_user_follows
from services.video_service import remove_video_cascade

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, storage: StorageProvider, media_store: Optional[MediaStore] = None):
        self.storage = storage
        self.media_store = media_store

    async def register(
        self,
        username: str,
        password: Optional[str] = None,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> User:
        username = InputValidator.validate_username(username)
        if email is not None:
            email = InputValidator.validate_email(email)
        name = InputValidator.optional_string(name, "name", max_length=100)
        password_hash = None
        if password is not None:
            password_hash = PasswordManager.hash_password(InputValidator.validate_password(password))

        async with self.storage.session() as s:
            if await s.find(User, {"username": username}, limit=1):
                raise ValidationError("username", username, "Username is already taken")
            if email and await s.find(User, {"email": email}, limit=1):
                raise ValidationError("email", email, "Email is already registered")

            user = await s.add(
                User(username=username, email=email, name=name, password_hash=password_hash)
            )

        logger.info(f"Registered user {user.username} ({user.id})")
        return user

    async def authenticate(self, username: str, password: str) -> User:
        async with self.storage.session() as s:
            rows = await s.find(User, {"username": username}, limit=1)

        user = rows[0] if rows else None
        if user is None or not PasswordManager.verify_password(password, user.password_hash):
            logger.warning(f"Failed login for {username}")
            raise AuthenticationError("Invalid username or password")
        return user

    async def get_user(self, user_id: int) -> User:
        async with self.storage.session() as s:
            user = await s.get(User, user_id)
        if user is None:
            raise ResourceNotFoundError("user", user_id)
        return user

    async def update_profile(
        self,
        user_id: int,
        requester_id: int,
        name: Optional[str] = None,
        bio: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> User:
        if user_id != requester_id:
            raise PermissionDeniedError("update profile", "users can only edit their own profile")

        async with self.storage.session() as s:
            user = await s.get(User, user_id)
            if user is None:
                raise ResourceNotFoundError("user", user_id)

            if name is not None:
                user.name = InputValidator.optional_string(name, "name", max_length=100)
            if bio is not None:
                user.bio = InputValidator.optional_string(bio, "bio", max_length=500)
            if avatar is not None:
                user.avatar = (
                    InputValidator.validate_url(avatar, field="avatar") if avatar.strip() else None
                )
            user = await s.add(user)

        logger.info(f"Updated profile of user {user_id}")
        return user

    async def delete_user(self, user_id: int, requester_id: int) -> None:
        if user_id != requester_id:
            raise PermissionDeniedError("delete user", "users can only delete their own account")

        media_urls = []
        async with self.storage.session() as s:
            if await s.get(User, user_id) is None:
                raise ResourceNotFoundError("user", user_id)

            await purge_user_follows(s, user_id)

            # Replies go first so a parent never disappears underneath them
            comments = await s.find(Comment, {"user_id": user_id})
            comments.sort(key=lambda c: c.parent_id is None)
            for comment in comments:
                if await s.get(Comment, comment.id) is not None:
                    await remove_comment_with_replies(s, comment)

            for video in await s.find(Video, {"user_id": user_id}):
                media_urls.extend(await remove_video_cascade(s, video))

            await s.delete(User, user_id)

        if self.media_store is not None:
            for url in media_urls:
                self.media_store.remove(url)
        logger.info(f"Deleted user {user_id}")
