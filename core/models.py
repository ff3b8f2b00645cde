"""
Core data models for the Short Video API.

Table models (SQLModel) are shared by both storage backends. The projection
models at the bottom are plain pydantic models used for API responses: they
denormalise the author onto videos and comments the way the feed and the
comment sheet consume them.
"""

from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy import Column, JSON, UniqueConstraint
from sqlmodel import SQLModel, Field
from pydantic import BaseModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """Registered account. Follower counters mirror the Follow relation."""

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True, max_length=30)
    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, index=True, max_length=254)
    bio: Optional[str] = Field(default=None, max_length=500)
    avatar: Optional[str] = Field(default=None, max_length=1024)
    password_hash: Optional[str] = Field(default=None, max_length=255)
    followers_count: int = Field(default=0, ge=0)
    following_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)


class Video(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    title: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)
    video_url: str = Field(max_length=1024)
    thumbnail_url: Optional[str] = Field(default=None, max_length=1024)
    duration: int = Field(default=0, ge=0)  # seconds
    views: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    dislikes: int = Field(default=0, ge=0)
    comments_count: int = Field(default=0, ge=0)
    is_private: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    # Reserved for adaptive bitrate; never populated
    qualities: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))


class Comment(SQLModel, table=True):
    """
    Comment on a video. ``parent_id`` is None for top-level comments and
    otherwise always points at a top-level comment of the same video.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    video_id: int = Field(index=True)
    user_id: int = Field(index=True)
    content: str = Field(max_length=500)
    likes: int = Field(default=0, ge=0)
    parent_id: Optional[int] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    image: Optional[str] = Field(default=None, max_length=1024)


class Follow(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("follower_id", "following_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    follower_id: int = Field(index=True)  # user who follows
    following_id: int = Field(index=True)  # user being followed
    created_at: datetime = Field(default_factory=utc_now)


class Ad(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    video_url: str = Field(max_length=1024)
    brand_name: str = Field(max_length=100)
    brand_logo: Optional[str] = Field(default=None, max_length=1024)
    action_url: Optional[str] = Field(default=None, max_length=2048)
    created_at: datetime = Field(default_factory=utc_now)


class AdView(SQLModel, table=True):
    """One showing of an ad to a session; ``viewed_date`` is the daily bucket."""

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, index=True)  # None for anonymous
    session_id: str = Field(index=True, max_length=64)
    ad_id: int = Field(index=True)
    viewed_at: datetime = Field(default_factory=utc_now)
    viewed_date: str = Field(index=True, max_length=10)  # YYYY-MM-DD


# Projections returned by the API


class UserSummary(BaseModel):
    id: int
    username: str
    name: Optional[str] = None
    avatar: Optional[str] = None

    @classmethod
    def from_user(cls, user: Optional[User]) -> "UserSummary":
        """Author projection; a missing user becomes the ``unknown`` sentinel"""
        if user is None:
            return cls(id=0, username="unknown", name=None, avatar=None)
        return cls(id=user.id, username=user.username, name=user.name, avatar=user.avatar)


class PublicUser(BaseModel):
    id: int
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    followers_count: int = 0
    following_count: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
        return cls(**user.model_dump(exclude={"password_hash"}))


class VideoWithUser(BaseModel):
    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    video_url: str
    thumbnail_url: Optional[str] = None
    duration: int
    views: int
    likes: int
    dislikes: int
    comments_count: int
    is_private: bool
    created_at: datetime
    user: UserSummary

    @classmethod
    def build(cls, video: Video, author: Optional[User]) -> "VideoWithUser":
        return cls(
            **video.model_dump(exclude={"qualities"}),
            user=UserSummary.from_user(author),
        )


class CommentWithUser(BaseModel):
    id: int
    video_id: int
    user_id: int
    content: str
    likes: int
    parent_id: Optional[int] = None
    created_at: datetime
    image: Optional[str] = None
    user: UserSummary
    replies: List["CommentWithUser"] = []

    @classmethod
    def build(
        cls,
        comment: Comment,
        author: Optional[User],
        replies: Optional[List["CommentWithUser"]] = None,
    ) -> "CommentWithUser":
        return cls(
            **comment.model_dump(),
            user=UserSummary.from_user(author),
            replies=replies or [],
        )


CommentWithUser.model_rebuild()
