"""
User and Follow Endpoints.

Profiles, self-service account management, per-user video listings and the
follow graph. Editing and deleting an account is only allowed for the account
holder.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel

from core.exceptions import ResourceNotFoundError
from core.logging_config import get_logger, log_function_call
from core.models import Follow, PublicUser, User, VideoWithUser
from services.follow_service import FollowService
from services.user_service import UserService
from services.video_service import VideoService
from .dependencies import (
    get_current_user,
    get_follow_service,
    get_optional_user,
    get_user_service,
    get_video_service,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/users", tags=["Users"])


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None


@router.get("/{user_id}", response_model=PublicUser)
async def get_user(
    user_id: int = Path(..., gt=0), users: UserService = Depends(get_user_service)
):
    return PublicUser.from_user(await users.get_user(user_id))


@router.put("/{user_id}", response_model=PublicUser)
@log_function_call(logger)
async def update_user(
    request: UpdateProfileRequest,
    user_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    user = await users.update_profile(
        user_id,
        current_user.id,
        name=request.name,
        bio=request.bio,
        avatar=request.avatar,
    )
    return PublicUser.from_user(user)


@router.delete("/{user_id}")
@log_function_call(logger)
async def delete_user(
    user_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    await users.delete_user(user_id, current_user.id)
    return {"message": "User deleted successfully"}


@router.get("/{user_id}/videos", response_model=List[VideoWithUser])
async def list_user_videos(
    user_id: int = Path(..., gt=0),
    viewer: Optional[User] = Depends(get_optional_user),
    videos: VideoService = Depends(get_video_service),
):
    return await videos.list_user_videos(user_id, viewer.id if viewer else None)


@router.post("/{user_id}/follow", response_model=Follow, status_code=201)
@log_function_call(logger)
async def follow_user(
    user_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    follows: FollowService = Depends(get_follow_service),
):
    return await follows.follow(current_user.id, user_id)


@router.delete("/{user_id}/follow")
@log_function_call(logger)
async def unfollow_user(
    user_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    follows: FollowService = Depends(get_follow_service),
):
    if not await follows.unfollow(current_user.id, user_id):
        raise ResourceNotFoundError("follow", user_id)
    return {"message": "Unfollowed successfully"}


@router.get("/{user_id}/following")
async def is_following(
    user_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    follows: FollowService = Depends(get_follow_service),
):
    return {"following": await follows.is_following(current_user.id, user_id)}
