"""
Video, Feed, Comment and Ad Endpoints.

This module exposes the core of the Short Video API: uploads and playback,
the paged feed with interleaved ads, the comment sheet and the ad catalogue.
All business rules live in the services; handlers only translate between HTTP
and service calls. Errors raised by services are `VideoAPIException`
subclasses and are rendered by `ErrorHandlingMiddleware`.

Endpoints Provided:
- `/videos`: List (offset/limit) and multipart upload.
- `/feed`: Composed feed page of video and ad items.
- `/videos/{id}`: Playback (counts a view), owner edit and delete.
- `/videos/{id}/like`, `/videos/{id}/dislike`: Reaction counters.
- `/videos/{id}/comments`: Comment tree and new comments.
- `/comments/{id}/like`, `/comments/{id}`: Comment like and author delete.
- `/ads/random`, `/ads/views`, `/ads`: Ad gating and catalogue.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Path, Query, Request, Response, UploadFile
from pydantic import BaseModel

from core.logging_config import get_logger, log_function_call
from core.models import Ad, AdView, CommentWithUser, User, Video, VideoWithUser
from services.ad_service import AdService
from services.comment_service import CommentService
from services.feed_service import DEFAULT_PAGE_SIZE, FeedService
from services.video_service import VideoService
from .dependencies import (
    attach_session_cookie,
    get_ad_service,
    get_client_session_id,
    get_comment_service,
    get_current_user,
    get_feed_service,
    get_optional_user,
    get_today,
    get_video_service,
)

logger = get_logger(__name__)

router = APIRouter()

MAX_PAGE_SIZE = 50


class UpdateVideoRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    is_private: Optional[bool] = None


class CreateCommentRequest(BaseModel):
    content: str
    parent_id: Optional[int] = None
    image: Optional[str] = None


class CreateAdRequest(BaseModel):
    title: str
    video_url: str
    brand_name: str
    description: Optional[str] = None
    brand_logo: Optional[str] = None
    action_url: Optional[str] = None


class AdViewRequest(BaseModel):
    ad_id: int


# Videos


@router.get("/videos", response_model=List[VideoWithUser], tags=["Videos"])
async def list_videos(
    offset: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    feed: FeedService = Depends(get_feed_service),
):
    return await feed.list_videos(offset=offset, limit=limit)


@router.post("/videos", response_model=Video, status_code=201, tags=["Videos"])
@log_function_call(logger)
async def upload_video(
    title: str = Form(...),
    description: Optional[str] = Form(None),
    is_private: bool = Form(False),
    video: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    videos: VideoService = Depends(get_video_service),
):
    try:
        return await videos.create_video(
            current_user.id,
            title,
            video,
            description=description,
            is_private=is_private,
        )
    finally:
        await video.close()


@router.get("/feed", tags=["Feed"])
async def get_feed(
    page: int = Query(0, ge=0),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    session_id: str = Depends(get_client_session_id),
    today: str = Depends(get_today),
    viewer: Optional[User] = Depends(get_optional_user),
    feed: FeedService = Depends(get_feed_service),
):
    return await feed.compose_page(
        session_id,
        today,
        user_id=viewer.id if viewer else None,
        cursor_offset=page,
        page_size=page_size,
    )


@router.get("/videos/{video_id}", response_model=VideoWithUser, tags=["Videos"])
async def get_video(
    video_id: int = Path(..., gt=0),
    viewer: Optional[User] = Depends(get_optional_user),
    videos: VideoService = Depends(get_video_service),
):
    return await videos.get_video(video_id, viewer.id if viewer else None)


@router.put("/videos/{video_id}", response_model=Video, tags=["Videos"])
@log_function_call(logger)
async def update_video(
    request: UpdateVideoRequest,
    video_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    videos: VideoService = Depends(get_video_service),
):
    return await videos.update_video(
        video_id,
        current_user.id,
        title=request.title,
        description=request.description,
        is_private=request.is_private,
    )


@router.delete("/videos/{video_id}", tags=["Videos"])
@log_function_call(logger)
async def delete_video(
    video_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    videos: VideoService = Depends(get_video_service),
):
    await videos.delete_video(video_id, current_user.id)
    return {"message": "Video deleted successfully"}


@router.post("/videos/{video_id}/like", tags=["Videos"])
async def like_video(
    video_id: int = Path(..., gt=0), videos: VideoService = Depends(get_video_service)
):
    await videos.like_video(video_id)
    return {"success": True}


@router.post("/videos/{video_id}/dislike", tags=["Videos"])
async def dislike_video(
    video_id: int = Path(..., gt=0), videos: VideoService = Depends(get_video_service)
):
    await videos.dislike_video(video_id)
    return {"success": True}


# Comments


@router.get(
    "/videos/{video_id}/comments", response_model=List[CommentWithUser], tags=["Comments"]
)
async def get_comments(
    video_id: int = Path(..., gt=0), comments: CommentService = Depends(get_comment_service)
):
    return await comments.build_tree(video_id)


@router.post(
    "/videos/{video_id}/comments",
    response_model=CommentWithUser,
    status_code=201,
    tags=["Comments"],
)
@log_function_call(logger)
async def create_comment(
    request: CreateCommentRequest,
    video_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    comments: CommentService = Depends(get_comment_service),
):
    return await comments.add_comment(
        video_id,
        current_user.id,
        request.content,
        parent_id=request.parent_id,
        image=request.image,
    )


@router.post("/comments/{comment_id}/like", tags=["Comments"])
async def like_comment(
    comment_id: int = Path(..., gt=0), comments: CommentService = Depends(get_comment_service)
):
    await comments.like_comment(comment_id)
    return {"success": True}


@router.delete("/comments/{comment_id}", tags=["Comments"])
@log_function_call(logger)
async def delete_comment(
    comment_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    comments: CommentService = Depends(get_comment_service),
):
    await comments.delete_comment(comment_id, current_user.id)
    return {"success": True}


# Ads


@router.get("/ads/random", response_model=Optional[Ad], tags=["Ads"])
async def get_random_ad(
    request: Request,
    session_id: str = Depends(get_client_session_id),
    today: str = Depends(get_today),
    viewer: Optional[User] = Depends(get_optional_user),
    ads: AdService = Depends(get_ad_service),
):
    ad = await ads.should_show_ad(session_id, today, user_id=viewer.id if viewer else None)
    if ad is None:
        response = Response(status_code=204)
        if getattr(request.state, "new_session_id", None):
            attach_session_cookie(response, session_id)
        return response
    return ad


@router.post("/ads/views", response_model=AdView, status_code=201, tags=["Ads"])
async def record_ad_view(
    request: AdViewRequest,
    session_id: str = Depends(get_client_session_id),
    today: str = Depends(get_today),
    viewer: Optional[User] = Depends(get_optional_user),
    ads: AdService = Depends(get_ad_service),
):
    return await ads.record_ad_view(
        session_id, request.ad_id, today, user_id=viewer.id if viewer else None
    )


@router.get("/ads", response_model=List[Ad], tags=["Ads"])
async def list_ads(ads: AdService = Depends(get_ad_service)):
    return await ads.list_ads()


@router.post("/ads", response_model=Ad, status_code=201, tags=["Ads"])
@log_function_call(logger)
async def create_ad(
    request: CreateAdRequest,
    current_user: User = Depends(get_current_user),
    ads: AdService = Depends(get_ad_service),
):
    ad = await ads.create_ad(
        title=request.title,
        video_url=request.video_url,
        brand_name=request.brand_name,
        description=request.description,
        brand_logo=request.brand_logo,
        action_url=request.action_url,
    )
    logger.info(f"User {current_user.id} created ad {ad.id}")
    return ad


@router.get("/ads/{ad_id}", response_model=Ad, tags=["Ads"])
async def get_ad(ad_id: int = Path(..., gt=0), ads: AdService = Depends(get_ad_service)):
    return await ads.get_ad(ad_id)
