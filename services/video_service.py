"""
Video Service.

Upload pipeline, retrieval with view counting, owner-only edits and deletes,
and the like/dislike counters.

Upload pipeline (`create_video`):
1. Validate title and description.
2. Store the upload through the `MediaStore` (video content types only, size
   capped).
3. Probe the duration. A failed probe is logged and the duration is assumed
   to be ``DEFAULT_DURATION``. Anything longer than the configured limit is
   deleted and rejected with ``VIDEO_TOO_LONG``.
4. Grab a thumbnail at 1% of the duration. Failure leaves it empty.
5. Persist the row. If that fails the stored files are removed before the
   error propagates.
"""

import logging
from typing import Any, List, Optional, Tuple

from core import config
from core.exceptions import PermissionDeniedError, ResourceNotFoundError, VideoTooLongError
from core.models import Comment, User, Video, VideoWithUser
from core.validation import validate_video_description, validate_video_title
from providers.media_provider import MediaInspector, MediaStore
from providers.storage_provider import StorageProvider, StorageSession

logger = logging.getLogger(__name__)

DEFAULT_DURATION = 60
THUMBNAIL_POSITION = 0.01


async def remove_video_cascade(s: StorageSession, video: Video) -> List[str]:
    """
    Delete a video and all of its comments inside the caller's unit of work.
    Returns the media URLs to remove once the unit of work has committed.
    """
    for comment in await s.find(Comment, {"video_id": video.id}):
        await s.delete(Comment, comment.id)
    await s.delete(Video, video.id)
    return [url for url in (video.video_url, video.thumbnail_url) if url]


class VideoService:
    def __init__(
        self,
        storage: StorageProvider,
        media_store: MediaStore,
        inspector: MediaInspector,
        max_duration: Optional[int] = None,
    ):
        self.storage = storage
        self.media_store = media_store
        self.inspector = inspector
        self.max_duration = max_duration or config.get_max_video_duration()

    async def create_video(
        self,
        author_id: int,
        title: str,
        upload: Any,
        description: Optional[str] = None,
        is_private: bool = False,
    ) -> Video:
        title = validate_video_title(title)
        description = validate_video_description(description)

        async with self.storage.session() as s:
            if await s.get(User, author_id) is None:
                raise ResourceNotFoundError("user", author_id)

        video_url = await self.media_store.save_upload(upload)
        video_path = self.media_store.path_for(video_url)

        duration = await self.inspector.probe_duration(video_path)
        if duration is None:
            logger.warning(f"Could not determine duration of {video_url}, assuming {DEFAULT_DURATION}s")
            duration = float(DEFAULT_DURATION)

        if duration > self.max_duration:
            self.media_store.remove(video_url)
            raise VideoTooLongError(duration, self.max_duration)

        thumbnail_url, thumbnail_ok = await self._make_thumbnail(video_url, video_path, duration)

        try:
            async with self.storage.session() as s:
                video = await s.add(
                    Video(
                        user_id=author_id,
                        title=title,
                        description=description,
                        video_url=video_url,
                        thumbnail_url=thumbnail_url if thumbnail_ok else None,
                        duration=int(round(duration)),
                        is_private=is_private,
                    )
                )
        except Exception:
            logger.error(f"Persisting video {video_url} failed, removing stored media")
            self.media_store.remove(video_url)
            if thumbnail_ok:
                self.media_store.remove(thumbnail_url)
            raise

        logger.info(f"User {author_id} uploaded video {video.id} ({video.duration}s)")
        return video

    async def _make_thumbnail(
        self, video_url: str, video_path: str, duration: float
    ) -> Tuple[str, bool]:
        thumbnail_path, thumbnail_url = self.media_store.thumbnail_target(video_url)
        ok = await self.inspector.make_thumbnail(
            video_path, thumbnail_path, duration * THUMBNAIL_POSITION
        )
        if not ok:
            logger.warning(f"No thumbnail generated for {video_url}")
        return thumbnail_url, ok

    async def get_video(self, video_id: int, viewer_id: Optional[int] = None) -> VideoWithUser:
        """Fetch a video for playback; every call counts as one view"""
        async with self.storage.session() as s:
            video = await s.get(Video, video_id)
            if video is None:
                raise ResourceNotFoundError("video", video_id)
            if video.is_private and video.user_id != viewer_id:
                raise PermissionDeniedError("view video", "video is private")

            await s.increment(Video, video_id, "views", 1)
            video = await s.get(Video, video_id)
            author = await s.get(User, video.user_id)

        return VideoWithUser.build(video, author)

    async def update_video(
        self,
        video_id: int,
        requester_id: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
        is_private: Optional[bool] = None,
    ) -> Video:
        async with self.storage.session() as s:
            video = await self._owned_video(s, video_id, requester_id, "update video")

            if title is not None:
                video.title = validate_video_title(title)
            if description is not None:
                video.description = validate_video_description(description)
            if is_private is not None:
                video.is_private = is_private

            video = await s.add(video)

        logger.info(f"Updated video {video_id}")
        return video

    async def delete_video(self, video_id: int, requester_id: int) -> None:
        async with self.storage.session() as s:
            video = await self._owned_video(s, video_id, requester_id, "delete video")
            media_urls = await remove_video_cascade(s, video)

        for url in media_urls:
            self.media_store.remove(url)
        logger.info(f"Deleted video {video_id}")

    async def like_video(self, video_id: int) -> None:
        await self._bump(video_id, "likes")

    async def dislike_video(self, video_id: int) -> None:
        await self._bump(video_id, "dislikes")

    async def list_user_videos(
        self, user_id: int, viewer_id: Optional[int] = None
    ) -> List[VideoWithUser]:
        filters = {"user_id": user_id}
        if viewer_id != user_id:
            filters["is_private"] = False

        async with self.storage.session() as s:
            author = await s.get(User, user_id)
            if author is None:
                raise ResourceNotFoundError("user", user_id)
            videos = await s.find(
                Video, filters, order_by=(("created_at", True), ("id", True))
            )

        return [VideoWithUser.build(v, author) for v in videos]

    async def _bump(self, video_id: int, field: str) -> None:
        async with self.storage.session() as s:
            if not await s.increment(Video, video_id, field, 1):
                raise ResourceNotFoundError("video", video_id)

    @staticmethod
    async def _owned_video(
        s: StorageSession, video_id: int, requester_id: int, action: str
    ) -> Video:
        video = await s.get(Video, video_id)
        if video is None:
            raise ResourceNotFoundError("video", video_id)
        if video.user_id != requester_id:
            raise PermissionDeniedError(action, "only the owner can do this")
        return video
