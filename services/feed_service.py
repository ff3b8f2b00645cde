"""
Feed Assembly Service.

Builds the paged video feed and splices ads into it.

Key Components:
- `FeedService.get_page`: Newest public videos first (ties broken by id, newest
  insert first), ``page_size`` per page. A short page means end of feed.
- `interleave_ads`: The interleaving policy. After every third video
  (zero-based index ``i > 0`` with ``(i + 1) % 3 == 0``) it awaits a decision
  callable for an ad and splices one in when it gets one.
- `AdThrottle`: Soft per-session limit of one ad per ``window_seconds``,
  held in process memory like a TTL cache entry.
- `FeedService.compose_page`: A page of feed items ready for the client.
  Every eligible slot asks the throttle and then `AdService.should_show_ad`,
  so a declined slot does not stop later slots from showing an ad.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.models import Ad, User, Video, VideoWithUser, utc_now
from providers.storage_provider import StorageProvider
from services.ad_service import AdService

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
AD_SLOT_INTERVAL = 3
AD_THROTTLE_SECONDS = 300

NEWEST_FIRST = (("created_at", True), ("id", True))


async def interleave_ads(
    videos: List[Any], decide: Callable[[], Awaitable[Optional[Any]]]
) -> List[Dict[str, Any]]:
    """Feed items for ``videos`` with ads spliced in at the eligible slots"""
    items: List[Dict[str, Any]] = []
    for index, video in enumerate(videos):
        items.append({"type": "video", "video": video})
        if index > 0 and (index + 1) % AD_SLOT_INTERVAL == 0:
            ad = await decide()
            if ad is not None:
                items.append({"type": "ad", "ad": ad})
    return items


@dataclass
class ThrottleEntry:
    expires_at: datetime


class AdThrottle:
    """One ad per session per window, forgotten on restart"""

    def __init__(
        self,
        window_seconds: int = AD_THROTTLE_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.window = timedelta(seconds=window_seconds)
        self.clock = clock
        self.entries: Dict[str, ThrottleEntry] = {}

    def allows(self, session_id: str) -> bool:
        entry = self.entries.get(session_id)
        if entry is None:
            return True
        if self.clock() >= entry.expires_at:
            del self.entries[session_id]
            return True
        return False

    def mark_shown(self, session_id: str) -> None:
        # Expired entries are dropped on every write
        self.cleanup()
        self.entries[session_id] = ThrottleEntry(expires_at=self.clock() + self.window)

    def cleanup(self) -> int:
        now = self.clock()
        expired = [key for key, entry in self.entries.items() if now >= entry.expires_at]
        for key in expired:
            del self.entries[key]
        return len(expired)


class FeedService:
    def __init__(
        self,
        storage: StorageProvider,
        ad_service: Optional[AdService] = None,
        throttle: Optional[AdThrottle] = None,
    ):
        self.storage = storage
        self.ad_service = ad_service or AdService(storage)
        self.throttle = throttle or AdThrottle()

    async def list_videos(self, offset: int = 0, limit: int = DEFAULT_PAGE_SIZE) -> List[VideoWithUser]:
        """
        Public videos, newest first, skipping ``offset`` rows.

        Private videos are left out. The web client this API was built for
        listed every video here; they are now only reachable by their owner.
        """
        async with self.storage.session() as s:
            videos = await s.find(
                Video, {"is_private": False}, order_by=NEWEST_FIRST, offset=offset, limit=limit
            )
            authors: Dict[int, Optional[User]] = {}
            for video in videos:
                if video.user_id not in authors:
                    authors[video.user_id] = await s.get(User, video.user_id)

        return [VideoWithUser.build(v, authors.get(v.user_id)) for v in videos]

    async def get_page(
        self, cursor_offset: int = 0, page_size: int = DEFAULT_PAGE_SIZE
    ) -> List[VideoWithUser]:
        """Page number ``cursor_offset`` of the public feed"""
        return await self.list_videos(offset=cursor_offset * page_size, limit=page_size)

    async def compose_page(
        self,
        session_id: str,
        today: str,
        user_id: Optional[int] = None,
        cursor_offset: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        videos = await self.get_page(cursor_offset, page_size)

        async def decide() -> Optional[Ad]:
            if not self.throttle.allows(session_id):
                return None
            ad = await self.ad_service.should_show_ad(session_id, today, user_id=user_id)
            if ad is not None:
                self.throttle.mark_shown(session_id)
            return ad

        return {
            "items": await interleave_ads(videos, decide),
            "page": cursor_offset,
            "has_more": len(videos) == page_size,
        }
