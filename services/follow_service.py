"""
Follow Relation Service.

Maintains the follower graph and the denormalised ``followers_count`` /
``following_count`` columns on `User`.

Every change to the relation and both counters happens in one storage unit of
work, and counters are only ever moved with `StorageSession.increment`, so the
counters always equal the number of live `Follow` rows and never go negative.
"""

import logging
from typing import Optional

from core.exceptions import ResourceNotFoundError, StorageError, ValidationError
from core.models import Follow, User
from providers.storage_provider import StorageProvider, StorageSession

logger = logging.getLogger(__name__)


async def find_follow(
    s: StorageSession, follower_id: int, following_id: int
) -> Optional[Follow]:
    rows = await s.find(
        Follow, {"follower_id": follower_id, "following_id": following_id}, limit=1
    )
    return rows[0] if rows else None


async def purge_user_follows(s: StorageSession, user_id: int) -> int:
    """
    Remove every relation that references ``user_id``, keeping the other
    party's counters in step. Runs inside the caller's unit of work.
    """
    removed = 0
    for follow in await s.find(Follow, {"follower_id": user_id}):
        await s.increment(User, follow.following_id, "followers_count", -1)
        await s.delete(Follow, follow.id)
        removed += 1
    for follow in await s.find(Follow, {"following_id": user_id}):
        await s.increment(User, follow.follower_id, "following_count", -1)
        await s.delete(Follow, follow.id)
        removed += 1

    if removed:
        logger.info(f"Purged {removed} follow relations for user {user_id}")
    return removed


class FollowService:
    """Follow / unfollow with counter maintenance"""

    def __init__(self, storage: StorageProvider):
        self.storage = storage

    async def follow(self, follower_id: int, following_id: int) -> Follow:
        if follower_id == following_id:
            raise ValidationError("following_id", following_id, "Cannot follow yourself")

        try:
            async with self.storage.session() as s:
                if await s.get(User, follower_id) is None:
                    raise ResourceNotFoundError("user", follower_id)
                if await s.get(User, following_id) is None:
                    raise ResourceNotFoundError("user", following_id)

                existing = await find_follow(s, follower_id, following_id)
                if existing is not None:
                    return existing

                follow = await s.add(Follow(follower_id=follower_id, following_id=following_id))
                await s.increment(User, follower_id, "following_count", 1)
                await s.increment(User, following_id, "followers_count", 1)
        except StorageError:
            # A concurrent follow may have inserted the same pair first
            async with self.storage.session() as s:
                existing = await find_follow(s, follower_id, following_id)
            if existing is None:
                raise
            logger.info(f"User {follower_id} already follows user {following_id}")
            return existing

        logger.info(f"User {follower_id} followed user {following_id}")
        return follow

    async def unfollow(self, follower_id: int, following_id: int) -> bool:
        async with self.storage.session() as s:
            existing = await find_follow(s, follower_id, following_id)
            if existing is None:
                return False

            await s.delete(Follow, existing.id)
            await s.increment(User, follower_id, "following_count", -1)
            await s.increment(User, following_id, "followers_count", -1)

        logger.info(f"User {follower_id} unfollowed user {following_id}")
        return True

    async def is_following(self, follower_id: int, following_id: int) -> bool:
        async with self.storage.session() as s:
            return await find_follow(s, follower_id, following_id) is not None
