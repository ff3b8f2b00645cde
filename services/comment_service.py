"""
Comment Tree Service.

Comments form a flat two-level tree per video: top-level comments, each with a
list of direct replies. A reply to a reply is attached to the top-level
comment it belongs to, so the tree never gets deeper.

Key Components:
- `build_tree`: Assembles the tree for the comment sheet. Newest top-level
  comments first; replies oldest first under their parent. Replies whose
  parent is not a top-level comment of the same video are dropped with a
  warning. Missing authors are rendered as the ``unknown`` sentinel.
- `add_comment` / `delete_comment`: Keep ``Video.comments_count`` equal to
  the number of stored comments by adjusting it in the same unit of work as
  the insert or delete.
- `like_comment`: Atomic like counter.
"""

import logging
from typing import Dict, Iterable, List, Optional

from core.exceptions import PermissionDeniedError, ResourceNotFoundError
from core.models import Comment, CommentWithUser, User, Video
from core.validation import InputValidator, validate_comment_text
from providers.storage_provider import StorageProvider, StorageSession

logger = logging.getLogger(__name__)


async def load_authors(s: StorageSession, user_ids: Iterable[int]) -> Dict[int, User]:
    authors: Dict[int, User] = {}
    for user_id in set(user_ids):
        user = await s.get(User, user_id)
        if user is not None:
            authors[user_id] = user
    return authors


async def remove_comment_with_replies(s: StorageSession, comment: Comment) -> int:
    """
    Delete a comment and its direct replies and decrement the video's
    ``comments_count`` by the number of rows removed. Returns that number.
    """
    removed = 0
    for reply in await s.find(Comment, {"parent_id": comment.id}):
        if await s.delete(Comment, reply.id):
            removed += 1
    if await s.delete(Comment, comment.id):
        removed += 1

    if removed:
        await s.increment(Video, comment.video_id, "comments_count", -removed)
    return removed


def arrange_tree(
    comments: List[Comment], authors: Dict[int, User]
) -> List[CommentWithUser]:
    """Order and nest one video's comments"""
    top_level = [c for c in comments if c.parent_id is None]
    top_ids = {c.id for c in top_level}

    replies_by_parent: Dict[int, List[Comment]] = {}
    for comment in comments:
        if comment.parent_id is None:
            continue
        if comment.parent_id not in top_ids:
            logger.warning(
                f"Dropping orphan reply {comment.id}: parent {comment.parent_id} "
                f"is not a top-level comment of video {comment.video_id}"
            )
            continue
        replies_by_parent.setdefault(comment.parent_id, []).append(comment)

    top_level.sort(key=lambda c: (c.created_at, c.id), reverse=True)

    tree = []
    for parent in top_level:
        replies = sorted(
            replies_by_parent.get(parent.id, []), key=lambda c: (c.created_at, c.id)
        )
        tree.append(
            CommentWithUser.build(
                parent,
                authors.get(parent.user_id),
                [CommentWithUser.build(r, authors.get(r.user_id)) for r in replies],
            )
        )
    return tree


class CommentService:
    def __init__(self, storage: StorageProvider):
        self.storage = storage

    async def build_tree(self, video_id: int) -> List[CommentWithUser]:
        async with self.storage.session() as s:
            comments = await s.find(Comment, {"video_id": video_id})
            authors = await load_authors(s, (c.user_id for c in comments))
        return arrange_tree(comments, authors)

    async def get_comment(self, comment_id: int) -> Comment:
        async with self.storage.session() as s:
            comment = await s.get(Comment, comment_id)
        if comment is None:
            raise ResourceNotFoundError("comment", comment_id)
        return comment

    async def add_comment(
        self,
        video_id: int,
        author_id: int,
        content: str,
        parent_id: Optional[int] = None,
        image: Optional[str] = None,
    ) -> CommentWithUser:
        content = validate_comment_text(content)
        if image is not None:
            image = InputValidator.validate_url(image, field="image")

        async with self.storage.session() as s:
            if await s.get(Video, video_id) is None:
                raise ResourceNotFoundError("video", video_id)

            if parent_id is not None:
                parent = await s.get(Comment, parent_id)
                if parent is None or parent.video_id != video_id:
                    raise ResourceNotFoundError("comment", parent_id)
                # Replies to replies hang off the top-level comment
                if parent.parent_id is not None:
                    parent_id = parent.parent_id

            comment = await s.add(
                Comment(
                    video_id=video_id,
                    user_id=author_id,
                    content=content,
                    parent_id=parent_id,
                    image=image,
                )
            )
            await s.increment(Video, video_id, "comments_count", 1)
            author = await s.get(User, author_id)

        logger.info(f"User {author_id} commented on video {video_id} (comment {comment.id})")
        return CommentWithUser.build(comment, author)

    async def like_comment(self, comment_id: int) -> None:
        async with self.storage.session() as s:
            if not await s.increment(Comment, comment_id, "likes", 1):
                raise ResourceNotFoundError("comment", comment_id)

    async def delete_comment(self, comment_id: int, requester_id: int) -> int:
        async with self.storage.session() as s:
            comment = await s.get(Comment, comment_id)
            if comment is None:
                raise ResourceNotFoundError("comment", comment_id)
            if comment.user_id != requester_id:
                raise PermissionDeniedError("delete comment", "only the author can delete a comment")

            removed = await remove_comment_with_replies(s, comment)

        logger.info(f"Deleted comment {comment_id} and {removed - 1} replies")
        return removed
