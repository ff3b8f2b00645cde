"""
Unit tests for the comment tree: ordering, reply flattening and
comments_count bookkeeping.
"""
import pytest
from unittest.mock import patch

from core.exceptions import PermissionDeniedError, ResourceNotFoundError, ValidationError
from core.models import Comment, Video
from services.comment_service import CommentService


async def comments_count(storage, video_id):
    async with storage.session() as s:
        video = await s.get(Video, video_id)
        stored = await s.count(Comment, {"video_id": video_id})
    return video.comments_count, stored


@pytest.mark.unit
@pytest.mark.asyncio
async def test_build_tree_orders_top_level_desc_and_replies_asc(
    storage, make_user, make_video, make_comment
):
    user = await make_user("alice")
    video = await make_video(user.id)
    c1 = await make_comment(video.id, user.id, minutes=10, content="C1")
    c2 = await make_comment(video.id, user.id, minutes=20, content="C2")
    await make_comment(video.id, user.id, minutes=15, parent_id=c1.id, content="R1")
    await make_comment(video.id, user.id, minutes=12, parent_id=c1.id, content="R2")

    tree = await CommentService(storage).build_tree(video.id)

    assert [c.content for c in tree] == ["C2", "C1"]
    assert [r.content for r in tree[1].replies] == ["R2", "R1"]
    assert tree[0].replies == []
    assert tree[0].user.username == "alice"
    assert tree[1].id == c1.id and tree[0].id == c2.id


@pytest.mark.unit
@pytest.mark.asyncio
async def test_build_tree_breaks_timestamp_ties_by_id(
    storage, make_user, make_video, make_comment
):
    user = await make_user("alice")
    video = await make_video(user.id)
    first = await make_comment(video.id, user.id, minutes=5, content="first")
    second = await make_comment(video.id, user.id, minutes=5, content="second")
    r1 = await make_comment(video.id, user.id, minutes=6, parent_id=first.id, content="r1")
    r2 = await make_comment(video.id, user.id, minutes=6, parent_id=first.id, content="r2")

    tree = await CommentService(storage).build_tree(video.id)

    assert [c.id for c in tree] == [second.id, first.id]
    assert [r.id for r in tree[1].replies] == [r1.id, r2.id]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_build_tree_drops_orphans_and_uses_sentinel_author(
    storage, make_user, make_video, make_comment
):
    user = await make_user("alice")
    video = await make_video(user.id)
    await make_comment(video.id, 4242, minutes=1, content="ghost")
    await make_comment(video.id, user.id, minutes=2, parent_id=9999, content="orphan")

    with patch("services.comment_service.logger") as mock_logger:
        tree = await CommentService(storage).build_tree(video.id)

    assert [c.content for c in tree] == ["ghost"]
    assert tree[0].user.id == 0
    assert tree[0].user.username == "unknown"
    mock_logger.warning.assert_called_once()
    assert "orphan reply" in mock_logger.warning.call_args[0][0]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_add_comment_increments_count(storage, make_user, make_video):
    user = await make_user("alice")
    video = await make_video(user.id)
    service = CommentService(storage)

    comment = await service.add_comment(video.id, user.id, "  hi  ")

    assert comment.content == "hi"
    assert comment.likes == 0
    assert comment.parent_id is None
    assert comment.user.username == "alice"
    assert await comments_count(storage, video.id) == (1, 1)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_add_comment_rejects_blank_and_missing_targets(storage, make_user, make_video):
    user = await make_user("alice")
    video = await make_video(user.id)
    service = CommentService(storage)

    with pytest.raises(ValidationError):
        await service.add_comment(video.id, user.id, "   ")
    with pytest.raises(ResourceNotFoundError) as exc_info:
        await service.add_comment(9999, user.id, "hi")
    assert exc_info.value.error_code == "VIDEO_NOT_FOUND"
    with pytest.raises(ResourceNotFoundError) as exc_info:
        await service.add_comment(video.id, user.id, "hi", parent_id=9999)
    assert exc_info.value.error_code == "COMMENT_NOT_FOUND"

    assert await comments_count(storage, video.id) == (0, 0)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reply_to_reply_attaches_to_top_level(storage, make_user, make_video):
    user = await make_user("alice")
    video = await make_video(user.id)
    service = CommentService(storage)

    top = await service.add_comment(video.id, user.id, "top")
    reply = await service.add_comment(video.id, user.id, "reply", parent_id=top.id)
    nested = await service.add_comment(video.id, user.id, "nested", parent_id=reply.id)

    assert nested.parent_id == top.id
    tree = await service.build_tree(video.id)
    assert len(tree) == 1
    assert [r.content for r in tree[0].replies] == ["reply", "nested"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_parent_from_other_video_is_not_found(storage, make_user, make_video):
    user = await make_user("alice")
    video = await make_video(user.id, title="one")
    other = await make_video(user.id, title="two")
    service = CommentService(storage)
    parent = await service.add_comment(other.id, user.id, "elsewhere")

    with pytest.raises(ResourceNotFoundError):
        await service.add_comment(video.id, user.id, "hi", parent_id=parent.id)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_top_level_removes_replies_and_decrements(
    storage, make_user, make_video
):
    user = await make_user("alice")
    video = await make_video(user.id)
    service = CommentService(storage)
    top = await service.add_comment(video.id, user.id, "top")
    for i in range(3):
        await service.add_comment(video.id, user.id, f"reply {i}", parent_id=top.id)
    keep = await service.add_comment(video.id, user.id, "keep")

    removed = await service.delete_comment(top.id, user.id)

    assert removed == 4
    assert await comments_count(storage, video.id) == (1, 1)
    tree = await service.build_tree(video.id)
    assert [c.id for c in tree] == [keep.id]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_comment_floors_count_at_zero(storage, make_user, make_video):
    user = await make_user("alice")
    video = await make_video(user.id)
    async with storage.session() as s:
        comment = await s.add(Comment(video_id=video.id, user_id=user.id, content="untracked"))

    await CommentService(storage).delete_comment(comment.id, user.id)

    assert await comments_count(storage, video.id) == (0, 0)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_only_author_may_delete(storage, make_user, make_video):
    alice = await make_user("alice")
    bob = await make_user("bob")
    video = await make_video(alice.id)
    service = CommentService(storage)
    comment = await service.add_comment(video.id, alice.id, "mine")

    with pytest.raises(PermissionDeniedError):
        await service.delete_comment(comment.id, bob.id)
    with pytest.raises(ResourceNotFoundError):
        await service.delete_comment(9999, alice.id)

    assert await comments_count(storage, video.id) == (1, 1)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_like_comment(storage, make_user, make_video):
    user = await make_user("alice")
    video = await make_video(user.id)
    service = CommentService(storage)
    comment = await service.add_comment(video.id, user.id, "like me")

    await service.like_comment(comment.id)
    await service.like_comment(comment.id)

    assert (await service.get_comment(comment.id)).likes == 2
    with pytest.raises(ResourceNotFoundError):
        await service.like_comment(9999)
