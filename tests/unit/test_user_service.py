"""
Unit tests for accounts: registration, login, profile edits and deletion.
"""
import os
import pytest

from core.exceptions import AuthenticationError, PermissionDeniedError, ResourceNotFoundError, ValidationError
from core.models import Comment, Follow, User, Video
from providers.media_provider import LocalMediaStore
from services.comment_service import CommentService
from services.follow_service import FollowService
from services.user_service import UserService
from services.video_service import VideoService
from tests.fakes import FakeMediaInspector, FakeUpload


@pytest.mark.unit
@pytest.mark.asyncio
async def test_register_and_authenticate(storage):
    service = UserService(storage)

    user = await service.register("alice", password="secret123", email="Alice@Example.com")

    assert user.id is not None
    assert user.email == "alice@example.com"
    assert user.password_hash != "secret123"
    assert (await service.authenticate("alice", "secret123")).id == user.id
    with pytest.raises(AuthenticationError):
        await service.authenticate("alice", "wrong-password")
    with pytest.raises(AuthenticationError):
        await service.authenticate("nobody", "secret123")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_register_rejects_duplicates_and_bad_input(storage):
    service = UserService(storage)
    await service.register("alice", email="alice@example.com")

    with pytest.raises(ValidationError):
        await service.register("alice")
    with pytest.raises(ValidationError):
        await service.register("alice2", email="alice@example.com")
    with pytest.raises(ValidationError):
        await service.register("a")
    with pytest.raises(ValidationError):
        await service.register("bob", password="123")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_account_without_password_cannot_log_in(storage):
    service = UserService(storage)
    await service.register("alice")

    with pytest.raises(AuthenticationError):
        await service.authenticate("alice", "")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_profile_self_only(storage):
    service = UserService(storage)
    alice = await service.register("alice")
    bob = await service.register("bob")

    updated = await service.update_profile(
        alice.id, alice.id, name="Alice", bio="hi there", avatar="/media/avatars/a.png"
    )

    assert (updated.name, updated.bio, updated.avatar) == ("Alice", "hi there", "/media/avatars/a.png")
    assert (await service.get_user(alice.id)).bio == "hi there"
    with pytest.raises(PermissionDeniedError):
        await service.update_profile(alice.id, bob.id, name="Hacked")
    with pytest.raises(ResourceNotFoundError):
        await service.get_user(9999)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_user_purges_everything(storage, media_root):
    media_store = LocalMediaStore(media_root)
    users = UserService(storage, media_store)
    videos = VideoService(storage, media_store, FakeMediaInspector())
    comments = CommentService(storage)
    follows = FollowService(storage)

    alice = await users.register("alice")
    bob = await users.register("bob")
    carol = await users.register("carol")

    alice_video = await videos.create_video(alice.id, "alice clip", FakeUpload())
    bob_video = await videos.create_video(bob.id, "bob clip", FakeUpload())

    # Alice's comment on Bob's video with a reply from Carol
    top = await comments.add_comment(bob_video.id, alice.id, "from alice")
    await comments.add_comment(bob_video.id, carol.id, "reply", parent_id=top.id)
    # Alice's reply under Carol's comment
    carol_top = await comments.add_comment(bob_video.id, carol.id, "from carol")
    await comments.add_comment(bob_video.id, alice.id, "alice reply", parent_id=carol_top.id)
    # Bob comments on Alice's video
    await comments.add_comment(alice_video.id, bob.id, "on alice video")

    await follows.follow(alice.id, bob.id)
    await follows.follow(carol.id, alice.id)

    with pytest.raises(PermissionDeniedError):
        await users.delete_user(alice.id, bob.id)
    await users.delete_user(alice.id, alice.id)

    async with storage.session() as s:
        assert await s.get(User, alice.id) is None
        assert await s.get(Video, alice_video.id) is None
        assert await s.count(Follow) == 0
        remaining = await s.find(Comment, {"video_id": bob_video.id})
        assert [c.content for c in remaining] == ["from carol"]
        assert (await s.get(Video, bob_video.id)).comments_count == 1
        assert await s.count(Comment, {"video_id": alice_video.id}) == 0
        bob_row = await s.get(User, bob.id)
        carol_row = await s.get(User, carol.id)

    assert bob_row.followers_count == 0
    assert carol_row.following_count == 0
    assert os.listdir(os.path.join(media_root, "videos")) == [
        os.path.basename(bob_video.video_url)
    ]
