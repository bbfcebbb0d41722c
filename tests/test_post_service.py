from uuid import uuid4

import pytest

from grape.models.models import NotificationType
from grape.services.errors import DependencyError, ForbiddenError, NotFoundError, ValidationError
from grape.services.post_service import PostService
from tests.factories import post_row


@pytest.fixture
def posts(db, store, annotator) -> PostService:
    return PostService(db, store, annotator)


@pytest.mark.parametrize("duration", [0, -1, 6.01, 30])
async def test_duration_bounds(posts, store, duration):
    with pytest.raises(ValidationError):
        await posts.create_post(uuid4(), b"video", "video/mp4", None, duration)
    store.put_object.assert_not_awaited()


async def test_caption_length(posts, store):
    with pytest.raises(ValidationError):
        await posts.create_post(uuid4(), b"video", "video/mp4", "x" * 281, 5.0)


async def test_rejects_non_video_upload(posts, store):
    with pytest.raises(ValidationError):
        await posts.create_post(uuid4(), b"\x89PNG", "image/png", None, 5.0)


async def test_create_post_annotates_caption_in_one_transaction(posts, db, conn, store):
    actor_id, bob_id, post_id = uuid4(), uuid4(), uuid4()
    # post insert, mention link, mention notification
    conn.fetchval.side_effect = [post_id, bob_id, uuid4()]
    conn.fetch.side_effect = [[{"tag": "fun"}], [{"id": bob_id}]]
    conn.fetchrow.return_value = post_row(id=post_id, user_id=actor_id, caption="hello #Fun #fun @Bob @bob")

    post = await posts.create_post(actor_id, b"video", "video/mp4", "hello #Fun #fun @Bob @bob", 5.0)

    assert post.id == post_id
    assert db.transactions == 1
    key = store.put_object.await_args.args[0]
    assert key.startswith(f"videos/{actor_id}/") and key.endswith(".mp4")

    hashtag_call, mention_lookup = conn.fetch.await_args_list
    assert hashtag_call.args[2] == ["fun"]
    assert mention_lookup.args[1] == ["bob"]

    notification_call = conn.fetchval.await_args_list[2]
    assert notification_call.args[1:4] == (bob_id, actor_id, NotificationType.MENTION.value)


async def test_failed_insert_removes_uploaded_video(posts, conn, store):
    conn.fetchval.side_effect = RuntimeError("connection lost")

    with pytest.raises(RuntimeError):
        await posts.create_post(uuid4(), b"video", "video/mp4", None, 5.0)

    uploaded_key = store.put_object.await_args.args[0]
    store.delete_object.assert_awaited_once_with(uploaded_key)


async def test_upload_failure_is_a_dependency_error(posts, conn, store):
    store.put_object.side_effect = DependencyError("Failed to upload file")

    with pytest.raises(DependencyError):
        await posts.create_post(uuid4(), b"video", "video/mp4", None, 5.0)
    conn.fetchval.assert_not_awaited()


async def test_upload_url_key_is_under_actor_prefix(posts, store):
    actor_id = uuid4()
    response = await posts.get_upload_url(actor_id)

    assert response.upload_url == "https://upload.test/signed"
    assert response.key.startswith(f"videos/{actor_id}/")


async def test_confirm_rejects_foreign_key(posts, conn):
    with pytest.raises(ForbiddenError):
        await posts.confirm_upload(uuid4(), f"videos/{uuid4()}/clip.mp4", None, 5.0)
    conn.fetchval.assert_not_awaited()


async def test_confirm_creates_post_for_own_key(posts, conn, store):
    actor_id, post_id = uuid4(), uuid4()
    key = f"videos/{actor_id}/clip.mp4"
    conn.fetchval.return_value = post_id
    conn.fetchrow.return_value = post_row(id=post_id, user_id=actor_id, caption=None)

    post = await posts.confirm_upload(actor_id, key, None, 4.5)

    assert post.id == post_id
    insert_args = conn.fetchval.await_args_list[0].args
    assert insert_args[2:4] == (f"https://cdn.test/{key}", key)
    store.put_object.assert_not_awaited()


async def test_delete_post_by_non_owner(posts, conn):
    conn.fetchrow.return_value = {"user_id": uuid4(), "video_key": "videos/x.mp4"}
    with pytest.raises(ForbiddenError):
        await posts.delete_post(uuid4(), uuid4())
    conn.execute.assert_not_awaited()


async def test_delete_missing_post(posts, conn):
    conn.fetchrow.return_value = None
    with pytest.raises(NotFoundError):
        await posts.delete_post(uuid4(), uuid4())


async def test_delete_post_survives_object_store_failure(posts, conn, store):
    actor_id = uuid4()
    conn.fetchrow.return_value = {"user_id": actor_id, "video_key": "videos/x.mp4"}
    store.delete_object.side_effect = DependencyError("Failed to delete file")

    await posts.delete_post(actor_id, uuid4())

    assert "DELETE FROM posts" in conn.execute.await_args.args[0]
    store.delete_object.assert_awaited_once_with("videos/x.mp4")
