from uuid import uuid4

import pytest
from asyncpg.exceptions import UniqueViolationError

from grape.core.pagination import PageRequest
from grape.models.models import NotificationType
from grape.services.errors import (
    AlreadyFollowingError,
    NotFollowingError,
    NotFoundError,
    SelfFollowError,
)
from grape.services.graph_service import SocialGraphService


@pytest.fixture
def graph(db, notifications) -> SocialGraphService:
    return SocialGraphService(db, notifications)


async def test_follow_self_is_rejected_before_touching_the_store(graph, conn):
    user_id = uuid4()
    with pytest.raises(SelfFollowError):
        await graph.follow(user_id, user_id)
    conn.fetchval.assert_not_awaited()


async def test_follow_missing_target(graph, conn):
    conn.fetchval.return_value = None
    with pytest.raises(NotFoundError):
        await graph.follow(uuid4(), uuid4())


async def test_follow_inserts_edge_and_notifies_target(graph, conn):
    follower_id, target_id = uuid4(), uuid4()
    # target exists, no existing edge, notification id
    conn.fetchval.side_effect = [1, None, uuid4()]

    await graph.follow(follower_id, target_id)

    conn.execute.assert_awaited_once()
    assert conn.execute.await_args.args[1:] == (follower_id, target_id)
    notification_args = conn.fetchval.await_args_list[2].args
    assert notification_args[1:4] == (target_id, follower_id, NotificationType.FOLLOW.value)


async def test_follow_twice_reports_already_following(graph, conn):
    conn.fetchval.side_effect = [1, 1]
    with pytest.raises(AlreadyFollowingError):
        await graph.follow(uuid4(), uuid4())
    conn.execute.assert_not_awaited()


async def test_racing_follow_maps_unique_violation(graph, conn):
    conn.fetchval.side_effect = [1, None]
    conn.execute.side_effect = UniqueViolationError("duplicate key")

    with pytest.raises(AlreadyFollowingError):
        await graph.follow(uuid4(), uuid4())


async def test_unfollow_without_edge(graph, conn):
    conn.fetchval.return_value = None
    with pytest.raises(NotFollowingError):
        await graph.unfollow(uuid4(), uuid4())


async def test_unfollow_emits_nothing(graph, conn):
    target_id = uuid4()
    conn.fetchval.return_value = target_id

    await graph.unfollow(uuid4(), target_id)

    assert conn.fetchval.await_count == 1
    assert "DELETE FROM follows" in conn.fetchval.await_args.args[0]


async def test_is_following(graph, conn):
    conn.fetchval.return_value = 1
    assert await graph.is_following(uuid4(), uuid4()) is True
    conn.fetchval.return_value = None
    assert await graph.is_following(uuid4(), uuid4()) is False


async def test_followers_mark_who_the_viewer_follows(graph, conn):
    viewer_id, carol_id, dave_id = uuid4(), uuid4(), uuid4()
    rows = [
        {"id": carol_id, "username": "carol", "bio": None, "profile_pic_url": None},
        {"id": dave_id, "username": "dave", "bio": "hi", "profile_pic_url": None},
    ]
    conn.fetch.side_effect = [rows, [{"following_id": dave_id}]]
    conn.fetchval.side_effect = [1, 5]  # user exists, total

    result = await graph.followers(uuid4(), PageRequest(1, 2), viewer_id)

    assert [user.username for user in result.users] == ["carol", "dave"]
    assert [user.is_following for user in result.users] == [False, True]
    assert result.pagination.total == 5
    assert result.pagination.has_more is True


async def test_following_for_anonymous_viewer_skips_lookup(graph, conn):
    conn.fetch.return_value = [{"id": uuid4(), "username": "carol", "bio": None, "profile_pic_url": None}]
    conn.fetchval.side_effect = [1, 1]

    result = await graph.following(uuid4(), PageRequest(1, 20))

    assert conn.fetch.await_count == 1
    assert result.users[0].is_following is False
    assert result.pagination.has_more is False
