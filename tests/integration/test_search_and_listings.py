"""Search ranking, recent searches and per-user/per-tag listings against PostgreSQL."""

from grape.core.pagination import PageRequest
from grape.models.models import SearchType
from tests.integration.conftest import requires_database, signup

pytestmark = requires_database


async def _post(services, author, caption):
    return await services["posts"].create_post(author.id, b"video", "video/mp4", caption, 1.0)


async def _recent(services, user_id):
    searches = (await services["search"].recent_searches(user_id)).searches
    return [(item.type, item.term) for item in searches]


async def test_underscore_in_user_search_is_literal(services):
    viewer = await signup(services, "viewer")
    for username in ("a_b", "axb", "xa_b"):
        await signup(services, username)

    result = await services["search"].search_users("@A_B", PageRequest(1, 20), viewer.id)

    assert [user.username for user in result.users] == ["a_b", "xa_b"]
    assert result.pagination.total == 2


async def test_user_search_tiers_then_followers(services):
    viewer = await signup(services, "viewer")
    for username in ("car", "carl", "carmen", "oscar"):
        await signup(services, username)
    fans = [await signup(services, f"fan{i}") for i in range(2)]

    profiles = {user.username: user for user in (await services["search"].search_users("car", PageRequest(1, 20))).users}
    for fan in fans:
        await services["graph"].follow(fan.id, profiles["carmen"].id)
    await services["graph"].follow(viewer.id, profiles["oscar"].id)

    result = await services["search"].search_users("car", PageRequest(1, 20), viewer.id)

    assert [user.username for user in result.users] == ["car", "carmen", "carl", "oscar"]
    assert [user.follower_count for user in result.users] == [0, 2, 0, 1]
    assert [user.is_following for user in result.users] == [False, False, False, True]


async def test_hashtag_search_tiers_then_post_count(services):
    author = await signup(services, "author")
    await _post(services, author, "#zz")
    for _ in range(3):
        await _post(services, author, "#zzz")
    for _ in range(4):
        await _post(services, author, "#azz")
    await _post(services, author, "#other")

    result = await services["search"].search_hashtags("#ZZ", PageRequest(1, 20))

    assert [(tag.tag, tag.post_count) for tag in result.hashtags] == [("zz", 1), ("zzz", 3), ("azz", 4)]


async def test_recent_searches_refresh_instead_of_duplicating(services):
    viewer = await signup(services, "viewer")
    search = services["search"]

    await search.search_users("@A_B", PageRequest(1, 20), viewer.id)
    await search.search_hashtags("zz", PageRequest(1, 20), viewer.id)
    await search.search_users("a_b", PageRequest(2, 20), viewer.id)

    assert await _recent(services, viewer.id) == [(SearchType.USER, "a_b"), (SearchType.HASHTAG, "zz")]

    assert await search.clear_recent_searches(viewer.id) == 2
    assert await _recent(services, viewer.id) == []


async def test_recent_searches_keep_only_the_newest(services, db):
    viewer = await signup(services, "viewer")
    for i in range(22):
        await services["search"].search_hashtags(f"tag{i}", PageRequest(1, 20), viewer.id)

    recent = await _recent(services, viewer.id)
    assert len(recent) == 20
    assert recent[0] == (SearchType.HASHTAG, "tag21")
    assert recent[-1] == (SearchType.HASHTAG, "tag2")

    async with db.acquire() as conn:
        stored = await conn.fetchval("SELECT COUNT(*) FROM recent_searches WHERE user_id = $1", viewer.id)
    assert stored == 20


async def test_anonymous_search_leaves_no_history(services, db):
    await signup(services, "a_b")
    await services["search"].search_users("a_b", PageRequest(1, 20))

    async with db.acquire() as conn:
        assert await conn.fetchval("SELECT COUNT(*) FROM recent_searches") == 0


async def test_user_and_hashtag_posts_newest_first(services):
    alice = await signup(services, "alice")
    bob = await signup(services, "bob")
    first = await _post(services, alice, "one #cars")
    await _post(services, bob, "bob's #cars")
    second = await _post(services, alice, "two")
    third = await _post(services, alice, "three #Cars")

    mine = await services["feed"].get_user_posts(alice.id, PageRequest(1, 2))
    assert [post.id for post in mine.posts] == [third.id, second.id]
    assert (mine.pagination.total, mine.pagination.has_more) == (3, True)

    rest = await services["feed"].get_user_posts(alice.id, PageRequest(2, 2))
    assert [post.id for post in rest.posts] == [first.id]
    assert rest.pagination.has_more is False

    tagged = await services["feed"].get_hashtag_posts("#CARS", PageRequest(1, 10), bob.id)
    assert tagged.tag == "cars"
    assert tagged.posts[0].id == third.id
    assert tagged.posts[-1].id == first.id
    assert tagged.pagination.total == 3
