from uuid import uuid4

import pytest

from grape.core.pagination import PageRequest
from grape.models.models import SearchType
from grape.services.errors import ValidationError
from grape.services.search_service import SearchService, escape_like, normalize_query
from tests.factories import now


@pytest.fixture
def search(db) -> SearchService:
    return SearchService(db)


def test_normalize_query_strips_sigil_and_case():
    assert normalize_query("  @Bob ", "@") == "bob"
    assert normalize_query("#Cars", "#") == "cars"


@pytest.mark.parametrize("query", ["", "   ", "@", None])
def test_normalize_query_rejects_empty(query):
    with pytest.raises(ValidationError):
        normalize_query(query, "@")


def test_escape_like_treats_underscore_literally():
    assert escape_like("a_b%") == "a\\_b\\%"


async def test_user_search_is_tiered_and_remembered(search, conn):
    viewer_id, bob_id = uuid4(), uuid4()
    rows = [{"id": bob_id, "username": "bob", "bio": None, "profile_pic_url": None, "follower_count": 9, "tier": 0}]
    conn.fetch.side_effect = [rows, [{"following_id": bob_id}]]
    conn.fetchval.return_value = 1

    result = await search.search_users("@Bob", PageRequest(1, 20), viewer_id)

    sql = conn.fetch.await_args_list[0].args[0]
    assert "ORDER BY tier, follower_count DESC" in sql
    assert result.users[0].is_following is True
    assert result.users[0].follower_count == 9

    remembered = conn.execute.await_args_list[0].args
    assert "ON CONFLICT (user_id, search_type, search_term)" in remembered[0]
    assert remembered[1:] == (viewer_id, SearchType.USER.value, "bob")


async def test_anonymous_search_is_not_remembered(search, conn):
    conn.fetchval.return_value = 0
    result = await search.search_users("bob", PageRequest(1, 20))

    assert result.users == []
    conn.execute.assert_not_awaited()


async def test_hashtag_search_ranks_by_post_count(search, conn):
    conn.fetch.return_value = [{"tag": "cars", "post_count": 4, "tier": 0}, {"tag": "carsandcoffee", "post_count": 9, "tier": 1}]
    conn.fetchval.return_value = 2

    result = await search.search_hashtags("#cars", PageRequest(1, 20), uuid4())

    assert [hashtag.tag for hashtag in result.hashtags] == ["cars", "carsandcoffee"]
    assert "ORDER BY tier, post_count DESC" in conn.fetch.await_args.args[0]
    assert conn.execute.await_args_list[0].args[2] == SearchType.HASHTAG.value


async def test_recent_searches(search, conn):
    conn.fetch.return_value = [{"search_type": "hashtag", "search_term": "cars", "created_at": now()}]

    result = await search.recent_searches(uuid4())

    assert result.searches[0].type is SearchType.HASHTAG
    assert conn.fetch.await_args.args[2] == 20


async def test_clear_recent_searches(search, conn):
    conn.execute.return_value = "DELETE 3"
    assert await search.clear_recent_searches(uuid4()) == 3


async def test_remembering_a_search_trims_older_entries(search, conn):
    viewer_id = uuid4()
    conn.fetchval.return_value = 0

    await search.search_hashtags("cars", PageRequest(1, 20), viewer_id)

    upsert, trim = conn.execute.await_args_list
    assert "INSERT INTO recent_searches" in upsert.args[0]
    assert trim.args[0].lstrip().startswith("DELETE FROM recent_searches")
    assert trim.args[1:] == (viewer_id, 20)
