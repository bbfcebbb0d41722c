from fastapi import APIRouter, Query, status

from grape.api.dependencies import CurrentUser, Feed, OptionalUser, Search, viewer_id
from grape.core.pagination import MAX_PAGE_SIZE, PageRequest
from grape.schemas.schemas import (
    HashtagPostsResponse,
    HashtagSearchResponse,
    MessageResponse,
    RecentSearchResponse,
    UserSearchResponse,
)

router = APIRouter(prefix="/search", tags=["search"])


@router.get("/users", status_code=status.HTTP_200_OK)
async def search_users(
    search: Search,
    current_user: OptionalUser,
    q: str = Query(..., description="Username or part of one, a leading @ is ignored"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
) -> UserSearchResponse:
    """
    Search users by username.

    Notes:
    - Exact matches first, then prefix matches, then other matches
    - Within each group, users with more followers come first
    - Searches by signed-in users are kept in their recent searches
    """
    return await search.search_users(q, PageRequest(page, limit), viewer_id(current_user))


@router.get("/hashtags", status_code=status.HTTP_200_OK)
async def search_hashtags(
    search: Search,
    current_user: OptionalUser,
    q: str = Query(..., description="Hashtag or part of one, a leading # is ignored"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
) -> HashtagSearchResponse:
    """Search hashtags. Ranked like user search, by post count within each group."""
    return await search.search_hashtags(q, PageRequest(page, limit), viewer_id(current_user))


@router.get("/hashtags/{tag}", status_code=status.HTTP_200_OK)
async def get_hashtag_posts(
    tag: str,
    feed: Feed,
    current_user: OptionalUser,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
) -> HashtagPostsResponse:
    """Posts tagged with a hashtag, newest first."""
    return await feed.get_hashtag_posts(tag, PageRequest(page, limit), viewer_id(current_user))


@router.get("/recent", status_code=status.HTTP_200_OK)
async def get_recent_searches(current_user: CurrentUser, search: Search) -> RecentSearchResponse:
    """Your most recent distinct searches, newest first."""
    return await search.recent_searches(current_user.id)


@router.delete("/recent", status_code=status.HTTP_200_OK)
async def clear_recent_searches(current_user: CurrentUser, search: Search) -> MessageResponse:
    """Forget all your recent searches."""
    await search.clear_recent_searches(current_user.id)
    return MessageResponse(message="Recent searches cleared")
