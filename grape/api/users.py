from uuid import UUID

from fastapi import APIRouter, File, Query, UploadFile, status

from grape.api.dependencies import CurrentUser, Feed, Graph, OptionalUser, Users, viewer_id
from grape.core.pagination import MAX_PAGE_SIZE, PageRequest
from grape.schemas.schemas import (
    MessageResponse,
    PostListResponse,
    ProfileResponse,
    UserListResponse,
    UserResponse,
    UserUpdateRequest,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{username}", status_code=status.HTTP_200_OK)
async def get_profile(username: str, users: Users, current_user: OptionalUser) -> ProfileResponse:
    """
    Get a user's profile by username.

    Parameters:
    - **username**: Username, matched case-insensitively

    Returns:
    - **ProfileResponse**: Profile with live counts and whether the caller follows this user

    Raises:
    - **404 Not Found**: If user does not exist
    """
    return await users.get_profile(username, viewer_id(current_user))


@router.put("/{user_id}", status_code=status.HTTP_200_OK)
async def update_profile(
    user_id: UUID,
    update_data: UserUpdateRequest,
    current_user: CurrentUser,
    users: Users,
) -> UserResponse:
    """
    Update the authenticated user's profile. Only fields sent in the body change.

    Raises:
    - **400 Bad Request**: If no field was sent or the username is taken
    - **401 Unauthorized**: If not authenticated
    - **403 Forbidden**: If user_id is not the caller
    """
    return await users.update_profile(current_user.id, user_id, update_data)


@router.post("/{user_id}/profile-pic", status_code=status.HTTP_200_OK)
async def upload_profile_pic(
    user_id: UUID,
    current_user: CurrentUser,
    users: Users,
    image: UploadFile = File(...),
) -> UserResponse:
    """
    Upload a new profile picture.

    Notes:
    - Must be an image, 5MB at most
    """
    content = await image.read()
    return await users.update_avatar(current_user.id, user_id, content, image.content_type)


@router.get("/{user_id}/followers", status_code=status.HTTP_200_OK)
async def get_followers(
    user_id: UUID,
    graph: Graph,
    current_user: OptionalUser,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
) -> UserListResponse:
    """
    Get users who follow the specified user, most recent first.

    Raises:
    - **404 Not Found**: If user does not exist
    """
    return await graph.followers(user_id, PageRequest(page, limit), viewer_id(current_user))


@router.get("/{user_id}/following", status_code=status.HTTP_200_OK)
async def get_following(
    user_id: UUID,
    graph: Graph,
    current_user: OptionalUser,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
) -> UserListResponse:
    """
    Get users the specified user follows, most recent first.

    Raises:
    - **404 Not Found**: If user does not exist
    """
    return await graph.following(user_id, PageRequest(page, limit), viewer_id(current_user))


@router.post("/{user_id}/follow", status_code=status.HTTP_200_OK)
async def follow(user_id: UUID, current_user: CurrentUser, graph: Graph) -> MessageResponse:
    """
    Follow another user.

    Raises:
    - **400 Bad Request**: If following yourself or already following
    - **401 Unauthorized**: If not authenticated
    - **404 Not Found**: If the target user does not exist
    """
    await graph.follow(current_user.id, user_id)
    return MessageResponse(message="Followed successfully")


@router.delete("/{user_id}/unfollow", status_code=status.HTTP_200_OK)
async def unfollow(user_id: UUID, current_user: CurrentUser, graph: Graph) -> MessageResponse:
    """
    Unfollow a user.

    Raises:
    - **400 Bad Request**: If not following this user
    """
    await graph.unfollow(current_user.id, user_id)
    return MessageResponse(message="Unfollowed successfully")


@router.get("/{user_id}/posts", status_code=status.HTTP_200_OK)
async def get_user_posts(
    user_id: UUID,
    feed: Feed,
    current_user: OptionalUser,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=MAX_PAGE_SIZE),
) -> PostListResponse:
    """Get a user's posts, newest first."""
    return await feed.get_user_posts(user_id, PageRequest(page, limit), viewer_id(current_user))
