from typing import Optional
from uuid import UUID

from fastapi import APIRouter, File, Form, Query, UploadFile, status

from grape.api.dependencies import CurrentUser, Engagement, Feed, OptionalUser, Posts, viewer_id
from grape.core.pagination import MAX_PAGE_SIZE, PageRequest
from grape.schemas.schemas import (
    CommentCreate,
    CommentListResponse,
    CommentResponse,
    ConfirmUploadRequest,
    LikeCountResponse,
    MessageResponse,
    PostListResponse,
    PostResponse,
    ReportCreate,
    UploadUrlResponse,
    UserListResponse,
)

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_new_post(
    current_user: CurrentUser,
    posts: Posts,
    video: UploadFile = File(...),
    duration: float = Form(...),
    caption: Optional[str] = Form(None),
) -> PostResponse:
    """
    Upload a video and create a post.

    Parameters:
    - **video**: The video file (multipart)
    - **duration**: Video length in seconds
    - **caption**: Optional caption; #hashtags and @mentions in it are indexed

    Returns:
    - **PostResponse**: The created post

    Raises:
    - **400 Bad Request**: If the caption, duration or file is invalid
    - **401 Unauthorized**: If not authenticated
    - **502 Bad Gateway**: If the video could not be stored

    Notes:
    - Videos are at most 6 seconds and 50MB
    - Captions are at most 280 characters
    """
    content = await video.read()
    return await posts.create_post(current_user.id, content, video.content_type, caption, duration)


@router.get("/upload-url", status_code=status.HTTP_200_OK)
async def get_upload_url(current_user: CurrentUser, posts: Posts) -> UploadUrlResponse:
    """
    Get a presigned URL for uploading a video directly to storage.

    Upload with PUT to upload_url, then call POST /posts/confirm with the key.
    """
    return await posts.get_upload_url(current_user.id)


@router.post("/confirm", status_code=status.HTTP_201_CREATED)
async def confirm_upload(
    confirm_data: ConfirmUploadRequest, current_user: CurrentUser, posts: Posts,
) -> PostResponse:
    """
    Create a post for a video uploaded through a presigned URL.

    Raises:
    - **403 Forbidden**: If the key was not issued to the caller
    """
    return await posts.confirm_upload(
        current_user.id, confirm_data.key, confirm_data.caption, confirm_data.duration,
    )


@router.get("/feed", status_code=status.HTTP_200_OK)
async def get_feed(
    current_user: CurrentUser,
    feed: Feed,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
) -> PostListResponse:
    """
    Get the home feed: your posts and posts from accounts you follow, newest first.

    Raises:
    - **401 Unauthorized**: If not authenticated
    """
    return await feed.get_feed(current_user.id, PageRequest(page, limit))


@router.get("/discover", status_code=status.HTTP_200_OK)
async def get_discover(
    feed: Feed,
    current_user: OptionalUser,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
) -> PostListResponse:
    """
    Get the discover feed.

    Notes:
    - Posts with the most likes in the last 24 hours come first, then the newest
    """
    return await feed.get_discover(PageRequest(page, limit), viewer_id(current_user))


@router.get("/{post_id}", status_code=status.HTTP_200_OK)
async def get_post_detail(post_id: UUID, feed: Feed, current_user: OptionalUser) -> PostResponse:
    """
    Get a post by ID. Counts as one view.

    Raises:
    - **404 Not Found**: If post does not exist
    """
    return await feed.get_post(post_id, viewer_id(current_user))


@router.delete("/{post_id}", status_code=status.HTTP_200_OK)
async def delete_post(post_id: UUID, current_user: CurrentUser, posts: Posts) -> MessageResponse:
    """
    Delete one of your posts along with its likes, comments and notifications.

    Raises:
    - **403 Forbidden**: If the post belongs to someone else
    - **404 Not Found**: If post does not exist
    """
    await posts.delete_post(current_user.id, post_id)
    return MessageResponse(message="Post deleted successfully")


@router.post("/{post_id}/like", status_code=status.HTTP_200_OK)
async def like_post(post_id: UUID, current_user: CurrentUser, engagement: Engagement) -> LikeCountResponse:
    """
    Like a post.

    Raises:
    - **400 Bad Request**: If already liked
    - **404 Not Found**: If post does not exist
    """
    like_count = await engagement.like(current_user.id, post_id)
    return LikeCountResponse(like_count=like_count)


@router.delete("/{post_id}/unlike", status_code=status.HTTP_200_OK)
async def unlike_post(post_id: UUID, current_user: CurrentUser, engagement: Engagement) -> LikeCountResponse:
    """
    Remove your like from a post.

    Raises:
    - **400 Bad Request**: If not liked
    """
    like_count = await engagement.unlike(current_user.id, post_id)
    return LikeCountResponse(like_count=like_count)


@router.get("/{post_id}/likes", status_code=status.HTTP_200_OK)
async def get_likers(
    post_id: UUID,
    engagement: Engagement,
    current_user: OptionalUser,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
) -> UserListResponse:
    """Users who liked a post, newest like first."""
    return await engagement.list_likers(post_id, PageRequest(page, limit), viewer_id(current_user))


@router.post("/{post_id}/report", status_code=status.HTTP_201_CREATED)
async def report_post(
    post_id: UUID, report_data: ReportCreate, current_user: CurrentUser, engagement: Engagement,
) -> MessageResponse:
    """
    Report a post for manual review.

    Parameters:
    - **reason**: spam, inappropriate, harassment, violence or other
    - **description**: Optional details, at most 500 characters
    """
    await engagement.report_post(current_user.id, post_id, report_data.reason, report_data.description)
    return MessageResponse(message="Report submitted")


@router.post("/{post_id}/comments", status_code=status.HTTP_201_CREATED)
async def comment_on_post(
    post_id: UUID, comment_data: CommentCreate, current_user: CurrentUser, engagement: Engagement,
) -> CommentResponse:
    """
    Comment on a post.

    Raises:
    - **401 Unauthorized**: If not authenticated
    - **404 Not Found**: If the post does not exist

    Notes:
    - Comments are 1 to 500 characters
    - @mentions in the comment notify the mentioned users
    """
    return await engagement.add_comment(current_user.id, post_id, comment_data.text)


@router.get("/{post_id}/comments", status_code=status.HTTP_200_OK)
async def get_comments(
    post_id: UUID,
    engagement: Engagement,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
) -> CommentListResponse:
    """Comments on a post, oldest first."""
    return await engagement.list_comments(post_id, PageRequest(page, limit))
