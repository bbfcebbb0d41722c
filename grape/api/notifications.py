from uuid import UUID

from fastapi import APIRouter, Query, status

from grape.api.dependencies import CurrentUser, Notifications
from grape.core.pagination import MAX_PAGE_SIZE, PageRequest
from grape.schemas.schemas import MessageResponse, NotificationListResponse, UnreadCountResponse

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", status_code=status.HTTP_200_OK)
async def list_notifications(
    current_user: CurrentUser,
    notifications: Notifications,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
) -> NotificationListResponse:
    """
    Get your notifications, newest first.

    Returns:
    - **NotificationListResponse**: Notifications with actor, post and comment summaries,
      plus your unread count and the pagination envelope

    Notes:
    - comment is null when the comment has since been deleted
    """
    return await notifications.list_notifications(current_user.id, PageRequest(page, limit))


@router.get("/unread-count", status_code=status.HTTP_200_OK)
async def get_unread_count(current_user: CurrentUser, notifications: Notifications) -> UnreadCountResponse:
    unread_count = await notifications.unread_count(current_user.id)
    return UnreadCountResponse(unread_count=unread_count)


@router.put("/read-all", status_code=status.HTTP_200_OK)
async def mark_all_read(current_user: CurrentUser, notifications: Notifications) -> MessageResponse:
    """Mark every notification as read. Succeeds even if none were unread."""
    await notifications.mark_all_read(current_user.id)
    return MessageResponse(message="All notifications marked as read")


@router.put("/{notification_id}/read", status_code=status.HTTP_200_OK)
async def mark_read(
    notification_id: UUID, current_user: CurrentUser, notifications: Notifications,
) -> MessageResponse:
    """
    Mark one notification as read.

    Raises:
    - **403 Forbidden**: If the notification belongs to someone else
    - **404 Not Found**: If the notification does not exist
    """
    await notifications.mark_read(current_user.id, notification_id)
    return MessageResponse(message="Notification marked as read")
