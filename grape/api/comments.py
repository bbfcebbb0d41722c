from uuid import UUID

from fastapi import APIRouter, status

from grape.api.dependencies import CurrentUser, Engagement
from grape.schemas.schemas import MessageResponse

router = APIRouter(prefix="/comments", tags=["comments"])


@router.delete("/{comment_id}", status_code=status.HTTP_200_OK)
async def delete_comment(comment_id: UUID, current_user: CurrentUser, engagement: Engagement) -> MessageResponse:
    """
    Delete one of your comments.

    Raises:
    - **403 Forbidden**: If the comment belongs to someone else
    - **404 Not Found**: If the comment does not exist
    """
    await engagement.delete_comment(current_user.id, comment_id)
    return MessageResponse(message="Comment deleted successfully")
