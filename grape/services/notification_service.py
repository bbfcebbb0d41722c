import logging
from typing import Optional
from uuid import UUID

from asyncpg import Connection, Record

from grape.core.db import Database
from grape.core.pagination import PageRequest, build_pagination
from grape.models.models import NotificationType
from grape.schemas.schemas import (
    NotificationComment,
    NotificationListResponse,
    NotificationPost,
    NotificationResponse,
    UserSummary,
)
from grape.services.errors import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Synchronous fan-out of notification rows.

    emit() runs on the caller's connection so the notification commits or
    rolls back together with the write that triggered it.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def emit(
        self,
        conn: Connection,
        recipient_id: UUID,
        actor_id: UUID,
        type: NotificationType,
        post_id: Optional[UUID] = None,
        comment_id: Optional[UUID] = None,
    ) -> Optional[UUID]:
        """Insert one unread notification. Self-actions never notify and return None."""
        if recipient_id == actor_id:
            return None

        return await conn.fetchval(
            """
            INSERT INTO notifications (user_id, actor_id, type, post_id, comment_id)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id
            """,
            recipient_id,
            actor_id,
            type.value,
            post_id,
            comment_id,
        )

    async def list_notifications(self, user_id: UUID, page: PageRequest) -> NotificationListResponse:
        """Newest first. Notifications whose comment was deleted come back with comment=None."""
        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT
                    n.id, n.type, n.read, n.created_at, n.post_id, n.comment_id,
                    n.actor_id, u.username AS actor_username, u.profile_pic_url AS actor_profile_pic_url,
                    p.video_url AS post_video_url,
                    c.text AS comment_text
                FROM notifications n
                JOIN users u ON n.actor_id = u.id
                LEFT JOIN posts p ON n.post_id = p.id
                LEFT JOIN comments c ON n.comment_id = c.id
                WHERE n.user_id = $1
                ORDER BY n.created_at DESC, n.seq DESC
                LIMIT $2 OFFSET $3
                """,
                user_id,
                page.limit,
                page.offset,
            )
            counts = await conn.fetchrow(
                """
                SELECT COUNT(*) AS total, COUNT(*) FILTER (WHERE NOT read) AS unread
                FROM notifications
                WHERE user_id = $1
                """,
                user_id,
            )

        return NotificationListResponse(
            notifications=[_notification_from_record(row) for row in rows],
            unread_count=counts["unread"],
            pagination=build_pagination(page, len(rows), counts["total"]),
        )

    async def unread_count(self, user_id: UUID) -> int:
        async with self.db.acquire() as conn:
            return await conn.fetchval(
                "SELECT COUNT(*) FROM notifications WHERE user_id = $1 AND read = FALSE",
                user_id,
            )

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> None:
        """Mark one notification read. Marking an already-read notification succeeds."""
        async with self.db.acquire() as conn:
            owner_id = await conn.fetchval(
                "SELECT user_id FROM notifications WHERE id = $1",
                notification_id,
            )
            if owner_id is None:
                raise NotFoundError("Notification not found")
            if owner_id != user_id:
                raise ForbiddenError("Not authorized to modify this notification")

            await conn.execute(
                "UPDATE notifications SET read = TRUE WHERE id = $1 AND user_id = $2",
                notification_id,
                user_id,
            )

    async def mark_all_read(self, user_id: UUID) -> int:
        """Flip every unread notification of a user. Returns how many changed."""
        async with self.db.acquire() as conn:
            result = await conn.execute(
                "UPDATE notifications SET read = TRUE WHERE user_id = $1 AND read = FALSE",
                user_id,
            )
        # asyncpg returns the command tag, e.g. "UPDATE 3"
        return int(result.split()[-1])


def _notification_from_record(row: Record) -> NotificationResponse:
    post = None
    if row["post_id"] is not None:
        post = NotificationPost(id=row["post_id"], video_url=row["post_video_url"])

    comment = None
    if row["comment_id"] is not None and row["comment_text"] is not None:
        comment = NotificationComment(id=row["comment_id"], text=row["comment_text"])

    return NotificationResponse(
        id=row["id"],
        type=NotificationType(row["type"]),
        read=row["read"],
        created_at=row["created_at"],
        actor=UserSummary(
            id=row["actor_id"],
            username=row["actor_username"],
            profile_pic_url=row["actor_profile_pic_url"],
        ),
        post=post,
        comment=comment,
    )
