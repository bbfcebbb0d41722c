import logging
from typing import Optional
from uuid import UUID

from asyncpg import Connection, Record
from asyncpg.exceptions import ForeignKeyViolationError, UniqueViolationError

from grape.config_secrets import MAX_COMMENT_LENGTH
from grape.core.db import Database
from grape.core.pagination import PageRequest, build_pagination
from grape.models.models import NotificationType, ReportReason
from grape.schemas.schemas import (
    CommentListResponse,
    CommentResponse,
    UserListItem,
    UserListResponse,
    UserSummary,
)
from grape.services.annotator import ContentAnnotator
from grape.services.errors import (
    AlreadyLikedError,
    ForbiddenError,
    NotFoundError,
    NotLikedError,
    ValidationError,
)
from grape.services.graph_service import followed_subset
from grape.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class EngagementService:
    """
    Likes and comments on posts.

    Counts are always live aggregates over the likes/comments tables. The
    (user_id, post_id) primary key on likes is the only thing keeping
    concurrent likes consistent.
    """

    def __init__(self, db: Database, notifications: NotificationService, annotator: ContentAnnotator) -> None:
        self.db = db
        self.notifications = notifications
        self.annotator = annotator

    async def like(self, actor_id: UUID, post_id: UUID) -> int:
        """Like a post and return the updated like count"""
        async with self.db.transaction() as conn:
            author_id = await _post_author(conn, post_id)

            existing = await conn.fetchval(
                "SELECT 1 FROM likes WHERE user_id = $1 AND post_id = $2",
                actor_id,
                post_id,
            )
            if existing:
                raise AlreadyLikedError()

            try:
                await conn.execute(
                    "INSERT INTO likes (user_id, post_id) VALUES ($1, $2)",
                    actor_id,
                    post_id,
                )
            except UniqueViolationError as exc:
                raise AlreadyLikedError() from exc
            except ForeignKeyViolationError as exc:
                raise NotFoundError("Post not found") from exc

            await self.notifications.emit(
                conn,
                recipient_id=author_id,
                actor_id=actor_id,
                type=NotificationType.LIKE,
                post_id=post_id,
            )
            return await _like_count(conn, post_id)

    async def unlike(self, actor_id: UUID, post_id: UUID) -> int:
        """Remove a like and return the updated like count"""
        async with self.db.transaction() as conn:
            removed = await conn.fetchval(
                "DELETE FROM likes WHERE user_id = $1 AND post_id = $2 RETURNING post_id",
                actor_id,
                post_id,
            )
            if removed is None:
                raise NotLikedError()
            return await _like_count(conn, post_id)

    async def like_count(self, post_id: UUID) -> int:
        async with self.db.acquire() as conn:
            return await _like_count(conn, post_id)

    async def comment_count(self, post_id: UUID) -> int:
        async with self.db.acquire() as conn:
            return await conn.fetchval("SELECT COUNT(*) FROM comments WHERE post_id = $1", post_id)

    async def list_likers(
        self, post_id: UUID, page: PageRequest, viewer_id: Optional[UUID] = None,
    ) -> UserListResponse:
        """Users who liked a post, newest like first"""
        async with self.db.acquire() as conn:
            await _post_author(conn, post_id)
            rows = await conn.fetch(
                """
                SELECT u.id, u.username, u.bio, u.profile_pic_url
                FROM likes l
                JOIN users u ON l.user_id = u.id
                WHERE l.post_id = $1
                ORDER BY l.created_at DESC, u.id
                LIMIT $2 OFFSET $3
                """,
                post_id,
                page.limit,
                page.offset,
            )
            total = await _like_count(conn, post_id)
            followed = await followed_subset(conn, viewer_id, [row["id"] for row in rows])

        users = [
            UserListItem(
                id=row["id"],
                username=row["username"],
                bio=row["bio"],
                profile_pic_url=row["profile_pic_url"],
                is_following=row["id"] in followed,
            )
            for row in rows
        ]
        return UserListResponse(users=users, pagination=build_pagination(page, len(rows), total))

    async def add_comment(self, actor_id: UUID, post_id: UUID, text: str) -> CommentResponse:
        """
        Comment on a post.

        Notifies the post author (unless they are the actor) and every distinct
        user mentioned in the text other than the actor. A mention of the post
        author produces its own notification next to the comment one.
        """
        text = text.strip()
        if not 1 <= len(text) <= MAX_COMMENT_LENGTH:
            raise ValidationError(f"Comment must be 1-{MAX_COMMENT_LENGTH} characters")

        async with self.db.transaction() as conn:
            author_id = await _post_author(conn, post_id)

            try:
                row = await conn.fetchrow(
                    """
                    WITH inserted AS (
                        INSERT INTO comments (user_id, post_id, text)
                        VALUES ($1, $2, $3)
                        RETURNING id, post_id, text, created_at, user_id
                    )
                    SELECT i.id, i.post_id, i.text, i.created_at,
                           i.user_id, u.username, u.profile_pic_url
                    FROM inserted i
                    JOIN users u ON i.user_id = u.id
                    """,
                    actor_id,
                    post_id,
                    text,
                )
            except ForeignKeyViolationError as exc:
                raise NotFoundError("Post not found") from exc

            comment = _comment_from_record(row)

            await self.notifications.emit(
                conn,
                recipient_id=author_id,
                actor_id=actor_id,
                type=NotificationType.COMMENT,
                post_id=post_id,
                comment_id=comment.id,
            )
            await self.annotator.notify_comment_mentions(
                conn,
                text=text,
                post_id=post_id,
                comment_id=comment.id,
                actor_id=actor_id,
            )

        return comment

    async def delete_comment(self, actor_id: UUID, comment_id: UUID) -> None:
        """Delete a comment owned by the actor. Notifications pointing at it are left in place."""
        async with self.db.transaction() as conn:
            owner_id = await conn.fetchval("SELECT user_id FROM comments WHERE id = $1", comment_id)
            if owner_id is None:
                raise NotFoundError("Comment not found")
            if owner_id != actor_id:
                raise ForbiddenError("Not authorized to delete this comment")

            await conn.execute("DELETE FROM comments WHERE id = $1", comment_id)

    async def list_comments(self, post_id: UUID, page: PageRequest) -> CommentListResponse:
        """Comments on a post in conversation order, oldest first"""
        async with self.db.acquire() as conn:
            await _post_author(conn, post_id)
            rows = await conn.fetch(
                """
                SELECT c.id, c.post_id, c.text, c.created_at,
                       c.user_id, u.username, u.profile_pic_url
                FROM comments c
                JOIN users u ON c.user_id = u.id
                WHERE c.post_id = $1
                ORDER BY c.created_at ASC, c.seq ASC
                LIMIT $2 OFFSET $3
                """,
                post_id,
                page.limit,
                page.offset,
            )
            total = await conn.fetchval("SELECT COUNT(*) FROM comments WHERE post_id = $1", post_id)

        return CommentListResponse(
            comments=[_comment_from_record(row) for row in rows],
            pagination=build_pagination(page, len(rows), total),
        )

    async def report_post(
        self, actor_id: UUID, post_id: UUID, reason: ReportReason, description: Optional[str] = None,
    ) -> UUID:
        """Store a report for manual review"""
        async with self.db.acquire() as conn:
            await _post_author(conn, post_id)
            try:
                report_id = await conn.fetchval(
                    """
                    INSERT INTO reports (reporter_id, post_id, reason, description)
                    VALUES ($1, $2, $3, $4)
                    RETURNING id
                    """,
                    actor_id,
                    post_id,
                    reason.value,
                    description,
                )
            except ForeignKeyViolationError as exc:
                raise NotFoundError("Post not found") from exc

        logger.info("Post %s reported by %s for %s", post_id, actor_id, reason.value)
        return report_id


async def _post_author(conn: Connection, post_id: UUID) -> UUID:
    author_id = await conn.fetchval("SELECT user_id FROM posts WHERE id = $1", post_id)
    if author_id is None:
        raise NotFoundError("Post not found")
    return author_id


async def _like_count(conn: Connection, post_id: UUID) -> int:
    return await conn.fetchval("SELECT COUNT(*) FROM likes WHERE post_id = $1", post_id)


def _comment_from_record(row: Record) -> CommentResponse:
    return CommentResponse(
        id=row["id"],
        post_id=row["post_id"],
        text=row["text"],
        created_at=row["created_at"],
        user=UserSummary(
            id=row["user_id"],
            username=row["username"],
            profile_pic_url=row["profile_pic_url"],
        ),
    )
