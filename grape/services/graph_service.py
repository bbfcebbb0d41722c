import logging
from typing import Optional
from uuid import UUID

from asyncpg import Connection
from asyncpg.exceptions import ForeignKeyViolationError, UniqueViolationError

from grape.core.db import Database
from grape.core.pagination import PageRequest, build_pagination
from grape.models.models import NotificationType
from grape.schemas.schemas import UserListItem, UserListResponse
from grape.services.errors import (
    AlreadyFollowingError,
    NotFollowingError,
    NotFoundError,
    SelfFollowError,
)
from grape.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class SocialGraphService:
    """Owns the directed follow relation."""

    def __init__(self, db: Database, notifications: NotificationService) -> None:
        self.db = db
        self.notifications = notifications

    async def follow(self, follower_id: UUID, target_id: UUID) -> None:
        """Follow a user and notify them"""
        if follower_id == target_id:
            raise SelfFollowError()

        async with self.db.transaction() as conn:
            await _ensure_user_exists(conn, target_id)

            existing = await conn.fetchval(
                "SELECT 1 FROM follows WHERE follower_id = $1 AND following_id = $2",
                follower_id,
                target_id,
            )
            if existing:
                raise AlreadyFollowingError()

            try:
                await conn.execute(
                    "INSERT INTO follows (follower_id, following_id) VALUES ($1, $2)",
                    follower_id,
                    target_id,
                )
            except UniqueViolationError as exc:
                # Lost a race with a concurrent follow of the same edge
                raise AlreadyFollowingError() from exc
            except ForeignKeyViolationError as exc:
                raise NotFoundError("User not found") from exc

            await self.notifications.emit(
                conn,
                recipient_id=target_id,
                actor_id=follower_id,
                type=NotificationType.FOLLOW,
            )

    async def unfollow(self, follower_id: UUID, target_id: UUID) -> None:
        """Unfollow a user. No notification is emitted."""
        async with self.db.acquire() as conn:
            removed = await conn.fetchval(
                """
                DELETE FROM follows
                WHERE follower_id = $1 AND following_id = $2
                RETURNING following_id
                """,
                follower_id,
                target_id,
            )
        if removed is None:
            raise NotFollowingError()

    async def is_following(self, follower_id: UUID, target_id: UUID) -> bool:
        async with self.db.acquire() as conn:
            exists = await conn.fetchval(
                "SELECT 1 FROM follows WHERE follower_id = $1 AND following_id = $2",
                follower_id,
                target_id,
            )
        return bool(exists)

    async def followers(
        self, user_id: UUID, page: PageRequest, viewer_id: Optional[UUID] = None,
    ) -> UserListResponse:
        """Users following user_id, most recent edge first"""
        return await self._list_edges(user_id, page, viewer_id, direction="followers")

    async def following(
        self, user_id: UUID, page: PageRequest, viewer_id: Optional[UUID] = None,
    ) -> UserListResponse:
        """Users that user_id follows, most recent edge first"""
        return await self._list_edges(user_id, page, viewer_id, direction="following")

    async def _list_edges(
        self, user_id: UUID, page: PageRequest, viewer_id: Optional[UUID], direction: str,
    ) -> UserListResponse:
        # Column names come from this fixed mapping, never from input
        anchor, other = ("following_id", "follower_id") if direction == "followers" else ("follower_id", "following_id")

        async with self.db.acquire() as conn:
            await _ensure_user_exists(conn, user_id)
            rows = await conn.fetch(
                f"""
                SELECT u.id, u.username, u.bio, u.profile_pic_url
                FROM follows f
                JOIN users u ON f.{other} = u.id
                WHERE f.{anchor} = $1
                ORDER BY f.created_at DESC, u.id
                LIMIT $2 OFFSET $3
                """,
                user_id,
                page.limit,
                page.offset,
            )
            total = await conn.fetchval(f"SELECT COUNT(*) FROM follows WHERE {anchor} = $1", user_id)
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


async def followed_subset(conn: Connection, viewer_id: Optional[UUID], user_ids: list[UUID]) -> set[UUID]:
    """Return which of user_ids the viewer follows, in a single query."""
    if viewer_id is None or not user_ids:
        return set()
    rows = await conn.fetch(
        "SELECT following_id FROM follows WHERE follower_id = $1 AND following_id = ANY($2::uuid[])",
        viewer_id,
        user_ids,
    )
    return {row["following_id"] for row in rows}


async def _ensure_user_exists(conn: Connection, user_id: UUID) -> None:
    exists = await conn.fetchval("SELECT 1 FROM users WHERE id = $1", user_id)
    if not exists:
        raise NotFoundError("User not found")
