"""
Hashtag and mention extraction.

The server owns the token grammar: a '#' or '@' followed by one or more of
[A-Za-z0-9_]. Clients highlight with the same pattern, so both must agree.
"""

import logging
import re
from collections.abc import Iterable
from typing import Optional
from uuid import UUID

from asyncpg import Connection

from grape.models.models import NotificationType
from grape.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

HASHTAG_PATTERN = re.compile(r"#([A-Za-z0-9_]+)")
MENTION_PATTERN = re.compile(r"@([A-Za-z0-9_]+)")


def _extract(pattern: re.Pattern[str], text: Optional[str]) -> set[str]:
    if not text:
        return set()
    return {match.lower() for match in pattern.findall(text)}


def extract_hashtags(text: Optional[str]) -> set[str]:
    """Return the distinct lower-cased hashtags in text, without the '#'."""
    return _extract(HASHTAG_PATTERN, text)


def extract_mentions(text: Optional[str]) -> set[str]:
    """Return the distinct lower-cased usernames mentioned in text, without the '@'."""
    return _extract(MENTION_PATTERN, text)


class ContentAnnotator:
    """Materializes extracted hashtags and mentions inside the caller's transaction."""

    def __init__(self, notifications: NotificationService) -> None:
        self.notifications = notifications

    async def materialize_hashtags(self, conn: Connection, post_id: UUID, tags: Iterable[str]) -> int:
        """Insert one hashtag link per tag, skipping links that already exist"""
        tags = sorted(set(tags))
        if not tags:
            return 0

        rows = await conn.fetch(
            """
            INSERT INTO hashtags (post_id, tag)
            SELECT $1, tag FROM UNNEST($2::text[]) AS tag
            ON CONFLICT (post_id, tag) DO NOTHING
            RETURNING tag
            """,
            post_id,
            tags,
        )
        return len(rows)

    async def resolve_usernames(self, conn: Connection, usernames: Iterable[str]) -> list[UUID]:
        """Case-insensitive username lookup. Unknown names are dropped."""
        usernames = sorted({name.lower() for name in usernames})
        if not usernames:
            return []

        rows = await conn.fetch(
            "SELECT id FROM users WHERE LOWER(username) = ANY($1::text[]) ORDER BY id",
            usernames,
        )
        return [row["id"] for row in rows]

    async def materialize_mentions(
        self,
        conn: Connection,
        post_id: UUID,
        usernames: Iterable[str],
        actor_id: UUID,
    ) -> list[UUID]:
        """
        Link a post to the users its caption mentions and notify them.

        The actor is never linked or notified. Returns the ids of the users
        that were newly linked.
        """
        user_ids = await self.resolve_usernames(conn, usernames)
        mentioned: list[UUID] = []
        for user_id in user_ids:
            if user_id == actor_id:
                continue

            inserted = await conn.fetchval(
                """
                INSERT INTO mentions (post_id, mentioned_user_id)
                VALUES ($1, $2)
                ON CONFLICT DO NOTHING
                RETURNING mentioned_user_id
                """,
                post_id,
                user_id,
            )
            if inserted is None:
                continue

            await self.notifications.emit(
                conn,
                recipient_id=user_id,
                actor_id=actor_id,
                type=NotificationType.MENTION,
                post_id=post_id,
            )
            mentioned.append(user_id)

        return mentioned

    async def notify_comment_mentions(
        self,
        conn: Connection,
        text: str,
        post_id: UUID,
        comment_id: UUID,
        actor_id: UUID,
    ) -> list[UUID]:
        """Emit one mention notification per distinct user mentioned in a comment"""
        user_ids = await self.resolve_usernames(conn, extract_mentions(text))
        notified: list[UUID] = []
        for user_id in user_ids:
            created = await self.notifications.emit(
                conn,
                recipient_id=user_id,
                actor_id=actor_id,
                type=NotificationType.MENTION,
                post_id=post_id,
                comment_id=comment_id,
            )
            if created is not None:
                notified.append(user_id)
        return notified
