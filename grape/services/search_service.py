"""
Tiered search over usernames and hashtags.

Matches are bucketed exact, then prefix, then substring, and each bucket is
ordered by popularity (follower count for users, post count for hashtags).
"""

import logging
from typing import Optional
from uuid import UUID

from asyncpg import Connection

from grape.config_secrets import RECENT_SEARCH_LIMIT
from grape.core.db import Database
from grape.core.pagination import PageRequest, build_pagination
from grape.models.models import SearchType
from grape.schemas.schemas import (
    HashtagResult,
    HashtagSearchResponse,
    RecentSearchItem,
    RecentSearchResponse,
    UserSearchResponse,
    UserSearchResult,
)
from grape.services.errors import ValidationError
from grape.services.graph_service import followed_subset

logger = logging.getLogger(__name__)


def normalize_query(query: Optional[str], sigil: str) -> str:
    """Trim, drop a leading '@' or '#', lower-case. Empty queries are rejected."""
    term = (query or "").strip().lstrip(sigil).strip().lower()
    if not term:
        raise ValidationError("Search query is required")
    return term


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so '_' in a username matches literally"""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SearchService:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def search_users(
        self, query: str, page: PageRequest, viewer_id: Optional[UUID] = None,
    ) -> UserSearchResponse:
        term = normalize_query(query, "@")
        pattern = escape_like(term)

        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT
                    u.id, u.username, u.bio, u.profile_pic_url,
                    (SELECT COUNT(*) FROM follows f WHERE f.following_id = u.id) AS follower_count,
                    CASE
                        WHEN LOWER(u.username) = $1 THEN 0
                        WHEN LOWER(u.username) LIKE $2::text || '%' ESCAPE '\\' THEN 1
                        ELSE 2
                    END AS tier
                FROM users u
                WHERE LOWER(u.username) LIKE '%' || $2::text || '%' ESCAPE '\\'
                ORDER BY tier, follower_count DESC, LOWER(u.username)
                LIMIT $3 OFFSET $4
                """,
                term,
                pattern,
                page.limit,
                page.offset,
            )
            total = await conn.fetchval(
                "SELECT COUNT(*) FROM users WHERE LOWER(username) LIKE '%' || $1::text || '%' ESCAPE '\\'",
                pattern,
            )
            followed = await followed_subset(conn, viewer_id, [row["id"] for row in rows])

            if viewer_id is not None:
                await _remember_search(conn, viewer_id, SearchType.USER, term)

        users = [
            UserSearchResult(
                id=row["id"],
                username=row["username"],
                bio=row["bio"],
                profile_pic_url=row["profile_pic_url"],
                follower_count=row["follower_count"],
                is_following=row["id"] in followed,
            )
            for row in rows
        ]
        return UserSearchResponse(users=users, pagination=build_pagination(page, len(rows), total))

    async def search_hashtags(
        self, query: str, page: PageRequest, viewer_id: Optional[UUID] = None,
    ) -> HashtagSearchResponse:
        term = normalize_query(query, "#")
        pattern = escape_like(term)

        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT
                    tag,
                    COUNT(*) AS post_count,
                    CASE
                        WHEN tag = $1 THEN 0
                        WHEN tag LIKE $2::text || '%' ESCAPE '\\' THEN 1
                        ELSE 2
                    END AS tier
                FROM hashtags
                WHERE tag LIKE '%' || $2::text || '%' ESCAPE '\\'
                GROUP BY tag
                ORDER BY tier, post_count DESC, tag
                LIMIT $3 OFFSET $4
                """,
                term,
                pattern,
                page.limit,
                page.offset,
            )
            total = await conn.fetchval(
                "SELECT COUNT(DISTINCT tag) FROM hashtags WHERE tag LIKE '%' || $1::text || '%' ESCAPE '\\'",
                pattern,
            )

            if viewer_id is not None:
                await _remember_search(conn, viewer_id, SearchType.HASHTAG, term)

        hashtags = [HashtagResult(tag=row["tag"], post_count=row["post_count"]) for row in rows]
        return HashtagSearchResponse(hashtags=hashtags, pagination=build_pagination(page, len(rows), total))

    async def recent_searches(self, user_id: UUID) -> RecentSearchResponse:
        """Most recent distinct searches, newest first"""
        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT search_type, search_term, created_at
                FROM recent_searches
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                user_id,
                RECENT_SEARCH_LIMIT,
            )

        return RecentSearchResponse(
            searches=[
                RecentSearchItem(
                    type=SearchType(row["search_type"]),
                    term=row["search_term"],
                    created_at=row["created_at"],
                )
                for row in rows
            ],
        )

    async def clear_recent_searches(self, user_id: UUID) -> int:
        async with self.db.acquire() as conn:
            result = await conn.execute("DELETE FROM recent_searches WHERE user_id = $1", user_id)
        return int(result.split()[-1])


async def _remember_search(conn: Connection, user_id: UUID, search_type: SearchType, term: str) -> None:
    # Re-searching refreshes recency instead of adding a row
    await conn.execute(
        """
        INSERT INTO recent_searches (user_id, search_type, search_term)
        VALUES ($1, $2, $3)
        ON CONFLICT (user_id, search_type, search_term)
        DO UPDATE SET created_at = NOW()
        """,
        user_id,
        search_type.value,
        term,
    )
    # Only the newest RECENT_SEARCH_LIMIT entries are ever shown
    await conn.execute(
        """
        DELETE FROM recent_searches
        WHERE user_id = $1
          AND (search_type, search_term) NOT IN (
              SELECT search_type, search_term
              FROM recent_searches
              WHERE user_id = $1
              ORDER BY created_at DESC
              LIMIT $2
          )
        """,
        user_id,
        RECENT_SEARCH_LIMIT,
    )
