"""
Read-only post views: home feed, discover feed, single post, author and hashtag timelines.

Every view goes through the same projection, so like_count and comment_count
are always live aggregates and is_liked is resolved against the viewer in the
same query.
"""

import logging
from typing import Optional
from uuid import UUID

from asyncpg import Connection, Record

from grape.config_secrets import DISCOVER_WINDOW_HOURS
from grape.core.db import Database
from grape.core.pagination import PageRequest, build_pagination
from grape.schemas.schemas import HashtagPostsResponse, PostListResponse, PostResponse, UserSummary
from grape.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# $1 is always the viewer id; NULL makes is_liked false for every row
POST_PROJECTION = """
    SELECT
        p.id, p.video_url, p.caption, p.duration, p.view_count, p.created_at,
        u.id AS user_id, u.username, u.profile_pic_url,
        (SELECT COUNT(*) FROM likes l WHERE l.post_id = p.id) AS like_count,
        (SELECT COUNT(*) FROM comments c WHERE c.post_id = p.id) AS comment_count,
        EXISTS (SELECT 1 FROM likes l WHERE l.post_id = p.id AND l.user_id = $1::uuid) AS is_liked
"""

FEED_SCOPE = "(p.user_id = $2 OR p.user_id IN (SELECT following_id FROM follows WHERE follower_id = $2))"


def normalize_tag(tag: str) -> str:
    tag = tag.strip().lstrip("#").lower()
    if not tag:
        raise ValidationError("Hashtag is required")
    return tag


async def fetch_post(conn: Connection, post_id: UUID, viewer_id: Optional[UUID] = None) -> Optional[PostResponse]:
    """Load one post through the shared projection"""
    row = await conn.fetchrow(
        f"""
        {POST_PROJECTION}
        FROM posts p
        JOIN users u ON p.user_id = u.id
        WHERE p.id = $2
        """,
        viewer_id,
        post_id,
    )
    return _post_from_record(row) if row else None


class FeedService:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def get_feed(self, user_id: UUID, page: PageRequest) -> PostListResponse:
        """
        Home feed: posts by the user or anyone they follow, newest first.

        Parameters:
        - **user_id**: the requesting user, who is also the viewer for is_liked
        - **page**: page and limit
        """
        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                f"""
                {POST_PROJECTION}
                FROM posts p
                JOIN users u ON p.user_id = u.id
                WHERE {FEED_SCOPE}
                ORDER BY p.created_at DESC, p.seq DESC
                LIMIT $3 OFFSET $4
                """,
                user_id,
                user_id,
                page.limit,
                page.offset,
            )
            total = await conn.fetchval(
                """
                SELECT COUNT(*) FROM posts
                WHERE user_id = $1 OR user_id IN (SELECT following_id FROM follows WHERE follower_id = $1)
                """,
                user_id,
            )

        return PostListResponse(
            posts=[_post_from_record(row) for row in rows],
            pagination=build_pagination(page, len(rows), total),
        )

    async def get_discover(self, page: PageRequest, viewer_id: Optional[UUID] = None) -> PostListResponse:
        """
        Discover feed over every post.

        Ranked by likes received in the trailing window, then by recency. A post
        with no recent likes competes on recency alone, whatever its lifetime
        like count.
        """
        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                f"""
                {POST_PROJECTION},
                    (
                        SELECT COUNT(*) FROM likes l
                        WHERE l.post_id = p.id AND l.created_at > NOW() - make_interval(hours => $2)
                    ) AS recent_likes
                FROM posts p
                JOIN users u ON p.user_id = u.id
                ORDER BY recent_likes DESC, p.created_at DESC, p.seq DESC
                LIMIT $3 OFFSET $4
                """,
                viewer_id,
                DISCOVER_WINDOW_HOURS,
                page.limit,
                page.offset,
            )
            total = await conn.fetchval("SELECT COUNT(*) FROM posts")

        return PostListResponse(
            posts=[_post_from_record(row) for row in rows],
            pagination=build_pagination(page, len(rows), total),
        )

    async def get_post(self, post_id: UUID, viewer_id: Optional[UUID] = None) -> PostResponse:
        """Fetch one post. Each successful read counts as exactly one view."""
        async with self.db.transaction() as conn:
            updated = await conn.fetchval(
                "UPDATE posts SET view_count = view_count + 1 WHERE id = $1 RETURNING id",
                post_id,
            )
            if updated is None:
                raise NotFoundError("Post not found")
            return await fetch_post(conn, post_id, viewer_id)

    async def get_user_posts(
        self, user_id: UUID, page: PageRequest, viewer_id: Optional[UUID] = None,
    ) -> PostListResponse:
        async with self.db.acquire() as conn:
            exists = await conn.fetchval("SELECT 1 FROM users WHERE id = $1", user_id)
            if not exists:
                raise NotFoundError("User not found")

            rows = await conn.fetch(
                f"""
                {POST_PROJECTION}
                FROM posts p
                JOIN users u ON p.user_id = u.id
                WHERE p.user_id = $2
                ORDER BY p.created_at DESC, p.seq DESC
                LIMIT $3 OFFSET $4
                """,
                viewer_id,
                user_id,
                page.limit,
                page.offset,
            )
            total = await conn.fetchval("SELECT COUNT(*) FROM posts WHERE user_id = $1", user_id)

        return PostListResponse(
            posts=[_post_from_record(row) for row in rows],
            pagination=build_pagination(page, len(rows), total),
        )

    async def get_hashtag_posts(
        self, tag: str, page: PageRequest, viewer_id: Optional[UUID] = None,
    ) -> HashtagPostsResponse:
        """Posts carrying a hashtag, newest first. An unknown tag is just an empty page."""
        tag = normalize_tag(tag)
        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                f"""
                {POST_PROJECTION}
                FROM hashtags h
                JOIN posts p ON h.post_id = p.id
                JOIN users u ON p.user_id = u.id
                WHERE h.tag = $2
                ORDER BY p.created_at DESC, p.seq DESC
                LIMIT $3 OFFSET $4
                """,
                viewer_id,
                tag,
                page.limit,
                page.offset,
            )
            total = await conn.fetchval("SELECT COUNT(*) FROM hashtags WHERE tag = $1", tag)

        return HashtagPostsResponse(
            tag=tag,
            posts=[_post_from_record(row) for row in rows],
            pagination=build_pagination(page, len(rows), total),
        )


def _post_from_record(row: Record) -> PostResponse:
    return PostResponse(
        id=row["id"],
        video_url=row["video_url"],
        caption=row["caption"],
        duration=row["duration"],
        view_count=row["view_count"],
        created_at=row["created_at"],
        user=UserSummary(
            id=row["user_id"],
            username=row["username"],
            profile_pic_url=row["profile_pic_url"],
        ),
        like_count=row["like_count"],
        comment_count=row["comment_count"],
        is_liked=row["is_liked"],
    )
