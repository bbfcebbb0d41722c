"""
Utility script to create the database tables.

Every dependent of posts and users is declared ON DELETE CASCADE, so deleting
a post removes its likes, comments, hashtag links, mention links, reports and
the notifications that reference it. notifications.comment_id is
not a foreign key: deleting a comment leaves the pointer behind and readers
treat the missing comment as null.
"""

import asyncio
import logging
from typing import Optional

import asyncpg
from asyncpg import Connection

from grape.config_secrets import DATABASE_URL, MAX_CAPTION_LENGTH, MAX_COMMENT_LENGTH, MAX_VIDEO_DURATION_SECONDS

logger = logging.getLogger(__name__)

# Reverse dependency order
TABLES = (
    "recent_searches",
    "reports",
    "notifications",
    "mentions",
    "hashtags",
    "follows",
    "comments",
    "likes",
    "posts",
    "users",
)


async def create_schema(conn: Connection) -> None:
    """Create all tables and indexes if they don't exist"""
    # Users table
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            username TEXT NOT NULL,
            email TEXT NOT NULL,
            password_hash TEXT NOT NULL,
            bio TEXT,
            profile_pic_url TEXT,
            profile_pic_key TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        CREATE UNIQUE INDEX IF NOT EXISTS idx_users_username_lower ON users(LOWER(username));
        CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email_lower ON users(LOWER(email));
    """)
    logger.info("Created users table")

    # Posts table
    await conn.execute(f"""
        CREATE TABLE IF NOT EXISTS posts (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            seq BIGINT GENERATED ALWAYS AS IDENTITY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            video_url TEXT NOT NULL,
            video_key TEXT NOT NULL,
            caption TEXT CHECK (caption IS NULL OR char_length(caption) <= {MAX_CAPTION_LENGTH}),
            duration DOUBLE PRECISION NOT NULL CHECK (duration > 0 AND duration <= {MAX_VIDEO_DURATION_SECONDS}),
            view_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_posts_user_id ON posts(user_id, created_at DESC);
        CREATE INDEX IF NOT EXISTS idx_posts_created_at ON posts(created_at DESC, seq DESC);
    """)
    logger.info("Created posts table")

    # Likes table
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS likes (
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            post_id UUID NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, post_id)
        );
        CREATE INDEX IF NOT EXISTS idx_likes_post_id ON likes(post_id, created_at DESC);
    """)
    logger.info("Created likes table")

    # Comments table
    await conn.execute(f"""
        CREATE TABLE IF NOT EXISTS comments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            seq BIGINT GENERATED ALWAYS AS IDENTITY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            post_id UUID NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
            text TEXT NOT NULL CHECK (char_length(text) BETWEEN 1 AND {MAX_COMMENT_LENGTH}),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_comments_post_id ON comments(post_id, created_at);
    """)
    logger.info("Created comments table")

    # Follows table
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS follows (
            follower_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            following_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (follower_id, following_id),
            CHECK (follower_id <> following_id)
        );
        CREATE INDEX IF NOT EXISTS idx_follows_following_id ON follows(following_id, created_at DESC);
    """)
    logger.info("Created follows table")

    # Hashtag links
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS hashtags (
            post_id UUID NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
            tag TEXT NOT NULL CHECK (tag = LOWER(tag)),
            PRIMARY KEY (post_id, tag)
        );
        CREATE INDEX IF NOT EXISTS idx_hashtags_tag ON hashtags(tag);
    """)
    logger.info("Created hashtags table")

    # Mention links
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS mentions (
            post_id UUID NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
            mentioned_user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            PRIMARY KEY (post_id, mentioned_user_id)
        );
    """)
    logger.info("Created mentions table")

    # Notifications table
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            seq BIGINT GENERATED ALWAYS AS IDENTITY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            actor_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type TEXT NOT NULL CHECK (type IN ('like', 'comment', 'follow', 'mention')),
            post_id UUID REFERENCES posts(id) ON DELETE CASCADE,
            comment_id UUID,
            read BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (user_id <> actor_id)
        );
        CREATE INDEX IF NOT EXISTS idx_notifications_user_id ON notifications(user_id, created_at DESC, seq DESC);
        CREATE INDEX IF NOT EXISTS idx_notifications_unread ON notifications(user_id) WHERE read = FALSE;
    """)
    logger.info("Created notifications table")

    # Reports table
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS reports (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            reporter_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            post_id UUID NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
            reason TEXT NOT NULL CHECK (reason IN ('spam', 'inappropriate', 'harassment', 'violence', 'other')),
            description TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    logger.info("Created reports table")

    # Recent searches, one logical row per (user, type, term)
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS recent_searches (
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            search_type TEXT NOT NULL CHECK (search_type IN ('user', 'hashtag')),
            search_term TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, search_type, search_term)
        );
        CREATE INDEX IF NOT EXISTS idx_recent_searches_user ON recent_searches(user_id, created_at DESC);
    """)
    logger.info("Created recent_searches table")


async def drop_schema(conn: Connection) -> None:
    """Drop every table, dependents first"""
    for table in TABLES:
        await conn.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
    logger.info("All tables dropped")


async def create_database_tables(connection_string: Optional[str] = None) -> None:
    """
    Create all database tables.

    Args:
        connection_string: Database connection string. If not provided,
            uses the DATABASE_URL from config_secrets.py.
    """
    conn_string = connection_string or DATABASE_URL

    logger.info("Connecting to database...")
    conn = await asyncpg.connect(conn_string)

    try:
        async with conn.transaction():
            await create_schema(conn)
        logger.info("All tables created successfully")
    finally:
        await conn.close()
        logger.info("Database connection closed")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(create_database_tables())
