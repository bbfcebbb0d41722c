from __future__ import annotations

import logging
from uuid import UUID, uuid4

from asyncpg import Connection, Record
from asyncpg.exceptions import UniqueViolationError

from grape.config_secrets import MAX_IMAGE_UPLOAD_BYTES
from grape.core.auth import get_password_hash, verify_password
from grape.core.db import Database
from grape.models.models import User
from grape.schemas.schemas import MeResponse, ProfileResponse, UserResponse, UserUpdateRequest
from grape.services.errors import (
    AuthenticationError,
    DependencyError,
    DuplicateAccountError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from grape.services.s3_service import ObjectStore, profile_pic_key

logger = logging.getLogger(__name__)

# Columns a profile patch may touch, in statement order
UPDATABLE_COLUMNS = ("username", "bio")

IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/heic": "heic",
}

USER_COUNTS_QUERY = """
    SELECT
        (SELECT COUNT(*) FROM follows WHERE following_id = $1) AS follower_count,
        (SELECT COUNT(*) FROM follows WHERE follower_id = $1) AS following_count,
        (SELECT COUNT(*) FROM posts WHERE user_id = $1) AS post_count
"""


class UserService:
    """Accounts and profiles."""

    def __init__(self, db: Database, store: ObjectStore) -> None:
        self.db = db
        self.store = store

    async def create_user(self, username: str, email: str, password: str) -> User:
        """Create an account. Username and email are unique regardless of case."""
        async with self.db.transaction() as conn:
            await _ensure_unique_account(conn, username=username, email=email)
            try:
                row = await conn.fetchrow(
                    """
                    INSERT INTO users (username, email, password_hash)
                    VALUES ($1, $2, $3)
                    RETURNING *
                    """,
                    username.lower(),
                    email.lower(),
                    get_password_hash(password),
                )
            except UniqueViolationError as exc:
                raise DuplicateAccountError() from exc

        user = _user_from_record(row)
        logger.info("Created user %s (%s)", user.username, user.id)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        async with self.db.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE LOWER(email) = LOWER($1)", email)

        if row is None or not verify_password(password, row["password_hash"]):
            raise AuthenticationError("Invalid email or password")
        return _user_from_record(row)

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        async with self.db.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
        if row is None:
            return None
        return _user_from_record(row)

    async def get_me(self, user: User) -> MeResponse:
        """The acting user with live follower, following and post counts."""
        async with self.db.acquire() as conn:
            counts = await conn.fetchrow(USER_COUNTS_QUERY, user.id)

        return MeResponse(
            id=user.id,
            username=user.username,
            email=user.email,
            bio=user.bio,
            profile_pic_url=user.profile_pic_url,
            created_at=user.created_at,
            follower_count=counts["follower_count"],
            following_count=counts["following_count"],
            post_count=counts["post_count"],
        )

    async def get_profile(self, username: str, viewer_id: UUID | None = None) -> ProfileResponse:
        """Public profile by username, case-insensitive."""
        async with self.db.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE LOWER(username) = LOWER($1)", username)
            if row is None:
                raise NotFoundError("User not found")

            counts = await conn.fetchrow(USER_COUNTS_QUERY, row["id"])
            is_following = False
            if viewer_id is not None and viewer_id != row["id"]:
                is_following = bool(
                    await conn.fetchval(
                        "SELECT 1 FROM follows WHERE follower_id = $1 AND following_id = $2",
                        viewer_id,
                        row["id"],
                    ),
                )

        return ProfileResponse(
            id=row["id"],
            username=row["username"],
            bio=row["bio"],
            profile_pic_url=row["profile_pic_url"],
            created_at=row["created_at"],
            follower_count=counts["follower_count"],
            following_count=counts["following_count"],
            post_count=counts["post_count"],
            is_following=is_following,
        )

    async def update_profile(self, actor_id: UUID, target_id: UUID, patch: UserUpdateRequest) -> UserResponse:
        """
        Apply a partial profile update.

        Only fields present in the patch are written. The SET clause is built
        from UPDATABLE_COLUMNS, so its shape depends on which fields are
        present and never on their values.
        """
        if actor_id != target_id:
            raise ForbiddenError("Not authorized to update this profile")

        columns = [column for column in UPDATABLE_COLUMNS if column in patch.model_fields_set]
        if not columns:
            raise ValidationError("No fields to update")
        if "username" in columns and patch.username is None:
            raise ValidationError("Username cannot be empty")

        values = [getattr(patch, column) for column in columns]
        assignments = ", ".join(f"{column} = ${index}" for index, column in enumerate(columns, start=2))

        async with self.db.transaction() as conn:
            if "username" in columns:
                taken = await conn.fetchval(
                    "SELECT 1 FROM users WHERE LOWER(username) = LOWER($1) AND id <> $2",
                    patch.username,
                    target_id,
                )
                if taken:
                    raise DuplicateAccountError("Username already taken")

            try:
                row = await conn.fetchrow(
                    f"UPDATE users SET {assignments}, updated_at = NOW() WHERE id = $1 RETURNING *",
                    target_id,
                    *values,
                )
            except UniqueViolationError as exc:
                raise DuplicateAccountError("Username already taken") from exc

        if row is None:
            raise NotFoundError("User not found")
        return _user_response(row)

    async def update_avatar(
        self, actor_id: UUID, target_id: UUID, image: bytes, content_type: str | None,
    ) -> UserResponse:
        """Store a new profile picture and point the profile at it."""
        if actor_id != target_id:
            raise ForbiddenError("Not authorized to update this profile")
        if not content_type or not content_type.startswith("image/"):
            raise ValidationError("File must be an image")
        if not image:
            raise ValidationError("Image file is required")
        if len(image) > MAX_IMAGE_UPLOAD_BYTES:
            raise ValidationError(f"Image must be {MAX_IMAGE_UPLOAD_BYTES // (1024 * 1024)}MB or less")

        extension = IMAGE_EXTENSIONS.get(content_type, content_type.split("/", 1)[1].split("+")[0] or "img")
        key = profile_pic_key(target_id, uuid4(), extension)
        url = await self.store.put_object(key, image, content_type)

        try:
            row = await self._swap_avatar(target_id, url, key)
        except Exception:
            try:
                await self.store.delete_object(key)
            except DependencyError:
                logger.warning("Could not remove orphaned profile picture %s", key)
            raise

        old_key = row["previous_key"]
        if old_key:
            try:
                await self.store.delete_object(old_key)
            except DependencyError:
                logger.warning("Could not remove previous profile picture %s", old_key)

        return _user_response(row)

    async def _swap_avatar(self, user_id: UUID, url: str, key: str) -> Record:
        # The row lock makes concurrent swaps each see the key they replace
        async with self.db.acquire() as conn:
            row = await conn.fetchrow(
                """
                WITH previous AS (
                    SELECT id, profile_pic_key FROM users WHERE id = $1 FOR UPDATE
                )
                UPDATE users u
                SET profile_pic_url = $2, profile_pic_key = $3, updated_at = NOW()
                FROM previous
                WHERE u.id = previous.id
                RETURNING u.*, previous.profile_pic_key AS previous_key
                """,
                user_id,
                url,
                key,
            )
        if row is None:
            raise NotFoundError("User not found")
        return row


async def _ensure_unique_account(conn: Connection, username: str, email: str) -> None:
    username_taken = await conn.fetchval("SELECT 1 FROM users WHERE LOWER(username) = LOWER($1)", username)
    if username_taken:
        raise DuplicateAccountError("Username already taken")

    email_taken = await conn.fetchval("SELECT 1 FROM users WHERE LOWER(email) = LOWER($1)", email)
    if email_taken:
        raise DuplicateAccountError("Email already registered")


def _user_from_record(row: Record) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        password_hash=row["password_hash"],
        bio=row["bio"],
        profile_pic_url=row["profile_pic_url"],
        created_at=row["created_at"],
    )


def _user_response(row: Record) -> UserResponse:
    return UserResponse(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        bio=row["bio"],
        profile_pic_url=row["profile_pic_url"],
        created_at=row["created_at"],
    )
