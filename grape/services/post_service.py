import logging
from typing import Optional
from uuid import UUID, uuid4

from grape.config_secrets import MAX_CAPTION_LENGTH, MAX_VIDEO_DURATION_SECONDS, MAX_VIDEO_UPLOAD_BYTES
from grape.core.db import Database
from grape.schemas.schemas import PostResponse, UploadUrlResponse
from grape.services.annotator import ContentAnnotator, extract_hashtags, extract_mentions
from grape.services.errors import DependencyError, ForbiddenError, NotFoundError, ValidationError
from grape.services.feed_service import fetch_post
from grape.services.s3_service import ObjectStore, video_key

logger = logging.getLogger(__name__)


def validate_post_fields(caption: Optional[str], duration: float) -> None:
    if caption is not None and len(caption) > MAX_CAPTION_LENGTH:
        raise ValidationError(f"Caption must be {MAX_CAPTION_LENGTH} characters or less")
    if not 0 < duration <= MAX_VIDEO_DURATION_SECONDS:
        raise ValidationError(f"Video must be {MAX_VIDEO_DURATION_SECONDS:g} seconds or less")


class PostService:
    """
    Post creation and deletion.

    A post and everything derived from its caption (hashtag links, mention
    links, mention notifications) are written in one transaction, so a post
    never exists half-annotated.
    """

    def __init__(self, db: Database, store: ObjectStore, annotator: ContentAnnotator) -> None:
        self.db = db
        self.store = store
        self.annotator = annotator

    async def create_post(
        self,
        actor_id: UUID,
        video: bytes,
        content_type: Optional[str],
        caption: Optional[str],
        duration: float,
    ) -> PostResponse:
        """Upload a video and create the post that references it"""
        validate_post_fields(caption, duration)
        if not content_type or not content_type.startswith("video/"):
            raise ValidationError("File must be a video")
        if not video:
            raise ValidationError("Video file is required")
        if len(video) > MAX_VIDEO_UPLOAD_BYTES:
            raise ValidationError(f"Video must be {MAX_VIDEO_UPLOAD_BYTES // (1024 * 1024)}MB or less")

        key = video_key(actor_id, uuid4())
        video_url = await self.store.put_object(key, video, content_type)

        try:
            return await self._insert_post(actor_id, video_url, key, caption, duration)
        except Exception:
            # The row never committed, so the blob has no owner
            try:
                await self.store.delete_object(key)
            except DependencyError:
                logger.warning("Could not remove orphaned upload %s", key)
            raise

    async def get_upload_url(self, actor_id: UUID) -> UploadUrlResponse:
        """Issue a presigned PUT URL under the actor's video prefix"""
        key = video_key(actor_id, uuid4())
        upload_url = await self.store.presigned_upload_url(key)
        return UploadUrlResponse(upload_url=upload_url, key=key)

    async def confirm_upload(
        self, actor_id: UUID, key: str, caption: Optional[str], duration: float,
    ) -> PostResponse:
        """Create the post for a video the client already uploaded with a presigned URL"""
        if not key.startswith(f"videos/{actor_id}/"):
            raise ForbiddenError("Upload key does not belong to this user")
        validate_post_fields(caption, duration)

        return await self._insert_post(actor_id, self.store.public_url(key), key, caption, duration)

    async def delete_post(self, actor_id: UUID, post_id: UUID) -> None:
        """
        Delete a post owned by the actor.

        The row deletion cascades to likes, comments, hashtag links, mention
        links, reports and notifications. Failing to delete the video blob is
        logged and does not block the deletion.
        """
        async with self.db.transaction() as conn:
            row = await conn.fetchrow("SELECT user_id, video_key FROM posts WHERE id = $1", post_id)
            if row is None:
                raise NotFoundError("Post not found")
            if row["user_id"] != actor_id:
                raise ForbiddenError("Not authorized to delete this post")

            await conn.execute("DELETE FROM posts WHERE id = $1", post_id)

        try:
            await self.store.delete_object(row["video_key"])
        except DependencyError:
            logger.warning("Post %s deleted but its video %s could not be removed", post_id, row["video_key"])

        logger.info("Post %s deleted by %s", post_id, actor_id)

    async def _insert_post(
        self, actor_id: UUID, video_url: str, key: str, caption: Optional[str], duration: float,
    ) -> PostResponse:
        async with self.db.transaction() as conn:
            post_id = await conn.fetchval(
                """
                INSERT INTO posts (user_id, video_url, video_key, caption, duration)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING id
                """,
                actor_id,
                video_url,
                key,
                caption,
                duration,
            )

            await self.annotator.materialize_hashtags(conn, post_id, extract_hashtags(caption))
            await self.annotator.materialize_mentions(conn, post_id, extract_mentions(caption), actor_id)

            post = await fetch_post(conn, post_id, actor_id)

        logger.info("Post %s created by %s", post_id, actor_id)
        return post
