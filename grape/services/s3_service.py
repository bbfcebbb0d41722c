import asyncio
import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from grape.config_secrets import (
    S3_ACCESS_KEY_ID,
    S3_BUCKET,
    S3_ENDPOINT,
    S3_REGION,
    S3_SECRET_ACCESS_KEY,
    S3_UPLOAD_URL_EXPIRES,
)
from grape.services.errors import DependencyError

logger = logging.getLogger(__name__)


def video_key(user_id, object_id) -> str:
    return f"videos/{user_id}/{object_id}.mp4"


def profile_pic_key(user_id, object_id, extension: str) -> str:
    return f"profile-pics/{user_id}/{object_id}.{extension}"


class ObjectStore:
    """
    Thin wrapper around an S3-compatible bucket.

    boto3 is blocking, so every call is pushed onto a worker thread. Any
    client failure surfaces as DependencyError.
    """

    def __init__(
        self,
        bucket: str = S3_BUCKET,
        endpoint: Optional[str] = S3_ENDPOINT,
        region: str = S3_REGION,
        access_key_id: str = S3_ACCESS_KEY_ID,
        secret_access_key: str = S3_SECRET_ACCESS_KEY,
        client=None,
    ) -> None:
        self.bucket = bucket
        self.endpoint = endpoint.rstrip("/") if endpoint else None
        self.region = region
        self.client = client or boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            # MinIO and friends only speak path-style
            config=Config(s3={"addressing_style": "path"} if self.endpoint else {}),
        )

    def public_url(self, key: str) -> str:
        """Browser-facing URL of a stored object"""
        if self.endpoint:
            return f"{self.endpoint}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def put_object(self, key: str, body: bytes, content_type: str) -> str:
        """
        Upload bytes under key

        Returns:
            The public URL of the stored object
        """
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:
            logger.exception("Failed to upload %s to object store", key)
            raise DependencyError("Failed to upload file") from exc

        logger.info("Stored %s (%d bytes)", key, len(body))
        return self.public_url(key)

    async def delete_object(self, key: str) -> None:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            logger.exception("Failed to delete %s from object store", key)
            raise DependencyError("Failed to delete file") from exc

    async def presigned_upload_url(
        self, key: str, content_type: str = "video/mp4", expiration: int = S3_UPLOAD_URL_EXPIRES,
    ) -> str:
        """Generate a presigned PUT URL so clients can upload directly"""
        try:
            return await asyncio.to_thread(
                self.client.generate_presigned_url,
                "put_object",
                Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=expiration,
            )
        except (ClientError, BotoCoreError) as exc:
            logger.exception("Failed to generate presigned URL for %s", key)
            raise DependencyError("Failed to generate upload URL") from exc
