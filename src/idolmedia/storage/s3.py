"""S3-compatible object store backend.

Works against AWS S3 and any endpoint speaking the same API (R2, MinIO)
when S3_ENDPOINT_URL is set.
"""

import asyncio
import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from idolmedia.core.config import settings
from idolmedia.storage.base import PutResult, StorageBackend

logger = logging.getLogger(__name__)


class S3StorageBackend(StorageBackend):
    """Object store backend using boto3."""

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        self.bucket_name = bucket_name or settings.S3_BUCKET_NAME
        self.region = region or settings.S3_REGION
        self.endpoint_url = endpoint_url if endpoint_url is not None else settings.S3_ENDPOINT_URL
        self._s3_client = None

    def _get_client(self):
        """Lazy-load and cache the boto3 client."""
        if self._s3_client is None:
            if not self.bucket_name:
                raise ValueError("S3_BUCKET_NAME not configured")

            self._s3_client = boto3.client(
                "s3",
                endpoint_url=self.endpoint_url or None,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
                region_name=self.region,
                config=Config(signature_version="s3v4"),
            )
            logger.info(
                "Initialized S3 storage client",
                extra={"bucket": self.bucket_name, "endpoint": self.endpoint_url or "aws"},
            )

        return self._s3_client

    async def put_object(self, key: str, data: bytes, content_type: str) -> PutResult:
        response = await asyncio.to_thread(
            self._get_client().put_object,
            Bucket=self.bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        etag = response.get("ETag")
        return PutResult(etag=etag.strip('"') if etag else None)

    async def delete_object(self, key: str) -> None:
        try:
            await asyncio.to_thread(
                self._get_client().delete_object, Bucket=self.bucket_name, Key=key
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                logger.debug(f"Object already absent: {key}", extra={"key": key})
                return
            raise

    async def signed_read_url(self, key: str, ttl_seconds: int) -> str:
        return await asyncio.to_thread(
            self._get_client().generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket_name, "Key": key},
            ExpiresIn=ttl_seconds,
        )

    def object_url(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"

    def get_backend_name(self) -> str:
        return "s3"
