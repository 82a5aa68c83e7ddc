"""
S3-compatible object storage for story assets.

boto3 is synchronous, so uploads run in a worker thread to keep the
consumer's event loop free for other in-flight jobs.
"""

import asyncio
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig

from bedtime.config import AppConfig, config as default_config
from bedtime.utils.logging import storage_logger as logger


class StorageConfigError(Exception):
    """Raised when object storage settings are missing."""
    pass


def normalize_base_url(base: str) -> str:
    return base[:-1] if base.endswith("/") else base


class S3BlobStore:
    """
    Uploads buffers to a bucket and builds their public URLs.

    Usage:
        store = S3BlobStore()
        await store.upload_buffer("stories/1/preview.webp", data, "image/webp")
        url = store.build_public_url("stories/1/preview.webp")
    """

    def __init__(self, settings: Optional[AppConfig] = None, client: Optional[Any] = None):
        self.settings = settings or default_config
        self._client = client

    def _require(self, name: str) -> str:
        value = getattr(self.settings, name)
        if not value:
            raise StorageConfigError(f"{name} is missing")
        return value

    @property
    def bucket(self) -> str:
        return self._require("S3_BUCKET")

    @property
    def client(self) -> Any:
        if self._client is None:
            if not self.settings.s3_configured:
                raise StorageConfigError(
                    "S3_ENDPOINT, S3_ACCESS_KEY, S3_SECRET_KEY and S3_BUCKET must be set"
                )
            addressing = "path" if self.settings.S3_FORCE_PATH_STYLE else "auto"
            self._client = boto3.client(
                "s3",
                region_name=self.settings.S3_REGION,
                endpoint_url=self.settings.S3_ENDPOINT,
                aws_access_key_id=self.settings.S3_ACCESS_KEY,
                aws_secret_access_key=self.settings.S3_SECRET_KEY,
                config=BotoConfig(s3={"addressing_style": addressing}),
            )
        return self._client

    async def upload_buffer(
        self,
        key: str,
        body: bytes,
        content_type: str,
        cache_control: Optional[str] = None,
    ) -> None:
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
        }
        if cache_control:
            params["CacheControl"] = cache_control

        await asyncio.to_thread(self.client.put_object, **params)
        logger.info("Uploaded object", key=key, bytes=len(body), content_type=content_type)

    def build_public_url(self, key: str) -> str:
        base = self.settings.PUBLIC_ASSET_BASE_URL or self.settings.S3_ENDPOINT
        if not base:
            raise StorageConfigError("PUBLIC_ASSET_BASE_URL or S3_ENDPOINT is missing")
        return f"{normalize_base_url(base)}/{self.bucket}/{key}"

    def presigned_url(self, key: str, expires_in: int = 3600) -> str:
        """Temporary GET URL for a private object."""
        return self.client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in,
        )
