"""Object storage for generated story assets."""

from .s3 import S3BlobStore, StorageConfigError

__all__ = [
    "S3BlobStore",
    "StorageConfigError",
]
