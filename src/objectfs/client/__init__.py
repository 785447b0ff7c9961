"""Bucket-scoped object-storage clients."""

from objectfs.client.base import BatchDeleteError, BucketClient
from objectfs.client.factory import BucketClientFactory
from objectfs.client.s3 import S3BucketClient

__all__ = [
    "BatchDeleteError",
    "BucketClient",
    "BucketClientFactory",
    "S3BucketClient",
]
