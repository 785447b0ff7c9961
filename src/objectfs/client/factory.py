"""Bucket client factory.

Creates a bucket client for the configured S3-compatible provider.
"""

from __future__ import annotations

import structlog

from objectfs.client.base import BucketClient
from objectfs.client.s3 import S3BucketClient
from objectfs.config import StorageProvider, StorageSettings

logger = structlog.get_logger(__name__)

COS_ENDPOINT_TEMPLATE = "https://cos.{region}.myqcloud.com"


class BucketClientFactory:
    """Factory for creating bucket clients from storage settings."""

    @staticmethod
    def create(settings: StorageSettings) -> BucketClient:
        """Create a bucket client for the configured provider.

        Args:
            settings: Storage settings with provider type

        Returns:
            Unconnected bucket client

        Raises:
            ValueError: If the provider needs settings that are missing
        """
        provider = settings.provider

        if provider == StorageProvider.COS and not settings.endpoint_url:
            if not settings.region:
                raise ValueError("Tencent COS requires a region or an explicit endpoint_url")
            settings = settings.model_copy(
                update={"endpoint_url": COS_ENDPOINT_TEMPLATE.format(region=settings.region)}
            )

        elif provider == StorageProvider.MINIO and not settings.endpoint_url:
            raise ValueError("MinIO requires an explicit endpoint_url")

        logger.info(
            "bucket_client_created",
            provider=provider.value,
            bucket=settings.bucket,
            endpoint=settings.endpoint_url,
        )
        return S3BucketClient(settings)

    @staticmethod
    def supported_providers() -> list[str]:
        return [provider.value for provider in StorageProvider]
