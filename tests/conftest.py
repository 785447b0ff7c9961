"""Root-level pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from objectfs import AdapterOptions, ObjectStorageAdapter
from tests.fixtures.bucket import InMemoryBucketClient


@pytest.fixture
def bucket_client() -> InMemoryBucketClient:
    """Create in-memory bucket client."""
    return InMemoryBucketClient()


@pytest_asyncio.fixture
async def adapter(bucket_client: InMemoryBucketClient) -> AsyncIterator[ObjectStorageAdapter]:
    """Create and connect adapter over the in-memory bucket."""
    adapter = ObjectStorageAdapter(bucket_client, AdapterOptions())
    await adapter.connect()

    yield adapter

    await adapter.disconnect()


@pytest_asyncio.fixture
async def prefixed_adapter(
    bucket_client: InMemoryBucketClient,
) -> AsyncIterator[ObjectStorageAdapter]:
    """Create and connect adapter rooted at a key prefix."""
    adapter = ObjectStorageAdapter(bucket_client, AdapterOptions(prefix="root/"))
    await adapter.connect()

    yield adapter

    await adapter.disconnect()
