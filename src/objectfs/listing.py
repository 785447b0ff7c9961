"""Paginated bucket listing."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import structlog

from objectfs.client.base import BucketClient

logger = structlog.get_logger(__name__)

DELIMITER = "/"


class ListingPaginator:
    """Flattens listing pages into a single lazy sequence of raw entries.

    Each page contributes its common prefixes first, then its contents, in
    service order. The directory's own marker (a key equal to the listed
    prefix) is skipped. Iteration is single-pass; call ``entries`` again to
    restart from the first page.
    """

    def __init__(self, client: BucketClient) -> None:
        self._client = client

    async def entries(self, prefix: str, deep: bool) -> AsyncIterator[dict[str, Any]]:
        """Yield raw listing entries under a prefix.

        Args:
            prefix: Key prefix, empty or ending in a slash
            deep: List recursively instead of one level
        """
        delimiter = None if deep else DELIMITER
        count = 0

        async for page in self._client.list_pages(prefix, delimiter=delimiter):
            for entry in page.get("CommonPrefixes") or []:
                count += 1
                yield entry

            for entry in page.get("Contents") or []:
                if prefix and entry.get("Key") == prefix:
                    continue
                count += 1
                yield entry

        logger.debug(
            "objectfs_listing_completed",
            prefix=prefix,
            deep=deep,
            entries=count,
        )

    async def keys(self, prefix: str) -> list[str]:
        """Collect every object key under a prefix, including its marker."""
        keys: list[str] = []
        async for page in self._client.list_pages(prefix):
            keys.extend(entry["Key"] for entry in page.get("Contents") or [])
        return keys
