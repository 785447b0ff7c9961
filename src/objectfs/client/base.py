"""Bucket-scoped storage client interface.

Defines the object-storage primitives the filesystem adapter is built on:
metadata probes, object get/put/delete, paginated listing, ACLs and
server-side copy. Responses are plain dicts using S3 field names.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from types import TracebackType
from typing import Any

from objectfs.options import UploadOptions

MAX_DELETE_BATCH = 1000


class BucketClient(ABC):
    """Abstract base class for bucket-scoped object-storage clients.

    Implementations raise their native transport/service errors; translating
    them into filesystem failures is the adapter's job.
    """

    def __init__(self, bucket: str) -> None:
        """Initialize bucket client.

        Args:
            bucket: Bucket name every operation is scoped to
        """
        self._bucket = bucket
        self._connected = False

    @property
    def bucket(self) -> str:
        return self._bucket

    def is_connected(self) -> bool:
        return self._connected

    async def __aenter__(self) -> BucketClient:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.disconnect()

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the storage service."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Release connections held by the client."""
        ...

    @abstractmethod
    async def object_exists(self, key: str) -> bool:
        """Probe for an object.

        Returns:
            False when the service reports the object missing

        Raises:
            Exception: Any other service or transport failure
        """
        ...

    @abstractmethod
    async def head_object(self, key: str) -> dict[str, Any]:
        """Fetch object metadata without the body."""
        ...

    @abstractmethod
    async def get_object(self, key: str) -> dict[str, Any]:
        """Fetch an object.

        Returns:
            Response fields; ``Body`` is a stream exposing ``read()`` and
            ``iter_chunks(chunk_size)``
        """
        ...

    @abstractmethod
    async def upload(
        self,
        key: str,
        body: bytes | AsyncIterator[bytes],
        options: UploadOptions,
    ) -> dict[str, Any]:
        """Store an object.

        Byte bodies are sent in one request; async iterators are sent as a
        multipart upload tuned by ``options.multipart``.
        """
        ...

    @abstractmethod
    async def delete_object(self, key: str) -> None:
        ...

    @abstractmethod
    async def delete_objects(self, keys: Sequence[str]) -> None:
        """Delete many objects in batches.

        Raises:
            Exception: If any batch fails or reports per-key errors
        """
        ...

    @abstractmethod
    def list_pages(
        self,
        prefix: str,
        delimiter: str | None = None,
        max_keys: int | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Iterate listing pages under a prefix.

        Each page carries ``CommonPrefixes`` and ``Contents``; continuation
        tokens are followed until the service reports no more results. With
        ``max_keys`` only the first page is fetched.
        """
        ...

    @abstractmethod
    async def get_object_acl(self, key: str) -> dict[str, Any]:
        """Fetch the ACL of an object (``Grants`` list)."""
        ...

    @abstractmethod
    async def put_object_acl(self, key: str, acl: str) -> None:
        """Apply a canned ACL to an object."""
        ...

    @abstractmethod
    async def copy_object(
        self,
        source_key: str,
        destination_key: str,
        source_version_id: str | None = None,
    ) -> dict[str, Any]:
        """Server-side copy within the bucket."""
        ...


class BatchDeleteError(Exception):
    """Raised when a batch delete reports per-key failures."""

    def __init__(self, errors: Sequence[dict[str, Any]]) -> None:
        """Initialize batch delete error.

        Args:
            errors: Per-key error entries (``Key``, ``Code``, ``Message``)
        """
        self.errors = list(errors)
        keys = ", ".join(str(error.get("Key")) for error in self.errors[:5])
        super().__init__(f"Batch delete failed for {len(self.errors)} key(s): {keys}")
