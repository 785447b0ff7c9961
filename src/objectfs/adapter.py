"""Filesystem adapter over a flat object-storage bucket.

Exposes filesystem-shaped operations (exists, read, write, delete, list,
move, copy, metadata, visibility) and translates them into bucket client
calls. Directories are emulated: a directory exists when a zero-byte marker
key ending in a slash exists or when any object shares its prefix.

Every operation awaits its round trips in sequence and wraps any client
error exactly once in the typed failure for that operation. Nothing is
retried here; retries belong to the bucket client.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from types import TracebackType
from typing import IO, Any

import structlog

from objectfs.client.base import BucketClient
from objectfs.config import (
    NOT_SET,
    OPTION_RETAIN_VISIBILITY,
    OPTION_VISIBILITY,
    AdapterOptions,
    Config,
    StorageSettings,
)
from objectfs.exceptions import (
    FilesystemOperationFailed,
    InvalidVisibilityProvided,
    UnableToCheckDirectoryExistence,
    UnableToCheckFileExistence,
    UnableToCopyFile,
    UnableToCreateDirectory,
    UnableToDeleteDirectory,
    UnableToDeleteFile,
    UnableToListContents,
    UnableToMoveFile,
    UnableToReadFile,
    UnableToRetrieveMetadata,
    UnableToSetVisibility,
    UnableToWriteFile,
)
from objectfs.listing import ListingPaginator
from objectfs.metadata import MetadataMapper
from objectfs.models import FileAttributes, MetadataAttribute, StorageAttributes, Visibility
from objectfs.options import UploadOptionBuilder
from objectfs.path_prefixer import PathPrefixer
from objectfs.visibility import PortableVisibilityConverter

logger = structlog.get_logger(__name__)

WritableStream = AsyncIterator[bytes] | Iterable[bytes] | IO[bytes]


class ObjectStorageAdapter:
    """Filesystem adapter for an S3-compatible bucket.

    Holds no mutable state besides the client, so concurrent calls are
    independent; two writers to the same key race at the storage service.
    """

    def __init__(
        self,
        client: BucketClient,
        options: AdapterOptions | None = None,
    ) -> None:
        """Initialize adapter.

        Args:
            client: Bucket-scoped storage client
            options: Adapter-wide configuration
        """
        self._client = client
        self.options = options or AdapterOptions()
        self._prefixer = PathPrefixer(self.options.prefix)
        self._visibility = self.options.visibility
        self._mapper = MetadataMapper(self._prefixer)
        self._paginator = ListingPaginator(client)
        self._upload_options = UploadOptionBuilder(
            self.options.visibility,
            self.options.mime_type_detector,
            self.options.default_options,
        )

    @classmethod
    def from_settings(cls, settings: StorageSettings, **options: Any) -> ObjectStorageAdapter:
        """Build an adapter and its bucket client from storage settings.

        Args:
            settings: Connection settings
            **options: Extra AdapterOptions fields

        Returns:
            Adapter wrapping an unconnected client
        """
        from objectfs.client.factory import BucketClientFactory

        options.setdefault("prefix", settings.prefix)
        options.setdefault(
            "visibility",
            PortableVisibilityConverter(default_for_directories=settings.directory_visibility),
        )
        return cls(BucketClientFactory.create(settings), AdapterOptions(**options))

    @property
    def client(self) -> BucketClient:
        """Underlying bucket client, for operations the adapter does not model."""
        return self._client

    @property
    def bucket(self) -> str:
        return self._client.bucket

    async def connect(self) -> None:
        await self._client.connect()

    async def disconnect(self) -> None:
        await self._client.disconnect()

    async def __aenter__(self) -> ObjectStorageAdapter:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.disconnect()

    # Existence

    async def file_exists(self, path: str) -> bool:
        """Check whether a file exists.

        Raises:
            UnableToCheckFileExistence: If the probe itself fails
        """
        try:
            return await self._client.object_exists(self._prefixer.prefix_path(path))
        except Exception as e:
            logger.error("objectfs_file_exists_failed", path=path, error=str(e))
            raise UnableToCheckFileExistence(path, str(e)) from e

    async def directory_exists(self, path: str) -> bool:
        """Check whether a directory marker or any object under the prefix exists.

        Raises:
            UnableToCheckDirectoryExistence: If the listing fails
        """
        prefix = self._prefixer.prefix_directory_path(path)
        try:
            async for page in self._client.list_pages(prefix, max_keys=1):
                if page.get("Contents") or page.get("CommonPrefixes"):
                    return True
        except Exception as e:
            logger.error("objectfs_directory_exists_failed", path=path, error=str(e))
            raise UnableToCheckDirectoryExistence(path, str(e)) from e

        return False

    # Writing

    async def write(
        self,
        path: str,
        contents: bytes | str,
        config: Config | None = None,
    ) -> None:
        """Write a file in a single request.

        Raises:
            UnableToWriteFile: If the upload fails
        """
        if isinstance(contents, str):
            contents = contents.encode("utf-8")

        await self._upload(path, contents, config or Config(), sample=contents)

    async def write_stream(
        self,
        path: str,
        contents: WritableStream,
        config: Config | None = None,
    ) -> None:
        """Write a file from a stream.

        Accepts an async iterator of chunks, an iterable of chunks or a
        binary file object. The first chunk is used for MIME type detection.

        Raises:
            UnableToWriteFile: If reading the stream or the upload fails
        """
        chunks = _aiter_chunks(contents, self.options.stream_chunk_size)
        try:
            first = await anext(chunks, b"")
        except Exception as e:
            logger.error("objectfs_write_failed", path=path, error=str(e))
            raise UnableToWriteFile(path, str(e)) from e

        await self._upload(path, _prepend(first, chunks), config or Config(), sample=first)

    async def _upload(
        self,
        path: str,
        body: bytes | AsyncIterator[bytes],
        config: Config,
        sample: bytes,
    ) -> None:
        key = self._prefixer.prefix_path(path)
        options = self._upload_options.build(config, key, sample)

        try:
            await self._client.upload(key, body, options)
        except Exception as e:
            logger.error("objectfs_write_failed", path=path, error=str(e))
            raise UnableToWriteFile(path, str(e)) from e

        logger.debug(
            "objectfs_file_written",
            path=path,
            content_type=options.params.get("ContentType"),
        )

    # Reading

    async def read(self, path: str) -> bytes:
        """Read a whole file.

        Raises:
            UnableToReadFile: If the object cannot be fetched
        """
        try:
            response = await self._client.get_object(self._prefixer.prefix_path(path))
            return await response["Body"].read()
        except Exception as e:
            logger.error("objectfs_read_failed", path=path, error=str(e))
            raise UnableToReadFile(path, str(e)) from e

    async def read_stream(self, path: str) -> AsyncIterator[bytes]:
        """Open a file for streaming.

        The returned iterator reads straight from the response body and closes
        it when exhausted, on error, or on ``aclose()``.

        Raises:
            UnableToReadFile: If the object cannot be fetched, or later while
                iterating if the body stream fails
        """
        try:
            response = await self._client.get_object(self._prefixer.prefix_path(path))
        except Exception as e:
            logger.error("objectfs_read_failed", path=path, error=str(e))
            raise UnableToReadFile(path, str(e)) from e

        return self._iter_body(path, response["Body"])

    async def _iter_body(self, path: str, body: Any) -> AsyncIterator[bytes]:
        try:
            async for chunk in body.iter_chunks(self.options.stream_chunk_size):
                yield chunk
        except Exception as e:
            logger.error("objectfs_read_stream_failed", path=path, error=str(e))
            raise UnableToReadFile(path, str(e)) from e
        finally:
            # Releases the connection when the caller stops early too
            body.close()

    # Deleting

    async def delete(self, path: str) -> None:
        """Delete a single file.

        Raises:
            UnableToDeleteFile: If the delete request fails
        """
        try:
            await self._client.delete_object(self._prefixer.prefix_path(path))
        except Exception as e:
            logger.error("objectfs_delete_failed", path=path, error=str(e))
            raise UnableToDeleteFile(path, str(e)) from e

        logger.debug("objectfs_file_deleted", path=path)

    async def delete_directory(self, path: str) -> None:
        """Delete a directory and everything under it.

        Lists every key under the directory prefix, the marker included, and
        removes them with batch deletes.

        Raises:
            UnableToDeleteDirectory: If the listing or a batch delete fails
        """
        prefix = self._prefixer.prefix_directory_path(path)
        try:
            keys = await self._paginator.keys(prefix)
            if keys:
                await self._client.delete_objects(keys)
        except Exception as e:
            logger.error("objectfs_delete_directory_failed", path=path, error=str(e))
            raise UnableToDeleteDirectory(path, str(e)) from e

        logger.debug("objectfs_directory_deleted", path=path, objects=len(keys))

    # Directories

    async def create_directory(self, path: str, config: Config | None = None) -> None:
        """Create a directory marker object.

        The marker gets the converter's directory visibility unless the
        config sets a visibility or ACL of its own.

        Raises:
            UnableToCreateDirectory: If the marker upload fails
        """
        key = self._prefixer.prefix_directory_path(path)
        if not key:
            return

        config = (config or Config()).with_defaults(
            {OPTION_VISIBILITY: self._visibility.default_for_directories()}
        )
        options = self._upload_options.build(config, key)

        try:
            await self._client.upload(key, b"", options)
        except Exception as e:
            logger.error("objectfs_create_directory_failed", path=path, error=str(e))
            raise UnableToCreateDirectory(path, str(e)) from e

        logger.debug("objectfs_directory_created", path=path)

    # Visibility

    async def set_visibility(self, path: str, visibility: Visibility | str) -> None:
        """Apply a visibility level to a file.

        Raises:
            InvalidVisibilityProvided: If visibility is not public or private
            UnableToSetVisibility: If the ACL update fails
        """
        visibility = _parse_visibility(visibility)

        try:
            await self._client.put_object_acl(
                self._prefixer.prefix_path(path),
                self._visibility.visibility_to_acl(visibility),
            )
        except Exception as e:
            logger.error("objectfs_set_visibility_failed", path=path, error=str(e))
            raise UnableToSetVisibility(path, str(e)) from e

    async def visibility(self, path: str) -> FileAttributes:
        """Read a file's visibility from its ACL.

        Raises:
            UnableToRetrieveMetadata: If the ACL cannot be fetched
        """
        try:
            response = await self._client.get_object_acl(self._prefixer.prefix_path(path))
        except Exception as e:
            logger.error("objectfs_visibility_failed", path=path, error=str(e))
            raise UnableToRetrieveMetadata(path, MetadataAttribute.VISIBILITY, str(e)) from e

        return FileAttributes(
            path=path,
            visibility=self._visibility.acl_to_visibility(response.get("Grants") or []),
        )

    # Metadata

    async def mime_type(self, path: str) -> FileAttributes:
        attributes = await self._fetch_file_metadata(path, MetadataAttribute.MIME_TYPE)
        if attributes.mime_type is None:
            raise UnableToRetrieveMetadata(path, MetadataAttribute.MIME_TYPE)
        return attributes

    async def last_modified(self, path: str) -> FileAttributes:
        attributes = await self._fetch_file_metadata(path, MetadataAttribute.LAST_MODIFIED)
        if attributes.last_modified is None:
            raise UnableToRetrieveMetadata(path, MetadataAttribute.LAST_MODIFIED)
        return attributes

    async def file_size(self, path: str) -> FileAttributes:
        attributes = await self._fetch_file_metadata(path, MetadataAttribute.FILE_SIZE)
        if attributes.file_size is None:
            raise UnableToRetrieveMetadata(path, MetadataAttribute.FILE_SIZE)
        return attributes

    async def _fetch_file_metadata(
        self,
        path: str,
        metadata_type: MetadataAttribute,
    ) -> FileAttributes:
        try:
            response = await self._client.head_object(self._prefixer.prefix_path(path))
        except Exception as e:
            logger.error(
                "objectfs_metadata_failed",
                path=path,
                metadata_type=metadata_type.value,
                error=str(e),
            )
            raise UnableToRetrieveMetadata(path, metadata_type, str(e)) from e

        try:
            attributes = self._mapper.map_object_metadata(response, path)
        except ValueError as e:
            raise UnableToRetrieveMetadata(path, metadata_type, str(e)) from e

        if not isinstance(attributes, FileAttributes):
            raise UnableToRetrieveMetadata(path, metadata_type, "Path is a directory.")

        return attributes

    # Listing

    async def list_contents(self, path: str = "", deep: bool = False) -> AsyncIterator[StorageAttributes]:
        """List files and directories under a path.

        Entries arrive in storage-service order, page by page, without
        sorting. Directories come from common prefixes (shallow listings) and
        from marker keys.

        Args:
            path: Directory to list; empty for the root
            deep: Recurse into subdirectories

        Raises:
            UnableToListContents: If any listing page fails
        """
        prefix = self._prefixer.prefix_directory_path(path)
        try:
            async for entry in self._paginator.entries(prefix, deep):
                yield self._mapper.map_object_metadata(entry)
        except Exception as e:
            logger.error("objectfs_list_contents_failed", path=path, error=str(e))
            raise UnableToListContents(path, str(e)) from e

    # Copy / move

    async def copy(
        self,
        source: str,
        destination: str,
        config: Config | None = None,
    ) -> None:
        """Copy a file server-side.

        The source's visibility is re-applied to the destination, because
        ACLs do not survive a server-side copy. A ``visibility`` config value
        overrides it; ``retain_visibility=False`` skips it.

        Raises:
            InvalidVisibilityProvided: If the config visibility is not public or
                private; nothing is copied
            UnableToCopyFile: If any step fails
        """
        config = config or Config()
        source_key = self._prefixer.prefix_path(source)
        destination_key = self._prefixer.prefix_path(destination)

        visibility = config.get(OPTION_VISIBILITY, NOT_SET)
        if visibility is not NOT_SET:
            visibility = _parse_visibility(visibility)

        try:
            if visibility is NOT_SET:
                visibility = None
                if config.get(OPTION_RETAIN_VISIBILITY, True):
                    visibility = (await self.visibility(source)).visibility

            head = await self._client.head_object(source_key)
            await self._client.copy_object(source_key, destination_key, head.get("VersionId"))

            if visibility is not None:
                await self.set_visibility(destination, visibility)

        except Exception as e:
            logger.error(
                "objectfs_copy_failed",
                source=source,
                destination=destination,
                error=str(e),
            )
            raise UnableToCopyFile(source, destination, str(e)) from e

        logger.debug("objectfs_file_copied", source=source, destination=destination)

    async def move(
        self,
        source: str,
        destination: str,
        config: Config | None = None,
    ) -> None:
        """Move a file: copy, then delete the source.

        There is no rollback. If the delete step fails the destination copy
        stays in place and UnableToMoveFile wraps the delete failure.

        Raises:
            UnableToMoveFile: If the copy or the delete fails
        """
        if self._prefixer.prefix_path(source) == self._prefixer.prefix_path(destination):
            return

        try:
            await self.copy(source, destination, config)
            await self.delete(source)
        except FilesystemOperationFailed as e:
            raise UnableToMoveFile(source, destination, str(e)) from e

        logger.debug("objectfs_file_moved", source=source, destination=destination)


async def _aiter_chunks(contents: WritableStream, chunk_size: int) -> AsyncIterator[bytes]:
    if hasattr(contents, "__aiter__"):
        async for chunk in contents:
            yield chunk
    elif hasattr(contents, "read"):
        while chunk := await asyncio.to_thread(contents.read, chunk_size):
            yield chunk
    else:
        for chunk in contents:
            yield chunk


async def _prepend(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    if first:
        yield first
    async for chunk in rest:
        yield chunk


def _parse_visibility(value: Visibility | str) -> Visibility:
    try:
        return Visibility(value)
    except ValueError as e:
        raise InvalidVisibilityProvided(value) from e
