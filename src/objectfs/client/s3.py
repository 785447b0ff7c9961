"""S3-compatible bucket client.

aioboto3-backed implementation of BucketClient for AWS S3 and S3-compatible
services such as Tencent COS and MinIO.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from typing import Any

import structlog
from botocore.config import Config as BotocoreConfig
from botocore.exceptions import ClientError

from objectfs.client.base import MAX_DELETE_BATCH, BatchDeleteError, BucketClient
from objectfs.config import StorageSettings
from objectfs.options import UploadOptions

logger = structlog.get_logger(__name__)

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})

DEFAULT_PART_SIZE = 5 * 1024 * 1024
DEFAULT_CONCURRENCY = 1

TRAFFIC_LIMIT_PARAM = "TrafficLimit"
TRAFFIC_LIMIT_HEADER = "x-cos-traffic-limit"


class S3BucketClient(BucketClient):
    """Bucket client for S3-compatible services using aioboto3."""

    def __init__(self, settings: StorageSettings) -> None:
        """Initialize S3 bucket client.

        Args:
            settings: Connection settings
        """
        super().__init__(settings.bucket)
        self.settings = settings
        self._client: Any = None

        logger.info(
            "s3_client_initialized",
            bucket=settings.bucket,
            region=settings.region,
            endpoint=settings.endpoint_url,
        )

    async def connect(self) -> None:
        """Open the aioboto3 client and confirm the bucket is reachable."""
        if self._connected:
            return

        try:
            import aioboto3

            session = aioboto3.Session(
                aws_access_key_id=self.settings.access_key,
                aws_secret_access_key=(
                    self.settings.secret_key.get_secret_value()
                    if self.settings.secret_key
                    else None
                ),
                aws_session_token=(
                    self.settings.session_token.get_secret_value()
                    if self.settings.session_token
                    else None
                ),
                region_name=self.settings.region,
            )

            client_config: dict[str, Any] = {
                "region_name": self.settings.region,
                "use_ssl": self.settings.use_ssl,
                "config": BotocoreConfig(
                    read_timeout=self.settings.timeout,
                    retries={
                        "total_max_attempts": self.settings.max_retries + 1,
                        "mode": "standard",
                    },
                ),
            }

            if self.settings.endpoint_url:
                client_config["endpoint_url"] = self.settings.endpoint_url

            self._client = await session.client("s3", **client_config).__aenter__()
            _register_traffic_limit_handlers(self._client)

            await self._client.head_bucket(Bucket=self.bucket)

            self._connected = True

            logger.info(
                "s3_connected",
                bucket=self.bucket,
                region=self.settings.region,
            )

        except Exception as e:
            logger.error(
                "s3_connection_failed",
                error=str(e),
                bucket=self.bucket,
            )
            if self._client is not None:
                await self._client.__aexit__(None, None, None)
                self._client = None
            raise

    async def disconnect(self) -> None:
        """Close the aioboto3 client."""
        if self._client is not None:
            await self._client.__aexit__(None, None, None)
            self._client = None

        self._connected = False

        logger.info(
            "s3_disconnected",
            bucket=self.bucket,
        )

    @property
    def s3(self) -> Any:
        """Underlying aioboto3 S3 client."""
        if not self._connected or self._client is None:
            raise RuntimeError("S3 not connected. Call connect() first.")
        return self._client

    async def object_exists(self, key: str) -> bool:
        try:
            await self.s3.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise
        return True

    async def head_object(self, key: str) -> dict[str, Any]:
        response = await self.s3.head_object(Bucket=self.bucket, Key=key)

        logger.debug("s3_object_head", key=key)

        return response

    async def get_object(self, key: str) -> dict[str, Any]:
        response = await self.s3.get_object(Bucket=self.bucket, Key=key)

        logger.debug(
            "s3_object_fetched",
            key=key,
            size=response.get("ContentLength"),
        )

        return response

    async def upload(
        self,
        key: str,
        body: bytes | AsyncIterator[bytes],
        options: UploadOptions,
    ) -> dict[str, Any]:
        """Upload an object.

        Args:
            key: Object key
            body: Full payload, or an async iterator of chunks
            options: Request parameters and multipart knobs

        Returns:
            Service response of the final request
        """
        part_size = int(options.multipart.get("PartSize") or DEFAULT_PART_SIZE)

        if isinstance(body, (bytes, bytearray, memoryview)):
            body = bytes(body)
            if len(body) < part_size:
                return await self._put_object(key, body, options.params)
            return await self._upload_multipart(key, _split(body, part_size), options)

        parts = _rechunk(body, part_size)
        first = await anext(parts, None)

        # Streams that fit in one part go up as a single PUT
        if first is None or len(first) < part_size:
            return await self._put_object(key, first or b"", options.params)

        return await self._upload_multipart(key, _prepend(first, parts), options)

    async def _put_object(
        self,
        key: str,
        body: bytes,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self.s3.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body,
            **params,
        )

        logger.info(
            "s3_object_uploaded",
            key=key,
            size=len(body),
            version_id=response.get("VersionId"),
        )

        return response

    async def _upload_multipart(
        self,
        key: str,
        parts: AsyncIterator[bytes],
        options: UploadOptions,
    ) -> dict[str, Any]:
        concurrency = max(1, int(options.multipart.get("Concurrency") or DEFAULT_CONCURRENCY))
        part_params: dict[str, Any] = {}
        if TRAFFIC_LIMIT_PARAM in options.params:
            part_params[TRAFFIC_LIMIT_PARAM] = options.params[TRAFFIC_LIMIT_PARAM]

        multipart_upload = await self.s3.create_multipart_upload(
            Bucket=self.bucket,
            Key=key,
            **options.params,
        )
        upload_id = multipart_upload["UploadId"]
        completed: list[dict[str, Any]] = []
        pending: list[asyncio.Task[dict[str, Any]]] = []

        try:
            part_number = 1
            async for chunk in parts:
                pending.append(
                    asyncio.create_task(
                        self._upload_part(key, upload_id, part_number, chunk, part_params)
                    )
                )
                part_number += 1

                if len(pending) >= concurrency:
                    completed.extend(await asyncio.gather(*pending))
                    pending = []

            if pending:
                completed.extend(await asyncio.gather(*pending))

            response = await self.s3.complete_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": completed},
            )

        except Exception:
            # In-flight parts must settle before the abort or they outlive it
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

            await self.s3.abort_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
            )
            raise

        logger.info(
            "s3_object_uploaded_multipart",
            key=key,
            parts=len(completed),
            version_id=response.get("VersionId"),
        )

        return response

    async def _upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        chunk: bytes,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self.s3.upload_part(
            Bucket=self.bucket,
            Key=key,
            PartNumber=part_number,
            UploadId=upload_id,
            Body=chunk,
            **params,
        )
        return {"PartNumber": part_number, "ETag": response["ETag"]}

    async def delete_object(self, key: str) -> None:
        await self.s3.delete_object(Bucket=self.bucket, Key=key)

        logger.info("s3_object_deleted", key=key)

    async def delete_objects(self, keys: Sequence[str]) -> None:
        for start in range(0, len(keys), MAX_DELETE_BATCH):
            batch = keys[start : start + MAX_DELETE_BATCH]
            response = await self.s3.delete_objects(
                Bucket=self.bucket,
                Delete={
                    "Objects": [{"Key": key} for key in batch],
                    "Quiet": True,
                },
            )

            errors = response.get("Errors") or []
            if errors:
                raise BatchDeleteError(errors)

        logger.info("s3_objects_deleted", count=len(keys))

    async def list_pages(
        self,
        prefix: str,
        delimiter: str | None = None,
        max_keys: int | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        params: dict[str, Any] = {
            "Bucket": self.bucket,
            "Prefix": prefix,
        }

        if delimiter:
            params["Delimiter"] = delimiter

        if max_keys is not None:
            params["MaxKeys"] = max_keys
            yield await self.s3.list_objects_v2(**params)
            return

        paginator = self.s3.get_paginator("list_objects_v2")
        page_count = 0
        async for page in paginator.paginate(**params):
            page_count += 1
            yield page

        logger.debug(
            "s3_objects_listed",
            prefix=prefix,
            delimiter=delimiter,
            pages=page_count,
        )

    async def get_object_acl(self, key: str) -> dict[str, Any]:
        return await self.s3.get_object_acl(Bucket=self.bucket, Key=key)

    async def put_object_acl(self, key: str, acl: str) -> None:
        await self.s3.put_object_acl(Bucket=self.bucket, Key=key, ACL=acl)

        logger.info("s3_object_acl_updated", key=key, acl=acl)

    async def copy_object(
        self,
        source_key: str,
        destination_key: str,
        source_version_id: str | None = None,
    ) -> dict[str, Any]:
        copy_source = {
            "Bucket": self.bucket,
            "Key": source_key,
        }

        if source_version_id:
            copy_source["VersionId"] = source_version_id

        response = await self.s3.copy_object(
            Bucket=self.bucket,
            Key=destination_key,
            CopySource=copy_source,
        )

        logger.info(
            "s3_object_copied",
            source_key=source_key,
            destination_key=destination_key,
        )

        return response


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _register_traffic_limit_handlers(client: Any) -> None:
    # TrafficLimit is not part of the S3 model: pull it out before parameter
    # validation and send it as a header instead.
    client.meta.events.register("before-parameter-build.s3", _stash_traffic_limit)
    client.meta.events.register("before-call.s3", _inject_traffic_limit)


def _stash_traffic_limit(params: dict[str, Any], context: dict[str, Any], **kwargs: Any) -> None:
    limit = params.pop(TRAFFIC_LIMIT_PARAM, None)
    if limit is not None:
        context[TRAFFIC_LIMIT_HEADER] = str(limit)


def _inject_traffic_limit(params: dict[str, Any], context: dict[str, Any], **kwargs: Any) -> None:
    limit = context.get(TRAFFIC_LIMIT_HEADER)
    if limit is not None:
        params["headers"][TRAFFIC_LIMIT_HEADER] = limit


async def _rechunk(chunks: AsyncIterator[bytes], size: int) -> AsyncIterator[bytes]:
    """Regroup a chunk stream into pieces of exactly ``size`` bytes.

    The final piece may be shorter.
    """
    buffer = bytearray()
    async for chunk in chunks:
        buffer.extend(chunk)
        while len(buffer) >= size:
            yield bytes(buffer[:size])
            del buffer[:size]

    if buffer:
        yield bytes(buffer)


async def _prepend(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    yield first
    async for chunk in rest:
        yield chunk


async def _split(body: bytes, size: int) -> AsyncIterator[bytes]:
    for start in range(0, len(body), size):
        yield body[start : start + size]
