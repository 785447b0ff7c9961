"""Tests for the aioboto3-backed bucket client."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from objectfs.client.base import BatchDeleteError
from objectfs.client.s3 import (
    TRAFFIC_LIMIT_HEADER,
    S3BucketClient,
    _inject_traffic_limit,
    _stash_traffic_limit,
)
from objectfs.config import StorageSettings
from objectfs.options import UploadOptions


def client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


async def stream(*chunks: bytes) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


@pytest.fixture
def settings() -> StorageSettings:
    """Create storage settings without touching the environment file."""
    return StorageSettings(
        bucket="test-bucket",
        region="us-east-1",
        access_key="test-access-key",
        secret_key="test-secret-key",
        _env_file=None,
    )


@pytest.fixture
def s3_mock() -> AsyncMock:
    """Create mocked aioboto3 S3 client."""
    mock = AsyncMock()
    mock.put_object.return_value = {"ETag": '"put-etag"'}
    mock.create_multipart_upload.return_value = {"UploadId": "upload-1"}
    mock.upload_part.side_effect = lambda **kwargs: {"ETag": f'"part-{kwargs["PartNumber"]}"'}
    mock.complete_multipart_upload.return_value = {"ETag": '"multipart-etag"'}
    mock.delete_objects.return_value = {}
    return mock


@pytest.fixture
def client(settings: StorageSettings, s3_mock: AsyncMock) -> S3BucketClient:
    """Create bucket client wired to the mocked S3 client."""
    client = S3BucketClient(settings)
    client._client = s3_mock
    client._connected = True
    return client


class TestConnection:
    """Test client lifecycle."""

    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self, settings: StorageSettings) -> None:
        """Test connect opens the client, checks the bucket and registers hooks."""
        s3 = MagicMock()
        s3.head_bucket = AsyncMock()

        with patch("aioboto3.Session") as session_cls:
            session = session_cls.return_value
            session.client.return_value.__aenter__.return_value = s3

            client = S3BucketClient(settings)
            await client.connect()

        assert client.is_connected() is True
        s3.head_bucket.assert_awaited_once_with(Bucket="test-bucket")
        assert session_cls.call_args.kwargs["aws_secret_access_key"] == "test-secret-key"
        client_kwargs = session.client.call_args.kwargs
        assert client_kwargs["region_name"] == "us-east-1"
        assert "endpoint_url" not in client_kwargs
        registered = [call.args[0] for call in s3.meta.events.register.call_args_list]
        assert registered == ["before-parameter-build.s3", "before-call.s3"]

        await client.disconnect()

        assert client.is_connected() is False
        s3.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connect_failure_releases_client(self, settings: StorageSettings) -> None:
        """Test a failed bucket check closes the client and re-raises."""
        s3 = MagicMock()
        s3.head_bucket = AsyncMock(side_effect=client_error("403", "HeadBucket"))

        with patch("aioboto3.Session") as session_cls:
            session_cls.return_value.client.return_value.__aenter__.return_value = s3

            client = S3BucketClient(settings)
            with pytest.raises(ClientError):
                await client.connect()

        assert client.is_connected() is False
        s3.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_operation_without_connection(self, settings: StorageSettings) -> None:
        """Test operations fail before connect."""
        client = S3BucketClient(settings)

        with pytest.raises(RuntimeError, match="not connected"):
            await client.head_object("file.txt")


class TestObjectOperations:
    """Test single-object requests."""

    @pytest.mark.asyncio
    async def test_object_exists(self, client: S3BucketClient, s3_mock: AsyncMock) -> None:
        """Test a successful head means the object exists."""
        s3_mock.head_object.return_value = {"ContentLength": 1}

        assert await client.object_exists("file.txt") is True
        s3_mock.head_object.assert_awaited_once_with(Bucket="test-bucket", Key="file.txt")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
    async def test_object_missing(
        self, client: S3BucketClient, s3_mock: AsyncMock, code: str
    ) -> None:
        """Test not-found responses mean the object is absent."""
        s3_mock.head_object.side_effect = client_error(code)

        assert await client.object_exists("missing.txt") is False

    @pytest.mark.asyncio
    async def test_object_exists_propagates_other_errors(
        self, client: S3BucketClient, s3_mock: AsyncMock
    ) -> None:
        """Test errors other than not-found are not turned into False."""
        s3_mock.head_object.side_effect = client_error("403")

        with pytest.raises(ClientError):
            await client.object_exists("forbidden.txt")

    @pytest.mark.asyncio
    async def test_copy_object(self, client: S3BucketClient, s3_mock: AsyncMock) -> None:
        """Test copy sources are scoped to the bucket and pinned to a version."""
        await client.copy_object("a.txt", "b.txt", source_version_id="v3")

        s3_mock.copy_object.assert_awaited_once_with(
            Bucket="test-bucket",
            Key="b.txt",
            CopySource={"Bucket": "test-bucket", "Key": "a.txt", "VersionId": "v3"},
        )

    @pytest.mark.asyncio
    async def test_put_object_acl(self, client: S3BucketClient, s3_mock: AsyncMock) -> None:
        """Test canned ACLs are applied per key."""
        await client.put_object_acl("a.txt", "public-read")

        s3_mock.put_object_acl.assert_awaited_once_with(
            Bucket="test-bucket", Key="a.txt", ACL="public-read"
        )


class TestUpload:
    """Test single-request and multipart uploads."""

    @pytest.mark.asyncio
    async def test_bytes_use_single_put(self, client: S3BucketClient, s3_mock: AsyncMock) -> None:
        """Test byte bodies go up in one request with their params."""
        options = UploadOptions(params={"ContentType": "text/plain", "ACL": "private"})

        await client.upload("a.txt", b"content", options)

        s3_mock.put_object.assert_awaited_once_with(
            Bucket="test-bucket",
            Key="a.txt",
            Body=b"content",
            ContentType="text/plain",
            ACL="private",
        )
        s3_mock.create_multipart_upload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_large_bytes_use_multipart(
        self, client: S3BucketClient, s3_mock: AsyncMock
    ) -> None:
        """Test byte bodies of at least one part are split into parts."""
        options = UploadOptions(multipart={"PartSize": 2, "Concurrency": 2})

        await client.upload("big.txt", b"abcdef", options)

        s3_mock.put_object.assert_not_awaited()
        s3_mock.create_multipart_upload.assert_awaited_once()
        bodies = [call.kwargs["Body"] for call in s3_mock.upload_part.call_args_list]
        assert bodies == [b"ab", b"cd", b"ef"]
        parts = s3_mock.complete_multipart_upload.call_args.kwargs["MultipartUpload"]["Parts"]
        assert [part["PartNumber"] for part in parts] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_small_stream_uses_single_put(
        self, client: S3BucketClient, s3_mock: AsyncMock
    ) -> None:
        """Test streams shorter than one part are joined into a single put."""
        options = UploadOptions(multipart={"PartSize": 1024})

        await client.upload("a.txt", stream(b"abc", b"def"), options)

        s3_mock.put_object.assert_awaited_once_with(
            Bucket="test-bucket", Key="a.txt", Body=b"abcdef"
        )

    @pytest.mark.asyncio
    async def test_empty_stream(self, client: S3BucketClient, s3_mock: AsyncMock) -> None:
        """Test an empty stream uploads an empty object."""
        await client.upload("empty.txt", stream(), UploadOptions())

        s3_mock.put_object.assert_awaited_once_with(
            Bucket="test-bucket", Key="empty.txt", Body=b""
        )

    @pytest.mark.asyncio
    async def test_large_stream_uses_multipart(
        self, client: S3BucketClient, s3_mock: AsyncMock
    ) -> None:
        """Test streams are regrouped into fixed-size parts."""
        options = UploadOptions(
            params={"ContentType": "text/plain", "TrafficLimit": 819200},
            multipart={"PartSize": 5, "Concurrency": 2},
        )

        await client.upload("big.txt", stream(b"abc", b"defgh", b"ijklm", b"n"), options)

        s3_mock.create_multipart_upload.assert_awaited_once_with(
            Bucket="test-bucket",
            Key="big.txt",
            ContentType="text/plain",
            TrafficLimit=819200,
        )
        bodies = [call.kwargs["Body"] for call in s3_mock.upload_part.call_args_list]
        assert bodies == [b"abcde", b"fghij", b"klmn"]
        assert all(
            call.kwargs["TrafficLimit"] == 819200 for call in s3_mock.upload_part.call_args_list
        )
        s3_mock.complete_multipart_upload.assert_awaited_once_with(
            Bucket="test-bucket",
            Key="big.txt",
            UploadId="upload-1",
            MultipartUpload={
                "Parts": [
                    {"PartNumber": 1, "ETag": '"part-1"'},
                    {"PartNumber": 2, "ETag": '"part-2"'},
                    {"PartNumber": 3, "ETag": '"part-3"'},
                ]
            },
        )
        s3_mock.put_object.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_multipart_failure_aborts(
        self, client: S3BucketClient, s3_mock: AsyncMock
    ) -> None:
        """Test a failed part aborts the multipart upload."""
        s3_mock.upload_part.side_effect = client_error("InternalError", "UploadPart")
        options = UploadOptions(multipart={"PartSize": 2})

        with pytest.raises(ClientError):
            await client.upload("big.txt", stream(b"abcdef"), options)

        s3_mock.abort_multipart_upload.assert_awaited_once_with(
            Bucket="test-bucket", Key="big.txt", UploadId="upload-1"
        )
        s3_mock.complete_multipart_upload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_multipart_failure_settles_parts_before_abort(
        self, client: S3BucketClient, s3_mock: AsyncMock
    ) -> None:
        """Test sibling parts still in flight are cancelled before the abort."""
        events: list[str] = []

        async def upload_part(**kwargs: Any) -> dict[str, Any]:
            if kwargs["PartNumber"] == 1:
                raise client_error("InternalError", "UploadPart")
            try:
                await asyncio.sleep(0.05)
            except asyncio.CancelledError:
                events.append("part-2-cancelled")
                raise
            events.append("part-2-done")
            return {"ETag": '"part-2"'}

        async def abort_multipart_upload(**kwargs: Any) -> dict[str, Any]:
            events.append("abort")
            return {}

        s3_mock.upload_part.side_effect = upload_part
        s3_mock.abort_multipart_upload.side_effect = abort_multipart_upload
        options = UploadOptions(multipart={"PartSize": 2, "Concurrency": 2})

        with pytest.raises(ClientError):
            await client.upload("big.txt", b"abcd", options)

        assert events == ["part-2-cancelled", "abort"]
        s3_mock.complete_multipart_upload.assert_not_awaited()


class TestDeleteObjects:
    """Test batch deletion."""

    @pytest.mark.asyncio
    async def test_batches_of_one_thousand(
        self, client: S3BucketClient, s3_mock: AsyncMock
    ) -> None:
        """Test keys are deleted in batches the service accepts."""
        keys = [f"dir/{i}.txt" for i in range(2500)]

        await client.delete_objects(keys)

        batches = [call.kwargs["Delete"]["Objects"] for call in s3_mock.delete_objects.call_args_list]
        assert [len(batch) for batch in batches] == [1000, 1000, 500]
        assert batches[0][0] == {"Key": "dir/0.txt"}
        assert batches[2][-1] == {"Key": "dir/2499.txt"}

    @pytest.mark.asyncio
    async def test_reported_errors_raise(
        self, client: S3BucketClient, s3_mock: AsyncMock
    ) -> None:
        """Test per-key errors in the response fail the call."""
        s3_mock.delete_objects.return_value = {
            "Errors": [{"Key": "dir/a.txt", "Code": "AccessDenied", "Message": "denied"}]
        }

        with pytest.raises(BatchDeleteError, match="dir/a.txt") as exc_info:
            await client.delete_objects(["dir/a.txt", "dir/b.txt"])

        assert exc_info.value.errors[0]["Code"] == "AccessDenied"


class TestListPages:
    """Test paginated listing."""

    @pytest.mark.asyncio
    async def test_follows_paginator(self, client: S3BucketClient, s3_mock: AsyncMock) -> None:
        """Test every page from the paginator is yielded."""
        pages: list[dict[str, Any]] = [
            {"Contents": [{"Key": "a"}], "IsTruncated": True},
            {"Contents": [{"Key": "b"}], "IsTruncated": False},
        ]
        paginator = MagicMock()
        paginator.paginate.return_value = stream_pages(pages)
        s3_mock.get_paginator = MagicMock(return_value=paginator)

        result = [page async for page in client.list_pages("dir/", delimiter="/")]

        assert result == pages
        s3_mock.get_paginator.assert_called_once_with("list_objects_v2")
        paginator.paginate.assert_called_once_with(
            Bucket="test-bucket", Prefix="dir/", Delimiter="/"
        )

    @pytest.mark.asyncio
    async def test_max_keys_fetches_one_page(
        self, client: S3BucketClient, s3_mock: AsyncMock
    ) -> None:
        """Test a bounded listing issues a single request."""
        s3_mock.list_objects_v2.return_value = {"Contents": [{"Key": "dir/a"}]}

        result = [page async for page in client.list_pages("dir/", max_keys=1)]

        assert result == [{"Contents": [{"Key": "dir/a"}]}]
        s3_mock.list_objects_v2.assert_awaited_once_with(
            Bucket="test-bucket", Prefix="dir/", MaxKeys=1
        )


async def stream_pages(pages: list[dict[str, Any]]) -> AsyncIterator[dict[str, Any]]:
    for page in pages:
        yield page


class TestTrafficLimitHooks:
    """Test carrying TrafficLimit as a request header."""

    def test_stash_and_inject(self) -> None:
        """Test the option leaves the params and becomes a header."""
        params = {"Bucket": "b", "Key": "k", "TrafficLimit": 819200}
        context: dict[str, Any] = {}

        _stash_traffic_limit(params=params, context=context, model=None)

        assert "TrafficLimit" not in params
        assert context[TRAFFIC_LIMIT_HEADER] == "819200"

        request = {"headers": {}, "body": b""}
        _inject_traffic_limit(params=request, context=context, model=None)

        assert request["headers"] == {TRAFFIC_LIMIT_HEADER: "819200"}

    def test_absent_limit_is_a_no_op(self) -> None:
        """Test requests without the option are untouched."""
        params = {"Bucket": "b"}
        context: dict[str, Any] = {}
        request: dict[str, Any] = {"headers": {}}

        _stash_traffic_limit(params=params, context=context)
        _inject_traffic_limit(params=request, context=context)

        assert params == {"Bucket": "b"}
        assert request["headers"] == {}
