"""Object-storage response to attribute record mapping."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import structlog

from objectfs.models import DirectoryAttributes, FileAttributes, StorageAttributes
from objectfs.path_prefixer import PathPrefixer

logger = structlog.get_logger(__name__)

EXTRA_METADATA_FIELDS = (
    "Metadata",
    "StorageClass",
    "ETag",
    "VersionId",
    "Restore",
)


class MetadataMapper:
    """Turns raw head/listing fields into file or directory attributes."""

    def __init__(self, prefixer: PathPrefixer) -> None:
        self._prefixer = prefixer

    def map_object_metadata(
        self,
        metadata: Mapping[str, Any],
        path: str | None = None,
    ) -> StorageAttributes:
        """Map a head response, listing entry or common prefix.

        Args:
            metadata: Raw response fields
            path: Logical path when already known; otherwise derived from the
                ``Key`` (objects) or ``Prefix`` (common prefixes) field

        Returns:
            DirectoryAttributes for keys ending in a slash, FileAttributes
            otherwise
        """
        if path is None:
            path = self._prefixer.strip_prefix(metadata.get("Key") or metadata.get("Prefix") or "")

        if path.endswith("/"):
            return DirectoryAttributes(path=path.rstrip("/"))

        file_size = metadata.get("ContentLength")
        if file_size is None:
            file_size = metadata.get("Size")

        return FileAttributes(
            path=path,
            file_size=parse_file_size(file_size),
            last_modified=parse_last_modified(metadata.get("LastModified")),
            mime_type=metadata.get("ContentType") or None,
            extra_metadata=extract_extra_metadata(metadata),
        )


def extract_extra_metadata(metadata: Mapping[str, Any]) -> dict[str, Any]:
    """Copy whitelisted, non-empty provider fields."""
    return {
        field: metadata[field]
        for field in EXTRA_METADATA_FIELDS
        if metadata.get(field) not in (None, "", {})
    }


def parse_file_size(value: Any) -> int | None:
    """Convert a size field to a byte count; malformed or negative sizes yield None."""
    if value is None or value == "":
        return None

    try:
        size = int(value)
    except (TypeError, ValueError):
        logger.debug("objectfs_file_size_unparsable", value=value)
        return None

    return size if size >= 0 else None


def parse_last_modified(value: Any) -> int | None:
    """Convert a timestamp field to epoch seconds.

    Accepts datetimes (as returned by botocore), RFC 1123 strings (HTTP
    headers) and ISO 8601 strings (listing XML). Unparsable input yields None.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str):
        moment = _parse_timestamp(value)
        if moment is None:
            logger.debug("objectfs_last_modified_unparsable", value=value)
            return None
    else:
        return None

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)

    return int(moment.timestamp())


def _parse_timestamp(value: str) -> datetime | None:
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        pass

    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
