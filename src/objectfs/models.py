"""Filesystem-shaped attribute models.

Defines visibility levels and the file/directory attribute records produced
when object-storage responses are translated back into filesystem terms.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field


class Visibility(str, Enum):
    """Abstract visibility levels for stored files."""

    PUBLIC = "public"
    PRIVATE = "private"


class MetadataAttribute(str, Enum):
    """Attributes that can be requested from a metadata lookup."""

    MIME_TYPE = "mime_type"
    FILE_SIZE = "file_size"
    LAST_MODIFIED = "last_modified"
    VISIBILITY = "visibility"


class FileAttributes(BaseModel):
    """Attributes of a stored file.

    Only fields the storage service reported are populated; everything else
    stays None.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(
        description="Logical path of the file",
    )
    file_size: int | None = Field(
        default=None,
        description="Size in bytes",
        ge=0,
    )
    visibility: Visibility | None = Field(
        default=None,
        description="Visibility level",
    )
    last_modified: int | None = Field(
        default=None,
        description="Last modification time in epoch seconds",
    )
    mime_type: str | None = Field(
        default=None,
        description="MIME type of the contents",
    )
    extra_metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Whitelisted provider fields passed through unmodified",
    )

    def is_file(self) -> bool:
        return True

    def is_dir(self) -> bool:
        return False


class DirectoryAttributes(BaseModel):
    """Attributes of an emulated directory."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(
        description="Logical path of the directory, without trailing slash",
    )

    def is_file(self) -> bool:
        return False

    def is_dir(self) -> bool:
        return True


StorageAttributes = Union[FileAttributes, DirectoryAttributes]
