"""Filesystem operation exceptions.

Every failure raised by the adapter names the operation and the logical
path(s) involved; the underlying storage error is chained as ``__cause__``.
"""

from __future__ import annotations

from objectfs.models import MetadataAttribute


class FilesystemError(Exception):
    """Base exception for all filesystem adapter errors."""

    pass


class InvalidVisibilityProvided(FilesystemError, ValueError):
    """Visibility value is not one of the supported levels."""

    def __init__(self, visibility: object) -> None:
        super().__init__(
            f"Invalid visibility provided. Expected either 'public' or 'private', "
            f"received {visibility!r}"
        )
        self.visibility = visibility


class FilesystemOperationFailed(FilesystemError):
    """Base exception for a failed filesystem operation."""

    operation = "unknown"

    def __init__(self, location: str, reason: str = "") -> None:
        """Initialize operation failure.

        Args:
            location: Logical path the operation targeted
            reason: Optional human-readable reason
        """
        message = f"Unable to {self.operation} at location: {location}."
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)
        self.location = location
        self.reason = reason


class UnableToCheckExistence(FilesystemOperationFailed):
    """Existence probe errored (absence is not an error)."""

    operation = "check existence"


class UnableToCheckFileExistence(UnableToCheckExistence):
    operation = "check file existence"


class UnableToCheckDirectoryExistence(UnableToCheckExistence):
    operation = "check directory existence"


class UnableToReadFile(FilesystemOperationFailed):
    operation = "read file"


class UnableToWriteFile(FilesystemOperationFailed):
    operation = "write file"


class UnableToDeleteFile(FilesystemOperationFailed):
    operation = "delete file"


class UnableToDeleteDirectory(FilesystemOperationFailed):
    operation = "delete directory"


class UnableToCreateDirectory(FilesystemOperationFailed):
    operation = "create directory"


class UnableToSetVisibility(FilesystemOperationFailed):
    operation = "set visibility"


class UnableToRetrieveMetadata(FilesystemOperationFailed):
    """Metadata lookup failed or did not yield the requested attribute."""

    operation = "retrieve metadata"

    def __init__(
        self,
        location: str,
        metadata_type: MetadataAttribute,
        reason: str = "",
    ) -> None:
        """Initialize metadata retrieval failure.

        Args:
            location: Logical path of the file
            metadata_type: Attribute that was requested
            reason: Optional human-readable reason
        """
        self.metadata_type = metadata_type
        super().__init__(location, reason)
        self.args = (
            f"Unable to retrieve the {metadata_type.value} for file at location: "
            f"{location}. {reason}".rstrip(),
        )


class UnableToCopyFile(FilesystemOperationFailed):
    """Copy failed at any of its steps."""

    operation = "copy file"

    def __init__(self, source: str, destination: str, reason: str = "") -> None:
        super().__init__(source, reason)
        self.source = source
        self.destination = destination
        self.args = (
            f"Unable to copy file from {source} to {destination}. {reason}".rstrip(),
        )


class UnableToMoveFile(FilesystemOperationFailed):
    """Move failed; wraps the copy or delete failure.

    A failure of the delete step leaves the destination copy in place.
    """

    operation = "move file"

    def __init__(self, source: str, destination: str, reason: str = "") -> None:
        super().__init__(source, reason)
        self.source = source
        self.destination = destination
        self.args = (
            f"Unable to move file from {source} to {destination}. {reason}".rstrip(),
        )


class UnableToListContents(FilesystemOperationFailed):
    """Listing failed on any page; no partial results are reported."""

    operation = "list contents"
