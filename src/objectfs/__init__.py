"""Filesystem adapter for S3-compatible object storage.

Emulates a hierarchical filesystem (files, directories, visibility,
metadata) on top of a flat key-based bucket such as AWS S3 or Tencent COS.
"""

from objectfs.adapter import ObjectStorageAdapter
from objectfs.client import BatchDeleteError, BucketClient, BucketClientFactory, S3BucketClient
from objectfs.config import NOT_SET, AdapterOptions, Config, StorageProvider, StorageSettings
from objectfs.exceptions import (
    FilesystemError,
    FilesystemOperationFailed,
    InvalidVisibilityProvided,
    UnableToCheckDirectoryExistence,
    UnableToCheckExistence,
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
from objectfs.mime import ExtensionMimeTypeDetector, MimeTypeDetector
from objectfs.models import (
    DirectoryAttributes,
    FileAttributes,
    MetadataAttribute,
    StorageAttributes,
    Visibility,
)
from objectfs.path_prefixer import PathPrefixer
from objectfs.visibility import PortableVisibilityConverter, VisibilityConverter

__all__ = [
    "ObjectStorageAdapter",
    "BatchDeleteError",
    "BucketClient",
    "BucketClientFactory",
    "S3BucketClient",
    "NOT_SET",
    "AdapterOptions",
    "Config",
    "StorageProvider",
    "StorageSettings",
    "FilesystemError",
    "FilesystemOperationFailed",
    "InvalidVisibilityProvided",
    "UnableToCheckDirectoryExistence",
    "UnableToCheckExistence",
    "UnableToCheckFileExistence",
    "UnableToCopyFile",
    "UnableToCreateDirectory",
    "UnableToDeleteDirectory",
    "UnableToDeleteFile",
    "UnableToListContents",
    "UnableToMoveFile",
    "UnableToReadFile",
    "UnableToRetrieveMetadata",
    "UnableToSetVisibility",
    "UnableToWriteFile",
    "ExtensionMimeTypeDetector",
    "MimeTypeDetector",
    "DirectoryAttributes",
    "FileAttributes",
    "MetadataAttribute",
    "StorageAttributes",
    "Visibility",
    "PathPrefixer",
    "PortableVisibilityConverter",
    "VisibilityConverter",
]
