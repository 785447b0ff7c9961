"""Adapter configuration.

Three layers of configuration feed the adapter:

- StorageSettings: connection settings read from the environment
  (OBJECTFS_ prefix) for building a bucket client.
- AdapterOptions: immutable adapter-wide configuration injected once at
  construction.
- Config: per-call options passed to write/copy/move/create_directory.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from objectfs.mime import ExtensionMimeTypeDetector, MimeTypeDetector
from objectfs.models import Visibility
from objectfs.visibility import PortableVisibilityConverter, VisibilityConverter


class _NotSet:
    """Sentinel type distinguishing an unset option from a falsy value."""

    _instance: _NotSet | None = None

    def __new__(cls) -> _NotSet:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_SET"

    def __bool__(self) -> bool:
        return False


NOT_SET: Any = _NotSet()


class StorageProvider(str, Enum):
    """Supported S3-compatible storage providers."""

    S3 = "s3"
    COS = "cos"
    MINIO = "minio"


OPTION_VISIBILITY = "visibility"
OPTION_RETAIN_VISIBILITY = "retain_visibility"


class Config(Mapping[str, Any]):
    """Immutable per-call option lookup.

    ``config.get(name, NOT_SET)`` tells an option that was never supplied
    apart from one explicitly set to an empty or falsy value.
    """

    def __init__(self, options: Mapping[str, Any] | None = None, /, **kwargs: Any) -> None:
        merged = dict(options or {})
        merged.update(kwargs)
        self._options = MappingProxyType(merged)

    def __getitem__(self, key: str) -> Any:
        return self._options[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._options)

    def __len__(self) -> int:
        return len(self._options)

    def __repr__(self) -> str:
        return f"Config({dict(self._options)!r})"

    def extend(self, options: Mapping[str, Any]) -> Config:
        """Return a new config where options override existing values."""
        return Config({**self._options, **options})

    def with_defaults(self, defaults: Mapping[str, Any]) -> Config:
        """Return a new config where existing values override defaults."""
        return Config({**defaults, **self._options})


class AdapterOptions(BaseModel):
    """Immutable adapter-wide configuration."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    prefix: str = Field(
        default="",
        description="Root prefix prepended to every storage key",
    )
    visibility: VisibilityConverter = Field(
        default_factory=PortableVisibilityConverter,
        description="Visibility/ACL conversion strategy",
    )
    mime_type_detector: MimeTypeDetector = Field(
        default_factory=ExtensionMimeTypeDetector,
        description="MIME type detection strategy",
    )
    default_options: Mapping[str, Any] = Field(
        default_factory=dict,
        description="Upload options applied when a call does not set them",
    )
    stream_chunk_size: int = Field(
        default=1024 * 1024,
        description="Chunk size for streaming reads in bytes",
        ge=1,
    )

    @field_validator("default_options", mode="after")
    @classmethod
    def _freeze_default_options(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))


class StorageSettings(BaseSettings):
    """Connection settings for an S3-compatible bucket."""

    model_config = SettingsConfigDict(
        env_prefix="OBJECTFS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    provider: StorageProvider = Field(
        default=StorageProvider.S3,
        description="Storage provider type (s3, cos, minio)",
    )
    bucket: str = Field(
        description="Bucket name",
    )
    prefix: str = Field(
        default="",
        description="Root prefix inside the bucket",
    )
    region: str | None = Field(
        default=None,
        description="Storage region",
    )
    endpoint_url: str | None = Field(
        default=None,
        description="Custom endpoint URL (Tencent COS, MinIO, ...)",
    )
    access_key: str | None = Field(
        default=None,
        description="Access key ID",
    )
    secret_key: SecretStr | None = Field(
        default=None,
        description="Secret access key",
    )
    session_token: SecretStr | None = Field(
        default=None,
        description="Temporary session token",
    )
    use_ssl: bool = Field(
        default=True,
        description="Enable SSL/TLS",
    )
    timeout: int = Field(
        default=300,
        description="Read timeout in seconds",
        ge=1,
        le=3600,
    )
    max_retries: int = Field(
        default=3,
        description="Retry attempts performed by the storage client",
        ge=0,
        le=10,
    )
    directory_visibility: Visibility = Field(
        default=Visibility.PUBLIC,
        description="Visibility applied to directory markers",
    )
