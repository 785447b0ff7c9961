"""Upload option building.

Merges per-call config, adapter-wide defaults and multipart tuning knobs into
the parameters consumed by the bucket client's upload operation.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from objectfs.config import NOT_SET, OPTION_VISIBILITY, Config
from objectfs.mime import MimeTypeDetector
from objectfs.visibility import VisibilityConverter

AVAILABLE_OPTIONS = (
    "ACL",
    "CacheControl",
    "ContentDisposition",
    "ContentEncoding",
    "ContentLanguage",
    "ContentType",
    "Expires",
    "Metadata",
    "ServerSideEncryption",
    "SSEKMSKeyId",
    "StorageClass",
    "Tagging",
    "TrafficLimit",
)

MULTIPART_OPTIONS = (
    "Concurrency",
    "PartSize",
)


class UploadOptions(BaseModel):
    """Parameters for a single upload call."""

    params: dict[str, Any] = Field(
        default_factory=dict,
        description="Request parameters sent with the object (headers, ACL, metadata)",
    )
    multipart: dict[str, Any] = Field(
        default_factory=dict,
        description="Multipart tuning knobs (PartSize, Concurrency)",
    )


class UploadOptionBuilder:
    """Builds UploadOptions from a per-call Config.

    Per-call values win over adapter defaults for the same option name.
    Names outside the allow-lists are ignored.
    """

    def __init__(
        self,
        visibility: VisibilityConverter,
        mime_type_detector: MimeTypeDetector,
        default_options: Mapping[str, Any] | None = None,
    ) -> None:
        self._visibility = visibility
        self._mime_type_detector = mime_type_detector
        self._default_options = dict(default_options or {})

    def build(
        self,
        config: Config,
        key: str | None = None,
        contents: bytes = b"",
    ) -> UploadOptions:
        """Build upload options for one call.

        Args:
            config: Per-call configuration
            key: Storage key, used for MIME type detection
            contents: Payload, or a leading sample of a streamed payload

        Returns:
            Merged upload options
        """
        options = UploadOptions()

        for name in AVAILABLE_OPTIONS:
            value = config.get(name, NOT_SET)
            if value is not NOT_SET:
                options.params[name] = value

        for name in MULTIPART_OPTIONS:
            value = config.get(name, NOT_SET)
            if value is not NOT_SET:
                options.multipart[name] = value

        visibility = config.get(OPTION_VISIBILITY, NOT_SET)
        if visibility is not NOT_SET and "ACL" not in options.params:
            options.params["ACL"] = self._visibility.visibility_to_acl(visibility)

        self._apply_defaults(options)

        if contents and key is not None and "ContentType" not in options.params:
            mime_type = self._mime_type_detector.detect_mime_type(key, contents)
            if mime_type:
                options.params["ContentType"] = mime_type

        return options

    def _apply_defaults(self, options: UploadOptions) -> None:
        for name in AVAILABLE_OPTIONS:
            if name in self._default_options:
                options.params.setdefault(name, self._default_options[name])

        for name in MULTIPART_OPTIONS:
            if name in self._default_options:
                options.multipart.setdefault(name, self._default_options[name])

        visibility = self._default_options.get(OPTION_VISIBILITY)
        if visibility is not None and "ACL" not in options.params:
            options.params["ACL"] = self._visibility.visibility_to_acl(visibility)
