"""MIME type detection strategies."""

from __future__ import annotations

import mimetypes
from abc import ABC, abstractmethod

# Leading-byte signatures used when the key has no known extension
_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"%PDF-", "application/pdf"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b", "application/gzip"),
)


class MimeTypeDetector(ABC):
    """Strategy for guessing a MIME type from a key and payload."""

    @abstractmethod
    def detect_mime_type(self, path: str, contents: bytes) -> str | None:
        """Guess the MIME type of contents stored at path.

        Returns:
            MIME type string, or None when there is no confident guess
        """
        ...

    @abstractmethod
    def detect_mime_type_from_path(self, path: str) -> str | None:
        ...


class ExtensionMimeTypeDetector(MimeTypeDetector):
    """Detects by file extension, falling back to magic-number sniffing."""

    def detect_mime_type(self, path: str, contents: bytes) -> str | None:
        mime_type = self.detect_mime_type_from_path(path)
        if mime_type is not None:
            return mime_type

        for signature, candidate in _SIGNATURES:
            if contents.startswith(signature):
                return candidate

        return None

    def detect_mime_type_from_path(self, path: str) -> str | None:
        mime_type, _ = mimetypes.guess_type(path, strict=False)
        return mime_type
