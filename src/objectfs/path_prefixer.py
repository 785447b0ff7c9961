"""Logical path to storage key translation."""

from __future__ import annotations

SEPARATOR = "/"


class PathPrefixer:
    """Prepends an optional root prefix to logical paths and strips it back.

    Keys never start with a slash. A trailing slash on a logical path is
    kept (collapsed to one) because it marks a directory key.
    """

    def __init__(self, prefix: str = "", separator: str = SEPARATOR) -> None:
        self._separator = separator
        prefix = prefix.strip(separator)
        self._prefix = f"{prefix}{separator}" if prefix else ""

    @property
    def prefix(self) -> str:
        return self._prefix

    def normalize(self, path: str) -> str:
        """Drop leading slashes and collapse trailing ones to a single slash."""
        sep = self._separator
        path = path.lstrip(sep)
        if path.endswith(sep):
            path = path.rstrip(sep) + sep
            if path == sep:
                return ""
        return path

    def prefix_path(self, path: str) -> str:
        return self._prefix + self.normalize(path)

    def prefix_directory_path(self, path: str) -> str:
        """Storage key for a directory; ends in exactly one slash.

        The bucket root without a configured prefix maps to the empty key.
        """
        path = path.strip(self._separator)
        if not path:
            return self._prefix
        return f"{self._prefix}{path}{self._separator}"

    def strip_prefix(self, key: str) -> str:
        if self._prefix and key.startswith(self._prefix):
            return key[len(self._prefix):]
        return key

    def strip_directory_prefix(self, key: str) -> str:
        return self.strip_prefix(key).rstrip(self._separator)
