"""Visibility to access-control translation.

Maps the two-level visibility abstraction onto canned ACL tokens and reads it
back from ACL grant lists returned by the storage service.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from objectfs.models import Visibility

PUBLIC_ACL = "public-read"
PRIVATE_ACL = "private"

# "All users" group URIs for AWS S3 and Tencent COS
ALL_USERS_GRANTEE_URIS = (
    "http://acs.amazonaws.com/groups/global/AllUsers",
    "http://cam.qcloud.com/groups/global/AllUsers",
)
READ_PERMISSIONS = ("READ", "FULL_CONTROL")


class VisibilityConverter(ABC):
    """Strategy for converting between visibility and ACL representations."""

    @abstractmethod
    def visibility_to_acl(self, visibility: Visibility | str) -> str:
        """Return the canned ACL token for a visibility level."""
        ...

    @abstractmethod
    def acl_to_visibility(self, grants: Iterable[Mapping[str, Any]]) -> Visibility:
        """Derive the visibility level from an ACL grant list."""
        ...

    @abstractmethod
    def default_for_directories(self) -> Visibility:
        """Visibility applied when creating directory markers."""
        ...


class PortableVisibilityConverter(VisibilityConverter):
    """Public-read / private converter for S3-compatible ACLs.

    A grant list is public when the all-users group holds a read-capable
    permission; every other grant list is private.
    """

    def __init__(
        self,
        default_for_directories: Visibility | str = Visibility.PUBLIC,
        grantee_uris: Iterable[str] = ALL_USERS_GRANTEE_URIS,
    ) -> None:
        self._default_for_directories = Visibility(default_for_directories)
        self._grantee_uris = frozenset(grantee_uris)

    def visibility_to_acl(self, visibility: Visibility | str) -> str:
        if visibility == Visibility.PUBLIC:
            return PUBLIC_ACL

        return PRIVATE_ACL

    def acl_to_visibility(self, grants: Iterable[Mapping[str, Any]]) -> Visibility:
        for grant in _flatten_grants(grants):
            grantee = grant.get("Grantee") or {}
            if (
                grantee.get("URI") in self._grantee_uris
                and grant.get("Permission") in READ_PERMISSIONS
            ):
                return Visibility.PUBLIC

        return Visibility.PRIVATE

    def default_for_directories(self) -> Visibility:
        return self._default_for_directories


def _flatten_grants(grants: Iterable[Mapping[str, Any]] | None) -> Iterator[Mapping[str, Any]]:
    # COS wraps grants as [{"Grant": [...]}]; S3 returns them flat
    for entry in grants or ():
        if not isinstance(entry, Mapping):
            continue
        nested = entry.get("Grant")
        if nested is None:
            yield entry
        elif isinstance(nested, Mapping):
            yield nested
        else:
            yield from (g for g in nested if isinstance(g, Mapping))
