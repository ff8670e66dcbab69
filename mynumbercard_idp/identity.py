"""Resolve platform unique IDs to local users."""
from __future__ import annotations

from typing import Any, Optional, Protocol

from .exceptions import IdentityLookupError

__all__ = ["IdentityLookup", "UNIQUE_ID_ATTRIBUTE", "UserDirectory"]

UNIQUE_ID_ATTRIBUTE = "uniqueId"


class UserDirectory(Protocol):
    def find_by_attribute(self, name: str, value: str) -> Optional[Any]: ...


class IdentityLookup:
    def __init__(self, directory: UserDirectory) -> None:
        self.directory = directory

    def find_by_unique_id(self, unique_id: str) -> Optional[Any]:
        """Return the user holding ``unique_id`` or ``None``.

        Store failures are raised as :class:`IdentityLookupError`; they are
        never reported as "not found".
        """

        try:
            return self.directory.find_by_attribute(UNIQUE_ID_ATTRIBUTE, unique_id)
        except Exception as exc:  # the store reports failures with arbitrary types
            raise IdentityLookupError(f"User lookup failed: {exc}") from exc
