"""Digest helper used to derive the expected signed value from a nonce."""
from __future__ import annotations

import hashlib

__all__ = ["HASH_HEX_LENGTH", "to_hash_string"]

HASH_HEX_LENGTH = 64


def to_hash_string(value: str) -> str:
    """Return the lowercase hex SHA-256 digest of ``value`` encoded as UTF-8."""

    return hashlib.sha256(value.encode("utf-8")).hexdigest()
