"""Error taxonomy shared by the verification pipeline and the HTTP layer."""
from __future__ import annotations

from enum import Enum, unique
from functools import wraps
from typing import TYPE_CHECKING, Optional

from cryptography.exceptions import UnsupportedAlgorithm

if TYPE_CHECKING:  # pragma: no cover - import only for static analysis.
    from .signature import VerificationResult

__all__ = [
    "AuthenticationError",
    "ErrorKind",
    "IdentityLookupError",
    "InvalidInput",
    "InvalidRequest",
    "MissingUniqueId",
    "PlatformCallError",
    "VerificationFailed",
    "catch_decoding_errors",
]


@unique
class ErrorKind(Enum):
    """Categories of errors that abort an authentication attempt."""

    INVALID_REQUEST = "invalid-request"
    INVALID_INPUT = "invalid-input"
    FAILED = "failed"
    MISSING_UNIQUE_ID = "missing-unique-id"
    INVALID_ARGUMENT = "invalid-argument"
    PLATFORM_UNAVAILABLE = "platform-unavailable"


class AuthenticationError(Exception):
    """Base exception for errors that abort the current attempt."""

    kind: ErrorKind = ErrorKind.INVALID_REQUEST


class InvalidRequest(AuthenticationError):
    """The inbound request is missing required fields."""

    kind = ErrorKind.INVALID_REQUEST


class InvalidInput(AuthenticationError):
    """The certificate or signature could not be decoded."""

    kind = ErrorKind.INVALID_INPUT


class VerificationFailed(AuthenticationError):
    """Verification ran to completion but the signature did not match."""

    kind = ErrorKind.FAILED

    def __init__(self, result: "VerificationResult") -> None:
        super().__init__(f"Signature verification failed: {result.reason.value}")
        self.result = result


class MissingUniqueId(AuthenticationError):
    """The platform accepted the request but returned no unique ID."""

    kind = ErrorKind.MISSING_UNIQUE_ID


class IdentityLookupError(AuthenticationError):
    """The user store failed while resolving a unique ID."""

    kind = ErrorKind.INVALID_ARGUMENT


class PlatformCallError(AuthenticationError):
    """The identity platform could not be reached or answered garbage."""

    kind = ErrorKind.PLATFORM_UNAVAILABLE

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


def catch_decoding_errors(f):
    """Utility decorator to wrap decoding failures in InvalidInput."""

    @wraps(f)
    def inner(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise InvalidInput(str(e) or e.__class__.__name__) from e

    return inner
