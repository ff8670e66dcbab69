"""Signature verification against a server-issued nonce.

The client signs a value derived from the nonce with the private key of its
card certificate. Clients disagree on the exact signed value (lowercase hash,
uppercase hash, the raw nonce or the value they report in ``applicantData``),
so verification walks an ordered list of candidate plaintexts. The order is a
policy decision and must not be changed.
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from enum import Enum, unique
from typing import Optional, Tuple

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .exceptions import InvalidInput, catch_decoding_errors
from .hashing import to_hash_string

__all__ = [
    "Assertion",
    "CandidatePlaintext",
    "Challenge",
    "ChallengeValidator",
    "FailureReason",
    "VerificationResult",
    "verify_signature",
]

LOGGER = logging.getLogger("mynumbercard_idp.signature")

DEBUG_MODE_PREFIX = "Debug mode is enabled. "


@dataclass(frozen=True)
class Challenge:
    nonce: str

    @property
    def nonce_hash(self) -> str:
        return to_hash_string(self.nonce)


@dataclass(frozen=True)
class Assertion:
    """Values submitted by the client for one attempt."""

    signature: str
    certificate: str
    claimed_value: str


@unique
class CandidatePlaintext(Enum):
    """Values the signature may have been computed over, in trial order."""

    NONCE_HASH_LOWER = "nonce-hash-lower"
    NONCE_HASH_UPPER = "nonce-hash-upper"
    NONCE_RAW = "nonce-raw"
    CLAIMED_VALUE = "claimed-value"


@unique
class FailureReason(Enum):
    CLAIMED_VALUE_MISMATCH = "claimed-value-mismatch"
    SIGNATURE_MISMATCH = "signature-mismatch"
    NO_CANDIDATE_MATCHED = "no-candidate-matched"


@dataclass(frozen=True)
class VerificationResult:
    """Either ``matched`` or ``reason`` is set, never both."""

    matched: Optional[CandidatePlaintext] = None
    reason: Optional[FailureReason] = None

    def __post_init__(self) -> None:
        if (self.matched is None) == (self.reason is None):
            raise ValueError("Exactly one of matched or reason must be set")

    @classmethod
    def verified(cls, candidate: CandidatePlaintext) -> "VerificationResult":
        return cls(matched=candidate)

    @classmethod
    def failed(cls, reason: FailureReason) -> "VerificationResult":
        return cls(reason=reason)

    @property
    def is_verified(self) -> bool:
        return self.matched is not None


def _b64decode(value: str, what: str) -> bytes:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"The {what} is empty.")
    compact = "".join(value.split())
    return base64.b64decode(compact + "=" * (-len(compact) % 4), validate=True)


@catch_decoding_errors
def _load_rsa_public_key(certificate_b64: str) -> rsa.RSAPublicKey:
    certificate = x509.load_der_x509_certificate(_b64decode(certificate_b64, "certificate"))
    public_key = certificate.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise InvalidInput(
            f"Unsupported certificate key type: {type(public_key).__name__}"
        )
    return public_key


@catch_decoding_errors
def verify_signature(signature_b64: str, certificate_b64: str, plaintext: str) -> bool:
    """Return whether ``signature_b64`` is an RSA/SHA-256 signature over ``plaintext``.

    Malformed base64, a certificate that cannot be parsed, or a non-RSA key
    raise :class:`InvalidInput`; only a well-formed signature that does not
    match returns ``False``.
    """

    public_key = _load_rsa_public_key(certificate_b64)
    signature = _b64decode(signature_b64, "signature")
    try:
        public_key.verify(
            signature,
            plaintext.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
    except InvalidSignature:
        return False
    return True


class ChallengeValidator:
    """Checks that an assertion was signed over a value derived from the nonce."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or LOGGER

    def validate(
        self, challenge: Challenge, assertion: Assertion, debug_mode: bool
    ) -> VerificationResult:
        nonce = challenge.nonce
        self.logger.debug("Nonce: %s", nonce)
        nonce_hash = challenge.nonce_hash
        self.logger.debug("Nonce hash: %s", nonce_hash)
        claimed_value = assertion.claimed_value
        self.logger.debug("Applicant data: %s", claimed_value)

        if not self._claimed_value_matches(nonce_hash, claimed_value):
            message = "Applicant data is not equals a nonce hash."
            if not debug_mode:
                self.logger.info(message)
                return VerificationResult.failed(FailureReason.CLAIMED_VALUE_MISMATCH)
            self.logger.warning(DEBUG_MODE_PREFIX + message)

        if debug_mode:
            self.logger.info(
                DEBUG_MODE_PREFIX + "Skipping the strict nonce hash signature check."
            )
        elif not self._verifies_nonce_hash(assertion, nonce_hash):
            self.logger.info("The signature is not equals a nonce hash.")
            return VerificationResult.failed(FailureReason.SIGNATURE_MISMATCH)

        for candidate, plaintext in self._candidates(nonce, nonce_hash, claimed_value):
            if verify_signature(assertion.signature, assertion.certificate, plaintext):
                self.logger.debug("Signature verified against %s.", candidate.value)
                return VerificationResult.verified(candidate)
            if candidate is CandidatePlaintext.NONCE_HASH_UPPER:
                self.logger.info(
                    "Failed validate signature. The signed value was not a nonce hash. "
                    "Retry, verifies that the signed value is a nonce."
                )
            elif candidate is CandidatePlaintext.NONCE_RAW:
                self.logger.info("Failed validate signature. The signed value was not a nonce.")

        self.logger.info("The signature is not equals a applicant data.")
        return VerificationResult.failed(FailureReason.NO_CANDIDATE_MATCHED)

    @staticmethod
    def _claimed_value_matches(nonce_hash: str, claimed_value: str) -> bool:
        return nonce_hash in (claimed_value.lower(), claimed_value.upper())

    @staticmethod
    def _verifies_nonce_hash(assertion: Assertion, nonce_hash: str) -> bool:
        return verify_signature(
            assertion.signature, assertion.certificate, nonce_hash.lower()
        ) or verify_signature(assertion.signature, assertion.certificate, nonce_hash.upper())

    @staticmethod
    def _candidates(
        nonce: str, nonce_hash: str, claimed_value: str
    ) -> Tuple[Tuple[CandidatePlaintext, str], ...]:
        return (
            (CandidatePlaintext.NONCE_HASH_LOWER, nonce_hash.lower()),
            (CandidatePlaintext.NONCE_HASH_UPPER, nonce_hash.upper()),
            (CandidatePlaintext.NONCE_RAW, nonce),
            (CandidatePlaintext.CLAIMED_VALUE, claimed_value),
        )
