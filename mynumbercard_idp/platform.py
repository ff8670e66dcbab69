"""Client for the identity platform that verifies card certificates."""
from __future__ import annotations

import http.client
import json
import logging
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional

import certifi

from .exceptions import InvalidRequest, MissingUniqueId, PlatformCallError
from .flow import ActionKind

__all__ = [
    "CERTIFICATE_FIELDS",
    "PlatformApiClient",
    "PlatformOutcome",
    "PlatformRequest",
    "UserRequest",
]

LOGGER = logging.getLogger("mynumbercard_idp.platform")

USER_AUTHENTICATION_CERTIFICATE = "encryptedUserAuthenticationCertificate"
DIGITAL_SIGNATURE_CERTIFICATE = "encryptedDigitalSignatureCertificate"
CERTIFICATE_FIELDS = (USER_AUTHENTICATION_CERTIFICATE, DIGITAL_SIGNATURE_CERTIFICATE)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _clean(value: Any) -> str:
    return _text(value).strip()


@dataclass(frozen=True)
class UserRequest:
    """Form values posted by the card reader application."""

    action_mode: str
    certificate_type: str
    certificate: str
    applicant_data: str
    sign: str

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> "UserRequest":
        certificate_type = ""
        certificate = ""
        for name in CERTIFICATE_FIELDS:
            value = _clean(form.get(name))
            if value:
                certificate_type, certificate = name, value
                break
        return cls(
            action_mode=_clean(form.get("mode")),
            certificate_type=certificate_type,
            certificate=certificate,
            applicant_data=_text(form.get("applicantData")),
            sign=_clean(form.get("sign")),
        )

    def ensure_has_values(self) -> None:
        for name, value in (
            ("mode", self.action_mode),
            ("certificate", self.certificate),
            ("applicantData", self.applicant_data),
            ("sign", self.sign),
        ):
            if not value:
                raise InvalidRequest(f"The request parameter {name} is required.")

    @property
    def action_kind(self) -> ActionKind:
        try:
            return ActionKind(self.action_mode.lower())
        except ValueError:
            raise InvalidRequest(f"Action mode {self.action_mode} is the undefined.") from None


@dataclass(frozen=True)
class PlatformRequest:
    url: str
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PlatformOutcome:
    status_code: int
    unique_id: Optional[str] = None
    body: Any = None

    def ensure_has_unique_id(self) -> str:
        if not self.unique_id:
            raise MissingUniqueId("The platform response does not contain a unique ID.")
        return self.unique_id


def _ssl_contexts() -> Iterable[ssl.SSLContext]:
    yield ssl.create_default_context()
    yield ssl.create_default_context(cafile=certifi.where())


def _is_certificate_verification_error(error: BaseException) -> bool:
    if isinstance(error, ssl.SSLCertVerificationError):
        return True
    return "certificate verify failed" in str(error).lower()


def _parse_body(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PlatformCallError("The platform response is not valid JSON.") from exc


def _extract_unique_id(body: Any) -> Optional[str]:
    if isinstance(body, Mapping):
        value = body.get("uniqueId")
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class PlatformApiClient:
    """Sends verification requests to the platform API.

    ``api_root_url`` covers scheme, host and port; each action is posted to
    ``<api_root_url>/verify/<action name>``.
    """

    def __init__(
        self,
        api_root_url: str,
        idp_sender: str = "",
        timeout: float = 10.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not api_root_url:
            raise PlatformCallError("The platform API URL is not configured.")
        self.api_root_url = api_root_url.rstrip("/")
        self.idp_sender = idp_sender
        self.timeout = timeout
        self.logger = logger or LOGGER

    def build_request(self, kind: ActionKind, user_request: UserRequest) -> PlatformRequest:
        payload: Dict[str, str] = {
            "certificateType": user_request.certificate_type,
            "certificate": user_request.certificate,
            "applicantData": user_request.applicant_data,
            "sign": user_request.sign,
            "actionMode": kind.action_name,
            "sender": self.idp_sender,
        }
        return PlatformRequest(
            url=f"{self.api_root_url}/verify/{kind.action_name}",
            body=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json; charset=utf-8",
                "Accept": "application/json",
            },
        )

    def send(self, request: PlatformRequest) -> PlatformOutcome:
        """POST ``request``; HTTP error statuses come back as outcomes."""

        last_cert_error: Optional[BaseException] = None
        for context in _ssl_contexts():
            http_request = urllib.request.Request(
                request.url, data=request.body, headers=dict(request.headers), method="POST"
            )
            try:
                with urllib.request.urlopen(
                    http_request, timeout=self.timeout, context=context
                ) as response:
                    status = getattr(response, "status", None) or response.getcode()
                    return self._to_outcome(status, response.read())
            except urllib.error.HTTPError as exc:
                return self._to_outcome(exc.code, exc.read() or b"", lenient=True)
            except urllib.error.URLError as exc:
                reason = getattr(exc, "reason", exc)
                if isinstance(reason, BaseException) and _is_certificate_verification_error(reason):
                    last_cert_error = reason
                    continue
                if isinstance(reason, TimeoutError):
                    self.logger.warning("Connect timeout. Platform URL: %s", request.url)
                    raise PlatformCallError(
                        f"Connect timeout. Platform URL: {request.url}", url=request.url
                    ) from exc
                self.logger.warning("Failed to reach the platform at %s: %s", request.url, reason)
                raise PlatformCallError(
                    f"Failed to reach the platform: {reason}", url=request.url
                ) from exc
            except TimeoutError as exc:
                self.logger.warning("Connect timeout. Platform URL: %s", request.url)
                raise PlatformCallError(
                    f"Connect timeout. Platform URL: {request.url}", url=request.url
                ) from exc
            except (OSError, http.client.HTTPException) as exc:
                # Raised by getresponse() and read(), which urlopen does not wrap.
                if _is_certificate_verification_error(exc):
                    last_cert_error = exc
                    continue
                self.logger.warning("Connection to the platform at %s failed: %r", request.url, exc)
                raise PlatformCallError(
                    f"Connection to the platform failed: {exc!r}", url=request.url
                ) from exc

        message = "Failed to verify the TLS certificate of the platform."
        self.logger.warning("%s (%s)", message, last_cert_error)
        raise PlatformCallError(message, url=request.url) from last_cert_error

    def _to_outcome(self, status: int, raw: bytes, lenient: bool = False) -> PlatformOutcome:
        try:
            body = _parse_body(raw)
        except PlatformCallError:
            if not lenient:
                raise
            body = raw.decode("utf-8", errors="replace")
        return PlatformOutcome(status_code=int(status), unique_id=_extract_unique_id(body), body=body)
