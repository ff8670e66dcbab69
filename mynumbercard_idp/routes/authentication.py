"""Routes for the card-based challenge-response login."""
from __future__ import annotations

import logging
import secrets
from http import HTTPStatus
from typing import Any, Dict, Optional, Tuple

from flask import jsonify, request, session

from ..actions import NONCE_AUTH_NOTE, PlatformCall, UserActionDispatcher
from ..config import (
    PLATFORM_API_URL_CONFIG,
    PLATFORM_IDP_SENDER_CONFIG,
    PLATFORM_TIMEOUT_CONFIG,
    USER_STORE_PATH_CONFIG,
    app,
    get_config_value,
    parse_timeout,
)
from ..exceptions import AuthenticationError, ErrorKind
from ..flow import ActionKind
from ..hashing import to_hash_string
from ..identity import IdentityLookup
from ..platform import PlatformApiClient, UserRequest
from ..storage import UserRecord, UserStore

_ERROR_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_REQUEST: HTTPStatus.BAD_REQUEST,
    ErrorKind.INVALID_INPUT: HTTPStatus.BAD_REQUEST,
    ErrorKind.FAILED: HTTPStatus.UNAUTHORIZED,
    ErrorKind.MISSING_UNIQUE_ID: HTTPStatus.INTERNAL_SERVER_ERROR,
    ErrorKind.INVALID_ARGUMENT: HTTPStatus.INTERNAL_SERVER_ERROR,
    ErrorKind.PLATFORM_UNAVAILABLE: HTTPStatus.BAD_GATEWAY,
}


class FlaskSessionContext:
    """Session adapter over the Flask cookie session and ``app.config``."""

    def __init__(self) -> None:
        self.logger: logging.Logger = app.logger
        self.identity: Optional[UserRecord] = None
        self.succeeded = False

    def get_auth_note(self, name: str) -> Optional[str]:
        return session.get(name)

    def get_config(self, name: str) -> str:
        return get_config_value(name)

    def set_identity(self, identity: UserRecord) -> None:
        self.identity = identity

    def signal_success(self) -> None:
        self.succeeded = True
        if self.identity is not None:
            session["user"] = self.identity.username


class JsonResponseActions:
    """Builds the JSON response for whichever action the flow selects."""

    def __init__(self) -> None:
        self.response: Optional[Tuple[Dict[str, Any], int]] = None

    def on_success(self, identity: UserRecord) -> None:
        self.response = ({"status": "authenticated", "username": identity.username}, HTTPStatus.OK)

    def on_registration_challenge(self) -> None:
        self.response = ({"status": "registration-required"}, HTTPStatus.OK)

    def on_unauthorized(self) -> None:
        self.response = ({"status": "unauthorized"}, HTTPStatus.UNAUTHORIZED)

    def on_rechallenge(self, reason_code: str) -> None:
        self.response = ({"status": "rechallenge", "reason": reason_code}, HTTPStatus.CONFLICT)

    def on_undefined_flow(self, action_name: str) -> None:
        self.response = (
            {"status": "undefined-flow", "action": action_name},
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )


def create_platform_call() -> PlatformCall:
    client = PlatformApiClient(
        get_config_value(PLATFORM_API_URL_CONFIG),
        idp_sender=get_config_value(PLATFORM_IDP_SENDER_CONFIG),
        timeout=parse_timeout(get_config_value(PLATFORM_TIMEOUT_CONFIG)),
        logger=app.logger,
    )

    def call(kind: ActionKind, user_request: UserRequest):
        return client.send(client.build_request(kind, user_request))

    return call


def create_user_store() -> UserStore:
    return UserStore(get_config_value(USER_STORE_PATH_CONFIG))


@app.route("/api/nonce", methods=["GET"])
def issue_nonce():
    nonce = secrets.token_hex(32)
    session[NONCE_AUTH_NOTE] = nonce
    return jsonify({"nonce": nonce, "nonceHash": to_hash_string(nonce)})


@app.route("/api/authenticate", methods=["POST"])
def authenticate():
    user_request = UserRequest.from_form(request.form)
    context = FlaskSessionContext()
    actions = JsonResponseActions()

    try:
        dispatcher = UserActionDispatcher(
            context,
            create_platform_call(),
            IdentityLookup(create_user_store()),
            actions,
        )
        dispatcher.execute(user_request)
    except AuthenticationError as exc:
        status = _ERROR_STATUS[exc.kind]
        if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
            app.logger.error("Authentication aborted (%s): %s", exc.kind.value, exc)
        else:
            app.logger.info("Authentication rejected (%s): %s", exc.kind.value, exc)
        return jsonify({"status": "error", "error": exc.kind.value, "message": str(exc)}), status
    finally:
        # Each nonce backs a single attempt, whatever its outcome.
        session.pop(NONCE_AUTH_NOTE, None)

    if actions.response is None:
        app.logger.error("Authentication flow finished without a response.")
        return jsonify({"status": "error", "error": "no-response"}), HTTPStatus.INTERNAL_SERVER_ERROR

    payload, status = actions.response
    return jsonify(payload), status
