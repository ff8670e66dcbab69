"""Orchestration of one authentication attempt."""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Protocol

from .config import DEBUG_MODE_CONFIG, parse_debug_mode
from .exceptions import InvalidRequest, VerificationFailed
from .flow import (
    LOGIN_STRATEGY,
    ActionCallbacks,
    ActionFlowResolver,
    ActionKind,
    ActionStrategy,
    RoutingDecision,
)
from .identity import IdentityLookup
from .platform import PlatformOutcome, UserRequest
from .signature import Assertion, Challenge, ChallengeValidator, VerificationResult

__all__ = [
    "NONCE_AUTH_NOTE",
    "PlatformCall",
    "SessionContext",
    "UserActionDispatcher",
]

LOGGER = logging.getLogger("mynumbercard_idp.actions")

NONCE_AUTH_NOTE = "nonce"

PlatformCall = Callable[[ActionKind, UserRequest], PlatformOutcome]


class SessionContext(Protocol):
    """The host authentication session for the current attempt."""

    logger: logging.Logger

    def get_auth_note(self, name: str) -> Optional[str]: ...

    def get_config(self, name: str) -> str: ...

    def set_identity(self, identity: Any) -> None: ...

    def signal_success(self) -> None: ...


class UserActionDispatcher:
    """Runs validation, the platform call and the routing for one request.

    Aborting errors are raised as :class:`~.exceptions.AuthenticationError`
    subclasses; every routed outcome is reported through ``callbacks`` and
    returned as a :class:`~.flow.RoutingDecision`.
    """

    strategies: Mapping[ActionKind, ActionStrategy] = {ActionKind.LOGIN: LOGIN_STRATEGY}

    def __init__(
        self,
        context: SessionContext,
        platform_call: PlatformCall,
        identity_lookup: IdentityLookup,
        callbacks: ActionCallbacks,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.context = context
        self.platform_call = platform_call
        self.identity_lookup = identity_lookup
        self.callbacks = callbacks
        self.logger = logger or getattr(context, "logger", None) or LOGGER
        self.validator = ChallengeValidator(logger=self.logger)

    def execute(self, user_request: UserRequest) -> RoutingDecision:
        """Run the attempt with the nonce and debug flag held by the session."""

        user_request.ensure_has_values()
        nonce = self.context.get_auth_note(NONCE_AUTH_NOTE)
        if not nonce:
            raise InvalidRequest("No nonce has been issued for this session.")
        debug_mode = parse_debug_mode(self.context.get_config(DEBUG_MODE_CONFIG))
        return self.run(user_request, Challenge(nonce), debug_mode)

    def run(
        self, user_request: UserRequest, challenge: Challenge, debug_mode: bool
    ) -> RoutingDecision:
        user_request.ensure_has_values()
        kind = user_request.action_kind
        strategy = self.strategies.get(kind)
        if strategy is None:
            raise InvalidRequest(f"Action mode {kind.action_name} is not supported.")

        assertion = Assertion(
            signature=user_request.sign,
            certificate=user_request.certificate,
            claimed_value=user_request.applicant_data,
        )
        result: VerificationResult = self.validator.validate(challenge, assertion, debug_mode)
        if not result.is_verified:
            raise VerificationFailed(result)

        outcome = self.platform_call(kind, user_request)
        resolver = ActionFlowResolver(strategy, self.callbacks, logger=self.logger)
        decision = resolver.resolve(outcome.status_code)
        if decision.is_terminal:
            return decision

        unique_id = outcome.ensure_has_unique_id()
        identity = self.identity_lookup.find_by_unique_id(unique_id)
        if identity is None:
            self.logger.info("No user is linked to the platform unique ID.")
            decision = RoutingDecision.registration_challenge()
            resolver.apply(decision)
            return decision

        self.context.set_identity(identity)
        self.context.signal_success()
        self.callbacks.on_success(identity)
        return decision
