"""Routing of identity platform responses to downstream actions.

The platform answers every verification request with an HTTP status code.
:class:`StatusCodeRouter` turns that code into exactly one
:class:`RoutingDecision` and :class:`ActionFlowResolver` invokes the matching
callback. Only ``CONTINUE`` hands control back to the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, unique
from http import HTTPStatus
from typing import Any, Mapping, Optional, Protocol

__all__ = [
    "ActionCallbacks",
    "ActionFlowResolver",
    "ActionKind",
    "ActionStrategy",
    "DecisionKind",
    "LOGIN_STRATEGY",
    "REPLACEMENT_REASON",
    "RoutingDecision",
    "StatusCodeRouter",
]

LOGGER = logging.getLogger("mynumbercard_idp.flow")

REPLACEMENT_REASON = "replacement"


@unique
class ActionKind(Enum):
    """Operations a client can request with the ``mode`` form field."""

    LOGIN = "login"
    REGISTRATION = "registration"
    REPLACEMENT = "replacement"

    @property
    def action_name(self) -> str:
        return self.value


@unique
class DecisionKind(Enum):
    CONTINUE = "continue"
    REGISTRATION_CHALLENGE = "registration-challenge"
    UNAUTHORIZED = "unauthorized"
    RECHALLENGE = "rechallenge"
    UNDEFINED_FLOW = "undefined-flow"


@dataclass(frozen=True)
class RoutingDecision:
    """One routing decision; ``argument`` carries the reason code or action name."""

    kind: DecisionKind
    argument: Optional[str] = None

    @classmethod
    def continue_(cls) -> "RoutingDecision":
        return cls(DecisionKind.CONTINUE)

    @classmethod
    def registration_challenge(cls) -> "RoutingDecision":
        return cls(DecisionKind.REGISTRATION_CHALLENGE)

    @classmethod
    def unauthorized(cls) -> "RoutingDecision":
        return cls(DecisionKind.UNAUTHORIZED)

    @classmethod
    def rechallenge(cls, reason_code: str) -> "RoutingDecision":
        return cls(DecisionKind.RECHALLENGE, reason_code)

    @classmethod
    def undefined_flow(cls, action_name: str) -> "RoutingDecision":
        return cls(DecisionKind.UNDEFINED_FLOW, action_name)

    @property
    def is_terminal(self) -> bool:
        return self.kind is not DecisionKind.CONTINUE


@dataclass(frozen=True)
class ActionStrategy:
    """Per-action routing settings.

    ``status_overrides`` are consulted before the shared table.
    """

    kind: ActionKind
    success_status: int = HTTPStatus.OK
    status_overrides: Mapping[int, RoutingDecision] = field(default_factory=dict)

    @property
    def action_name(self) -> str:
        return self.kind.action_name


LOGIN_STRATEGY = ActionStrategy(ActionKind.LOGIN)


class StatusCodeRouter:
    """Total mapping from a platform status code to a routing decision."""

    def __init__(self, strategy: ActionStrategy) -> None:
        self.strategy = strategy

    def route(self, status_code: int) -> RoutingDecision:
        override = self.strategy.status_overrides.get(status_code)
        if override is not None:
            return override
        return self._route_shared(status_code)

    def _route_shared(self, status_code: int) -> RoutingDecision:
        if status_code == self.strategy.success_status:
            return RoutingDecision.continue_()
        if status_code == HTTPStatus.NOT_FOUND:
            return RoutingDecision.registration_challenge()
        if status_code == HTTPStatus.UNAUTHORIZED:
            return RoutingDecision.unauthorized()
        if status_code == HTTPStatus.GONE:
            return RoutingDecision.rechallenge(REPLACEMENT_REASON)
        return RoutingDecision.undefined_flow(self.strategy.action_name)


class ActionCallbacks(Protocol):
    """Downstream actions that build the user-facing response."""

    def on_success(self, identity: Any) -> None: ...

    def on_registration_challenge(self) -> None: ...

    def on_unauthorized(self) -> None: ...

    def on_rechallenge(self, reason_code: str) -> None: ...

    def on_undefined_flow(self, action_name: str) -> None: ...


class ActionFlowResolver:
    """Routes a platform status code and triggers the matching callback."""

    def __init__(
        self,
        strategy: ActionStrategy,
        callbacks: ActionCallbacks,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.router = StatusCodeRouter(strategy)
        self.callbacks = callbacks
        self.logger = logger or LOGGER

    def resolve(self, status_code: int) -> RoutingDecision:
        """Return the decision for ``status_code``, invoking terminal actions.

        ``CONTINUE`` invokes nothing; the caller owns the success path.
        """

        decision = self.router.route(status_code)
        self.logger.debug(
            "Platform status %s routed to %s.", status_code, decision.kind.value
        )
        self.apply(decision, status_code)
        return decision

    def apply(self, decision: RoutingDecision, status_code: Optional[int] = None) -> None:
        kind = decision.kind
        if kind is DecisionKind.CONTINUE:
            return
        if kind is DecisionKind.REGISTRATION_CHALLENGE:
            self.callbacks.on_registration_challenge()
        elif kind is DecisionKind.UNAUTHORIZED:
            self.callbacks.on_unauthorized()
        elif kind is DecisionKind.RECHALLENGE:
            self.callbacks.on_rechallenge(decision.argument)
        elif kind is DecisionKind.UNDEFINED_FLOW:
            self.logger.error(
                "Platform status code %s has no defined flow for action %s.",
                status_code,
                decision.argument,
            )
            self.callbacks.on_undefined_flow(decision.argument)
