"""
Authorization of account operations.

Every operation is protected by an ordered tuple of guards. A guard is a plain
function ``(context, target) -> Optional[AccountError]``: it returns ``None``
to let the request through, or the error that should be reported. The first
failing guard wins, so identity checks (401) always run before scope checks
(403), which run before per-account ability checks (403).

Abilities are pure predicates over ``(caller, target)`` accounts. An account
may always act on itself; administrators may act on any account.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from ...domain import scopes
from ...domain.errors import AccountError, AuthenticationError, AuthorizationError
from ...domain.models import Account, AuthenticatedIdentity, CallerContext, ClientCredentials

logger = logging.getLogger(__name__)

INVALID_SCOPE = "Invalid scopes provided."


class Operation(str, Enum):
    LIST = "list"
    CREATE = "create"
    SHOW = "show"
    UPDATE = "update"
    DESTROY = "destroy"
    ME = "me"
    VERIFY = "verify"
    RESEND = "resend"


Guard = Callable[[CallerContext, Optional[Account]], Optional[AccountError]]
Ability = Callable[[Account, Account], bool]


@dataclass(frozen=True, slots=True)
class Decision:
    error: Optional[AccountError] = None

    @property
    def allowed(self) -> bool:
        return self.error is None


# Abilities -----------------------------------------------------------------
def has_admin_capability(caller: Account) -> bool:
    return caller.is_admin


def _owner_or_admin(caller: Account, target: Account) -> bool:
    return has_admin_capability(caller) or caller.id == target.id


def can_view(caller: Account, target: Account) -> bool:
    return _owner_or_admin(caller, target)


def can_update(caller: Account, target: Account) -> bool:
    return _owner_or_admin(caller, target)


def can_delete(caller: Account, target: Account) -> bool:
    return _owner_or_admin(caller, target)


# Guards --------------------------------------------------------------------
def require_client(context: CallerContext, target: Optional[Account]) -> Optional[AccountError]:
    """Any valid token will do; user tokens are issued to registered clients too."""
    if not isinstance(context, (ClientCredentials, AuthenticatedIdentity)):
        return AuthenticationError()
    return None


def require_identity(context: CallerContext, target: Optional[Account]) -> Optional[AccountError]:
    if not isinstance(context, AuthenticatedIdentity):
        return AuthenticationError()
    return None


def require_scope(scope: str) -> Guard:
    def guard(context: CallerContext, target: Optional[Account]) -> Optional[AccountError]:
        if not isinstance(context, AuthenticatedIdentity):
            return AuthenticationError()
        if not context.has_scope(scope):
            return AuthorizationError(INVALID_SCOPE)
        return None

    guard.__name__ = f"require_scope[{scope}]"
    return guard


def require_ability(ability: Ability) -> Guard:
    def guard(context: CallerContext, target: Optional[Account]) -> Optional[AccountError]:
        if not isinstance(context, AuthenticatedIdentity):
            return AuthenticationError()
        if target is None or not ability(context.account, target):
            return AuthorizationError()
        return None

    guard.__name__ = f"require_ability[{ability.__name__}]"
    return guard


@dataclass(frozen=True, slots=True)
class RouteRule:
    """Guards evaluated before the addressed account is loaded, then its ability."""

    guards: Tuple[Guard, ...]
    ability: Optional[Ability] = None


ROUTE_RULES: Dict[Operation, RouteRule] = {
    Operation.CREATE: RouteRule((require_client,)),
    Operation.RESEND: RouteRule((require_client,)),
    Operation.VERIFY: RouteRule(()),
    Operation.LIST: RouteRule((require_identity, require_scope(scopes.READ_GENERAL))),
    Operation.SHOW: RouteRule(
        (require_identity, require_scope(scopes.MANAGE_ACCOUNT)),
        can_view,
    ),
    Operation.UPDATE: RouteRule(
        (require_identity, require_scope(scopes.MANAGE_ACCOUNT)),
        can_update,
    ),
    Operation.DESTROY: RouteRule((require_identity,), can_delete),
    Operation.ME: RouteRule((require_identity, require_scope(scopes.MANAGE_ACCOUNT))),
}


def _deny(operation: Operation, guard: Guard, error: AccountError) -> Decision:
    logger.debug("Denied %s via %s: %s", operation.value, guard.__name__, error.message)
    return Decision(error)


def check_access(context: CallerContext, operation: Operation) -> Decision:
    """Evaluate the identity and scope guards of ``operation``."""
    for guard in ROUTE_RULES[operation].guards:
        error = guard(context, None)
        if error is not None:
            return _deny(operation, guard, error)
    return Decision()


def check_ability(context: CallerContext, operation: Operation, target: Account) -> Decision:
    """Evaluate the per-account ability of ``operation`` against ``target``."""
    ability = ROUTE_RULES[operation].ability
    if ability is None:
        return Decision()
    guard = require_ability(ability)
    error = guard(context, target)
    if error is not None:
        return _deny(operation, guard, error)
    return Decision()


def authorize(
    context: CallerContext,
    operation: Operation,
    target: Optional[Account] = None,
) -> Decision:
    """Run every check registered for ``operation``, in order."""
    decision = check_access(context, operation)
    if not decision.allowed or target is None:
        return decision
    return check_ability(context, operation, target)


def raise_for(decision: Decision) -> None:
    if decision.error is not None:
        raise decision.error


def ensure_admin_capability(context: CallerContext) -> Account:
    """Return the acting account if it may perform admin-only actions."""
    if not isinstance(context, AuthenticatedIdentity):
        raise AuthenticationError()
    if not has_admin_capability(context.account):
        raise AuthorizationError()
    return context.account
