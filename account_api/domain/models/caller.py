"""Caller contexts produced by bearer-token authentication."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Union

from .account import Account


@dataclass(frozen=True, slots=True)
class ClientCredentials:
    """A trusted client application acting without an end-user identity."""

    client_id: str


@dataclass(frozen=True, slots=True)
class AuthenticatedIdentity:
    """An end user acting through a token that grants ``scopes``."""

    account: Account
    client_id: str
    scopes: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def account_id(self) -> int:
        return self.account.id

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes


CallerContext = Optional[Union[ClientCredentials, AuthenticatedIdentity]]
