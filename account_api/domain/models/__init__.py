"""Domain models for the account service."""

from .account import Account, VerificationStatus
from .caller import AuthenticatedIdentity, CallerContext, ClientCredentials

__all__ = [
    "Account",
    "AuthenticatedIdentity",
    "CallerContext",
    "ClientCredentials",
    "VerificationStatus",
]
