from __future__ import annotations

from enum import Enum
from typing import Protocol

from ..models import Account


class NotificationReason(str, Enum):
    CREATED = "created"
    EMAIL_CHANGED = "email_changed"
    RESEND = "resend"


class VerificationNotifier(Protocol):
    """Outbound transport for verification messages.

    Implementations raise on delivery failure so that the caller's retry
    policy can observe it.
    """

    def send_verification(self, account: Account, reason: NotificationReason) -> None:
        ...


class PasswordHasher(Protocol):
    def hash(self, secret: str) -> str:
        ...

    def verify(self, secret: str, hashed: str) -> bool:
        ...
