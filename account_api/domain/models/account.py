"""Account domain model for the user-account resource."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional


class VerificationStatus(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"


@dataclass(slots=True)
class Account:
    """
    Account entity for both regular and administrative users.

    Attributes:
        id: Unique identifier assigned by the store
        name: Display name
        email: Email address (unique among live accounts)
        password_hash: One-way hash of the account secret, never exposed
        is_admin: Whether the account holds the admin capability
        verification_status: Whether the mailbox has been confirmed
        verification_token: Pending verification secret, cleared once verified
        verification_expires_at: Expiry of the pending verification token
        created_at: Registration timestamp
        updated_at: Last change timestamp
        deleted_at: Soft-delete marker
    """

    id: int
    name: str
    email: str
    password_hash: str
    is_admin: bool
    verification_status: VerificationStatus
    verification_token: Optional[str]
    verification_expires_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    @property
    def is_verified(self) -> bool:
        return self.verification_status is VerificationStatus.VERIFIED

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def copy(self, **changes: object) -> "Account":
        return replace(self, **changes)

    def __repr__(self) -> str:
        return (
            f"<Account id={self.id} email={self.email} "
            f"admin={self.is_admin} status={self.verification_status.value}>"
        )
