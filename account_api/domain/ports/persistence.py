from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

from ..models import Account, VerificationStatus


class AccountRepository(Protocol):
    """Persistence functions for account records.

    Reads exclude soft-deleted rows unless ``include_deleted`` is set. Writes
    that would give two live accounts the same email raise
    :class:`~account_api.domain.errors.EmailAlreadyTakenError`.
    """

    def create_account(
        self,
        name: str,
        email: str,
        password_hash: str,
        *,
        is_admin: bool,
        verification_status: VerificationStatus,
        verification_token: Optional[str],
        verification_expires_at: Optional[datetime],
    ) -> Account:
        ...

    def get_account(self, account_id: int, include_deleted: bool = False) -> Optional[Account]:
        ...

    def get_account_by_email(self, email: str) -> Optional[Account]:
        ...

    def get_account_by_verification_token(self, token: str) -> Optional[Account]:
        ...

    def list_accounts(
        self,
        *,
        include_deleted: bool = False,
        is_verified: Optional[bool] = None,
        is_admin: Optional[bool] = None,
    ) -> List[Account]:
        ...

    def save_account(self, account: Account) -> Account:
        ...

    def soft_delete_account(self, account_id: int) -> bool:
        ...
