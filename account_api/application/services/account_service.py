from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Mapping, Optional

from ...domain import validation
from ...domain.errors import (
    ConflictError,
    DispatchError,
    EmailAlreadyTakenError,
    NoOpUpdateError,
    NotFoundError,
    ValidationError,
)
from ...domain.models import Account, CallerContext, VerificationStatus
from ...domain.ports.notifications import NotificationReason, PasswordHasher, VerificationNotifier
from ...domain.ports.persistence import AccountRepository
from ...services.retry import RetryPolicy
from ...services.verification_tokens import generate_verification_token
from .authorization import ensure_admin_capability

logger = logging.getLogger(__name__)

ADMIN_REQUIRES_VERIFIED = "Only verified users can modify the admin field."
ALREADY_VERIFIED = "This user is already verified"

UPDATABLE_FIELDS = ("name", "email", "password", "is_admin")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountService:
    """Owns every state transition of an account.

    Validation and authorization are settled before anything is written, and
    each operation ends in at most one store write.
    """

    def __init__(
        self,
        repository: AccountRepository,
        hasher: PasswordHasher,
        notifier: VerificationNotifier,
        retry_policy: RetryPolicy,
        *,
        token_generator: Callable[[], str] = generate_verification_token,
        clock: Callable[[], datetime] = _utcnow,
        verification_ttl_hours: int = 24,
    ) -> None:
        self._accounts = repository
        self._hasher = hasher
        self._notifier = notifier
        self._retry = retry_policy
        self._new_token = token_generator
        self._clock = clock
        self._verification_ttl = (
            timedelta(hours=verification_ttl_hours) if verification_ttl_hours > 0 else None
        )

    # ------------------------------------------------------------------
    def create(
        self,
        name: object,
        email: object,
        password: object,
        password_confirmation: object,
    ) -> Account:
        errors: Dict[str, List[str]] = {}

        clean_name, messages = validation.check_name(name)
        self._collect(errors, "name", messages)

        clean_email, messages = validation.check_email_syntax(email)
        if clean_email and self._accounts.get_account_by_email(clean_email):
            messages = [validation.EMAIL_TAKEN]
        self._collect(errors, "email", messages)

        clean_password, messages = validation.check_password(password)
        if clean_password is not None:
            messages = validation.check_confirmation(clean_password, password_confirmation)
        self._collect(errors, "password", messages)

        if errors:
            raise ValidationError(errors)

        token, expires_at = self._issue_token()
        try:
            account = self._accounts.create_account(
                clean_name,
                clean_email,
                self._hasher.hash(clean_password),
                is_admin=False,
                verification_status=VerificationStatus.UNVERIFIED,
                verification_token=token,
                verification_expires_at=expires_at,
            )
        except EmailAlreadyTakenError as exc:
            raise ValidationError.single("email", validation.EMAIL_TAKEN) from exc

        logger.info("Created account %s for %s", account.id, account.email)
        self._notify_quietly(account, NotificationReason.CREATED)
        return account

    def get(self, account_id: int, include_deleted: bool = False) -> Account:
        account = self._accounts.get_account(account_id, include_deleted=include_deleted)
        if not account:
            raise NotFoundError()
        return account

    def list_accounts(
        self,
        *,
        include_deleted: bool = False,
        is_verified: Optional[bool] = None,
        is_admin: Optional[bool] = None,
    ) -> List[Account]:
        return self._accounts.list_accounts(
            include_deleted=include_deleted,
            is_verified=is_verified,
            is_admin=is_admin,
        )

    def update(
        self,
        context: CallerContext,
        account_id: int,
        fields: Mapping[str, object],
    ) -> Account:
        """
        Apply a sparse update to the account.

        Args:
            context: Caller performing the update; consulted for admin writes
            account_id: Account being updated
            fields: Any subset of ``name``, ``email``, ``password``, ``is_admin``

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If any present field is invalid
            AuthorizationError: If ``is_admin`` is set by a non-administrator
            ConflictError: If ``is_admin`` is set on an unverified account
            NoOpUpdateError: If nothing would change
        """
        current = self.get(account_id)
        present = {key: value for key, value in fields.items() if key in UPDATABLE_FIELDS}

        errors: Dict[str, List[str]] = {}
        clean_name = clean_email = clean_password = None
        clean_admin: Optional[bool] = None

        if "name" in present:
            clean_name, messages = validation.check_name(present["name"])
            self._collect(errors, "name", messages)
        if "email" in present:
            clean_email, messages = validation.check_email_syntax(present["email"])
            if clean_email:
                owner = self._accounts.get_account_by_email(clean_email)
                if owner and owner.id != current.id:
                    messages = [validation.EMAIL_TAKEN]
            self._collect(errors, "email", messages)
        if "password" in present:
            clean_password, messages = validation.check_password(present["password"])
            self._collect(errors, "password", messages)
        if "is_admin" in present:
            clean_admin, messages = validation.check_boolean("is_admin", present["is_admin"])
            self._collect(errors, "is_admin", messages)

        if errors:
            raise ValidationError(errors)

        updated = current.copy()
        email_changed = False

        if clean_name is not None:
            updated.name = clean_name

        if clean_email is not None and clean_email != current.email:
            token, expires_at = self._issue_token()
            updated.email = clean_email
            updated.verification_status = VerificationStatus.UNVERIFIED
            updated.verification_token = token
            updated.verification_expires_at = expires_at
            email_changed = True

        if clean_password is not None and not self._hasher.verify(clean_password, current.password_hash):
            updated.password_hash = self._hasher.hash(clean_password)

        if clean_admin is not None:
            ensure_admin_capability(context)
            if not current.is_verified:
                raise ConflictError(ADMIN_REQUIRES_VERIFIED)
            updated.is_admin = clean_admin

        if not self._differs(current, updated):
            raise NoOpUpdateError()

        try:
            saved = self._accounts.save_account(updated)
        except EmailAlreadyTakenError as exc:
            raise ValidationError.single("email", validation.EMAIL_TAKEN) from exc
        except ValueError as exc:
            raise NotFoundError() from exc

        logger.info("Updated account %s", saved.id)
        if email_changed:
            self._notify_quietly(saved, NotificationReason.EMAIL_CHANGED)
        return saved

    def destroy(self, account_id: int) -> None:
        if not self._accounts.soft_delete_account(account_id):
            raise NotFoundError()
        logger.info("Deleted account %s", account_id)

    def verify(self, token: str) -> Account:
        account = self._accounts.get_account_by_verification_token(token) if token else None
        if not account or self._token_expired(account):
            raise NotFoundError()

        account.verification_status = VerificationStatus.VERIFIED
        account.verification_token = None
        account.verification_expires_at = None
        try:
            verified = self._accounts.save_account(account)
        except ValueError as exc:
            raise NotFoundError() from exc
        logger.info("Verified account %s", verified.id)
        return verified

    def resend(self, account_id: int) -> int:
        """
        Send the pending verification token again.

        Returns:
            Number of delivery attempts used

        Raises:
            NotFoundError: If the account does not exist
            ConflictError: If the account is already verified
            DispatchError: If every delivery attempt failed
        """
        account = self.get(account_id)
        if account.is_verified:
            raise ConflictError(ALREADY_VERIFIED)

        if not account.verification_token or self._token_expired(account):
            token, expires_at = self._issue_token()
            account.verification_token = token
            account.verification_expires_at = expires_at
            account = self._accounts.save_account(account)

        attempts = self._retry.run(
            lambda: self._notifier.send_verification(account, NotificationReason.RESEND)
        )
        logger.info("Resent verification to account %s after %s attempt(s)", account.id, attempts)
        return attempts

    def ensure_administrator(
        self, name: Optional[str], email: Optional[str], password: Optional[str]
    ) -> Optional[Account]:
        """Create a verified administrator unless one already uses ``email``."""
        if not email or not password:
            return None
        normalized = validation.normalize_email(email)
        existing = self._accounts.get_account_by_email(normalized)
        if existing:
            return existing
        logger.info("Creating default administrator account for %s", normalized)
        return self._accounts.create_account(
            name or "Administrator",
            normalized,
            self._hasher.hash(password),
            is_admin=True,
            verification_status=VerificationStatus.VERIFIED,
            verification_token=None,
            verification_expires_at=None,
        )

    # Helpers ----------------------------------------------------------------
    @staticmethod
    def _collect(errors: Dict[str, List[str]], field: str, messages: List[str]) -> None:
        if messages:
            errors[validation.label(field)] = messages

    @staticmethod
    def _differs(before: Account, after: Account) -> bool:
        return (
            before.name != after.name
            or before.email != after.email
            or before.password_hash != after.password_hash
            or before.is_admin != after.is_admin
        )

    def _issue_token(self):
        expires_at = self._clock() + self._verification_ttl if self._verification_ttl else None
        return self._new_token(), expires_at

    def _token_expired(self, account: Account) -> bool:
        expires_at = account.verification_expires_at
        return expires_at is not None and expires_at <= self._clock()

    def _notify_quietly(self, account: Account, reason: NotificationReason) -> None:
        try:
            self._retry.run(lambda: self._notifier.send_verification(account, reason))
        except DispatchError:
            logger.warning(
                "Verification email for account %s was not delivered; it can be resent later.",
                account.id,
            )
