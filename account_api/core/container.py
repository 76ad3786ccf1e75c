from dataclasses import dataclass

from ..application.services.account_service import AccountService
from ..application.services.token_service import AccessTokenService
from ..domain.ports.notifications import VerificationNotifier
from ..domain.ports.persistence import AccountRepository
from ..services.retry import RetryPolicy
from .config import Settings


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    accounts: AccountRepository
    notifier: VerificationNotifier
    retry_policy: RetryPolicy
    account_service: AccountService
    token_service: AccessTokenService
