import getpass

from account_api.application.services.account_service import AccountService
from account_api.core.config import Settings
from account_api.infrastructure.persistence.sqlite import SQLiteAccountStore
from account_api.services.email_service import EmailService
from account_api.services.password_hasher import BcryptPasswordHasher
from account_api.services.retry import RetryPolicy


def main() -> None:
    settings = Settings()

    email = input("Administrator email: ").strip()
    name = input("Administrator name [Administrator]: ").strip() or "Administrator"
    password = getpass.getpass("Administrator password: ")
    if len(password) < 6:
        raise SystemExit("The password must be at least 6 characters.")

    store = SQLiteAccountStore(settings.database_path)
    try:
        service = AccountService(
            store,
            BcryptPasswordHasher(rounds=settings.password_hash_rounds),
            EmailService(base_url=settings.public_base_url),
            RetryPolicy(settings.notify_max_attempts, settings.notify_retry_delay_ms),
        )
        account = service.ensure_administrator(name, email, password)
    finally:
        store.close()

    if account is None:
        raise SystemExit("Email and password are required.")
    if not account.is_admin:
        print(f"Account {account.email} already exists and is not an administrator.")
        return
    print(f"Administrator ready: id={account.id} email={account.email}")


if __name__ == "__main__":
    main()
