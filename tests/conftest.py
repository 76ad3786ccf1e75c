from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from account_api.application.services.account_service import AccountService
from account_api.core.app_factory import create_application
from account_api.core.config import Settings
from account_api.domain.models import Account
from account_api.domain.ports.notifications import NotificationReason
from account_api.infrastructure.persistence.sqlite import SQLiteAccountStore
from account_api.services.password_hasher import BcryptPasswordHasher
from account_api.services.retry import RetryPolicy

CLIENT_ID = "test-client"
CLIENT_SECRET = "test-client-secret"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-secret"
ALL_SCOPES = "read-general manage-account"


class RecordingNotifier:
    """Fake transport that can be told to fail a number of times."""

    def __init__(self) -> None:
        self.attempts = 0
        self.fail_times = 0
        self.sent: List[Tuple[str, Optional[str], NotificationReason]] = []

    def send_verification(self, account: Account, reason: NotificationReason) -> None:
        self.attempts += 1
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionError("mail transport unavailable")
        self.sent.append((account.email, account.verification_token, reason))

    def last_token_for(self, email: str) -> Optional[str]:
        for sent_email, token, _ in reversed(self.sent):
            if sent_email == email:
                return token
        return None


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def store(tmp_path: Path):
    accounts = SQLiteAccountStore(tmp_path / "accounts.db")
    yield accounts
    accounts.close()


@pytest.fixture
def hasher() -> BcryptPasswordHasher:
    return BcryptPasswordHasher(rounds=4)


@pytest.fixture
def service(store, hasher, notifier, sleeps) -> AccountService:
    return AccountService(store, hasher, notifier, RetryPolicy(5, 100, sleep=sleeps.append))


@pytest.fixture
def settings(tmp_path: Path, monkeypatch) -> Settings:
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "api.db"))
    monkeypatch.setenv("ACCESS_TOKEN_SECRET", "a-test-signing-secret")
    monkeypatch.setenv("OAUTH_CLIENTS", f"{CLIENT_ID}:{CLIENT_SECRET}")
    monkeypatch.setenv("ADMIN_EMAIL", ADMIN_EMAIL)
    monkeypatch.setenv("ADMIN_PASSWORD", ADMIN_PASSWORD)
    monkeypatch.setenv("PASSWORD_HASH_ROUNDS", "4")
    monkeypatch.delenv("SMTP_HOST", raising=False)
    return Settings()


@pytest.fixture
def client(settings, notifier, sleeps):
    app = create_application(settings, notifier=notifier, sleep=sleeps.append)
    with TestClient(app) as test_client:
        yield test_client


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def client_token(client: TestClient) -> str:
    res = client.post(
        "/oauth/token",
        data={
            "grant_type": "client_credentials",
            "client_id": CLIENT_ID,
            "client_secret": CLIENT_SECRET,
        },
    )
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def user_token(client: TestClient, email: str, password: str, scope: str = ALL_SCOPES) -> str:
    res = client.post(
        "/oauth/token",
        data={
            "grant_type": "password",
            "client_id": CLIENT_ID,
            "client_secret": CLIENT_SECRET,
            "username": email,
            "password": password,
            "scope": scope,
        },
    )
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def register(client: TestClient, name: str, email: str, password: str = "secret1") -> dict:
    res = client.post(
        "/accounts",
        data={
            "name": name,
            "email": email,
            "password": password,
            "passwordConfirmation": password,
        },
        headers=bearer(client_token(client)),
    )
    assert res.status_code == 201, res.text
    return res.json()["data"]
