from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet, Optional

from jose import JWTError, jwt

from ...domain import scopes
from ...domain.errors import AuthenticationError, BadRequestError
from ...domain.models import AuthenticatedIdentity, CallerContext, ClientCredentials
from ...domain.ports.notifications import PasswordHasher
from ...domain.ports.persistence import AccountRepository
from ...domain.validation import normalize_email

logger = logging.getLogger(__name__)

CLIENT_TOKEN = "client"
USER_TOKEN = "user"


@dataclass(frozen=True, slots=True)
class IssuedToken:
    access_token: str
    expires_in: int
    token_type: str = "Bearer"


class AccessTokenService:
    """Issues and resolves signed bearer tokens for clients and end users."""

    def __init__(
        self,
        accounts: AccountRepository,
        hasher: PasswordHasher,
        clients: Dict[str, str],
        secret_key: str,
        token_exp_minutes: int = 1440,
        algorithm: str = "HS256",
    ) -> None:
        if not secret_key:
            raise RuntimeError("ACCESS_TOKEN_SECRET is not configured.")
        if secret_key == "change-me":
            logger.warning(
                "ACCESS_TOKEN_SECRET is using the default value. Configure a real secret in production."
            )
        self._accounts = accounts
        self._hasher = hasher
        self._clients = dict(clients)
        self._secret_key = secret_key
        self._token_exp_minutes = token_exp_minutes
        self._algorithm = algorithm

    # ------------------------------------------------------------------
    def issue_client_token(self, client_id: str, client_secret: str) -> IssuedToken:
        self._authenticate_client(client_id, client_secret)
        return self._create_token({"typ": CLIENT_TOKEN, "cid": client_id, "scopes": []})

    def issue_password_token(
        self,
        client_id: str,
        client_secret: str,
        username: str,
        password: str,
        scope: Optional[str] = None,
    ) -> IssuedToken:
        self._authenticate_client(client_id, client_secret)
        granted = self._parse_scopes(scope)
        account = self._accounts.get_account_by_email(normalize_email(username or ""))
        if not account or not self._hasher.verify(password or "", account.password_hash):
            raise AuthenticationError("The user credentials were incorrect.")
        return self._create_token(
            {
                "typ": USER_TOKEN,
                "cid": client_id,
                "sub": str(account.id),
                "scopes": sorted(granted),
            }
        )

    def resolve(self, token: str) -> CallerContext:
        """Turn a bearer token into a caller context.

        Raises:
            AuthenticationError: If the token is invalid, expired, or names an
                account that no longer exists.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError as exc:
            raise AuthenticationError() from exc

        client_id = payload.get("cid")
        if not client_id or client_id not in self._clients:
            raise AuthenticationError()

        if payload.get("typ") == CLIENT_TOKEN:
            return ClientCredentials(client_id=client_id)

        try:
            account_id = int(payload.get("sub"))
        except (TypeError, ValueError) as exc:
            raise AuthenticationError() from exc
        account = self._accounts.get_account(account_id)
        if not account:
            raise AuthenticationError()
        granted = frozenset(payload.get("scopes") or ()) & scopes.KNOWN_SCOPES
        return AuthenticatedIdentity(account=account, client_id=client_id, scopes=granted)

    # Helpers ----------------------------------------------------------------
    def _authenticate_client(self, client_id: str, client_secret: str) -> None:
        expected = self._clients.get(client_id or "")
        if expected is None or not secrets.compare_digest(expected, client_secret or ""):
            raise AuthenticationError("Client authentication failed.")

    @staticmethod
    def _parse_scopes(scope: Optional[str]) -> FrozenSet[str]:
        requested = frozenset((scope or "").split())
        unknown = requested - scopes.KNOWN_SCOPES
        if unknown:
            raise BadRequestError(f"Invalid scopes provided: {', '.join(sorted(unknown))}.")
        return requested

    def _create_token(self, claims: Dict[str, object]) -> IssuedToken:
        now = datetime.now(tz=timezone.utc)
        expire = now + timedelta(minutes=self._token_exp_minutes)
        payload = {**claims, "iat": now, "exp": expire}
        token = jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
        return IssuedToken(access_token=token, expires_in=self._token_exp_minutes * 60)
