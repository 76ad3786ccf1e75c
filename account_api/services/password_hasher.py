"""bcrypt-backed password hashing."""

from passlib.context import CryptContext


class BcryptPasswordHasher:
    """One-way hash and verify pair for account secrets."""

    def __init__(self, rounds: int = 12) -> None:
        self._pwd = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, secret: str) -> str:
        return self._pwd.hash(secret)

    def verify(self, secret: str, hashed: str) -> bool:
        if not hashed:
            return False
        return self._pwd.verify(secret, hashed)
