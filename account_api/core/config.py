import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv


class Settings:
    """Centralised application configuration sourced from environment variables."""

    def __init__(self) -> None:
        load_dotenv()
        self.database_path = Path(os.getenv("DATABASE_PATH", "data/accounts.db")).resolve()
        self.access_token_secret = os.getenv("ACCESS_TOKEN_SECRET", "change-me")
        self.access_token_exp_minutes = self._get_int("ACCESS_TOKEN_EXP_MINUTES", default=60 * 24)
        self.oauth_clients = self._parse_clients(os.getenv("OAUTH_CLIENTS", ""))
        self.admin_default_name = os.getenv("ADMIN_NAME", "Administrator")
        self.admin_default_email = os.getenv("ADMIN_EMAIL")
        self.admin_default_password = os.getenv("ADMIN_PASSWORD")
        self.verification_ttl_hours = self._get_int("VERIFICATION_TOKEN_TTL_HOURS", default=24)
        self.notify_max_attempts = self._get_int("NOTIFY_MAX_ATTEMPTS", default=5)
        self.notify_retry_delay_ms = self._get_int("NOTIFY_RETRY_DELAY_MS", default=100)
        self.password_hash_rounds = self._get_int("PASSWORD_HASH_ROUNDS", default=12)
        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = self._get_int("SMTP_PORT", default=587)
        self.smtp_username = os.getenv("SMTP_USERNAME", "")
        self.smtp_password = os.getenv("SMTP_PASSWORD", "")
        self.smtp_from_email = os.getenv("SMTP_FROM_EMAIL", "")
        self.public_base_url = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
        origins = os.getenv("CORS_ALLOW_ORIGINS")
        if origins:
            self.cors_allow_origins = [item.strip() for item in origins.split(",") if item.strip()]
        else:
            self.cors_allow_origins = ["*"]

    @staticmethod
    def _get_int(key: str, default: Optional[int] = None) -> int:
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise RuntimeError(f"Missing required environment variable: {key}")
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable {key} must be an integer") from exc

    @staticmethod
    def _parse_clients(raw: str) -> Dict[str, str]:
        """Parse ``id:secret,id2:secret2`` into a client registry."""
        clients: Dict[str, str] = {}
        for item in raw.split(","):
            item = item.strip()
            if not item:
                continue
            client_id, sep, secret = item.partition(":")
            if not sep or not client_id or not secret:
                raise RuntimeError("OAUTH_CLIENTS entries must look like client_id:client_secret")
            clients[client_id.strip()] = secret.strip()
        return clients
