import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from ...domain.errors import EmailAlreadyTakenError
from ...domain.models import Account, VerificationStatus
from ...domain.ports.persistence import AccountRepository


class SQLiteAccountStore(AccountRepository):
    """SQLite-backed implementation of the account repository."""

    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._initialize()

    def _initialize(self) -> None:
        with self._lock, self._conn:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL,
                    password_hash TEXT NOT NULL,
                    is_admin INTEGER NOT NULL DEFAULT 0,
                    verification_status TEXT NOT NULL DEFAULT 'unverified',
                    verification_token TEXT,
                    verification_expires_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    deleted_at TEXT
                );

                CREATE UNIQUE INDEX IF NOT EXISTS idx_accounts_live_email
                    ON accounts(email) WHERE deleted_at IS NULL;

                CREATE INDEX IF NOT EXISTS idx_accounts_verification_token
                    ON accounts(verification_token);
                """
            )
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        with self._lock:
            cur = self._conn.execute("PRAGMA table_info(accounts)")
            columns = {row[1] for row in cur.fetchall()}
        if "verification_expires_at" not in columns:
            with self._lock, self._conn:
                self._conn.execute("ALTER TABLE accounts ADD COLUMN verification_expires_at TEXT")

    def close(self) -> None:
        self._conn.close()

    # AccountRepository API --------------------------------------------------
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
        now = self._now()
        try:
            with self._lock, self._conn:
                cur = self._conn.execute(
                    """
                    INSERT INTO accounts (
                        name, email, password_hash, is_admin, verification_status,
                        verification_token, verification_expires_at, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        name,
                        email,
                        password_hash,
                        int(is_admin),
                        verification_status.value,
                        verification_token,
                        self._format_datetime(verification_expires_at),
                        now,
                        now,
                    ),
                )
                account_id = cur.lastrowid
                cur = self._conn.execute("SELECT * FROM accounts WHERE id = ?", (account_id,))
                row = cur.fetchone()
        except sqlite3.IntegrityError as exc:
            raise EmailAlreadyTakenError(email) from exc
        if not row:
            raise RuntimeError("Failed to persist account.")
        return self._row_to_account(row)

    def get_account(self, account_id: int, include_deleted: bool = False) -> Optional[Account]:
        query = "SELECT * FROM accounts WHERE id = ?"
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        with self._lock:
            cur = self._conn.execute(query, (account_id,))
            row = cur.fetchone()
        return self._row_to_account(row) if row else None

    def get_account_by_email(self, email: str) -> Optional[Account]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT * FROM accounts WHERE email = ? AND deleted_at IS NULL",
                (email,),
            )
            row = cur.fetchone()
        return self._row_to_account(row) if row else None

    def get_account_by_verification_token(self, token: str) -> Optional[Account]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT * FROM accounts WHERE verification_token = ? AND deleted_at IS NULL",
                (token,),
            )
            row = cur.fetchone()
        return self._row_to_account(row) if row else None

    def list_accounts(
        self,
        *,
        include_deleted: bool = False,
        is_verified: Optional[bool] = None,
        is_admin: Optional[bool] = None,
    ) -> List[Account]:
        clauses: List[str] = []
        params: List[Any] = []
        if not include_deleted:
            clauses.append("deleted_at IS NULL")
        if is_verified is not None:
            clauses.append("verification_status = ?")
            status = VerificationStatus.VERIFIED if is_verified else VerificationStatus.UNVERIFIED
            params.append(status.value)
        if is_admin is not None:
            clauses.append("is_admin = ?")
            params.append(int(is_admin))
        query = "SELECT * FROM accounts"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY id ASC"
        with self._lock:
            cur = self._conn.execute(query, params)
            rows = cur.fetchall()
        return [self._row_to_account(row) for row in rows]

    def save_account(self, account: Account) -> Account:
        now = self._now()
        try:
            with self._lock, self._conn:
                cur = self._conn.execute(
                    """
                    UPDATE accounts
                    SET name = ?, email = ?, password_hash = ?, is_admin = ?,
                        verification_status = ?, verification_token = ?,
                        verification_expires_at = ?, updated_at = ?
                    WHERE id = ? AND deleted_at IS NULL
                    """,
                    (
                        account.name,
                        account.email,
                        account.password_hash,
                        int(account.is_admin),
                        account.verification_status.value,
                        account.verification_token,
                        self._format_datetime(account.verification_expires_at),
                        now,
                        account.id,
                    ),
                )
                updated = cur.rowcount
                cur = self._conn.execute("SELECT * FROM accounts WHERE id = ?", (account.id,))
                row = cur.fetchone()
        except sqlite3.IntegrityError as exc:
            raise EmailAlreadyTakenError(account.email) from exc
        if not updated or not row:
            raise ValueError(f"Account {account.id} not found.")
        return self._row_to_account(row)

    def soft_delete_account(self, account_id: int) -> bool:
        now = self._now()
        with self._lock, self._conn:
            cur = self._conn.execute(
                "UPDATE accounts SET deleted_at = ?, updated_at = ? WHERE id = ? AND deleted_at IS NULL",
                (now, now, account_id),
            )
        return cur.rowcount > 0

    # Helpers ----------------------------------------------------------------
    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _format_datetime(value: Optional[datetime]) -> Optional[str]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()

    @staticmethod
    def _parse_datetime(value: str) -> datetime:
        try:
            result = datetime.fromisoformat(value)
        except ValueError:
            # Fallback for legacy formats without 'T'
            result = datetime.strptime(value, "%Y-%m-%d %H:%M:%S")
        if result.tzinfo is None:
            return result.replace(tzinfo=timezone.utc)
        return result.astimezone(timezone.utc)

    def _row_to_account(self, row: sqlite3.Row) -> Account:
        return Account(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            password_hash=row["password_hash"],
            is_admin=bool(row["is_admin"]),
            verification_status=VerificationStatus(row["verification_status"]),
            verification_token=row["verification_token"],
            verification_expires_at=self._parse_datetime(row["verification_expires_at"])
            if row["verification_expires_at"]
            else None,
            created_at=self._parse_datetime(row["created_at"]),
            updated_at=self._parse_datetime(row["updated_at"]),
            deleted_at=self._parse_datetime(row["deleted_at"]) if row["deleted_at"] else None,
        )
