"""SQLite-backed token storage with tokens encrypted at rest."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from basecamp_mcp.models.token import TokenRecord
from basecamp_mcp.services.token_cipher import TokenCipherService


class SQLiteTokenStore:
    """One row per Basecamp user; the token pair is written in one statement."""

    def __init__(self, db_path: str, cipher: TokenCipherService) -> None:
        self._db_path = Path(db_path)
        self._cipher = cipher
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tokens (
                    user_id INTEGER PRIMARY KEY,
                    access_token TEXT NOT NULL,
                    refresh_token TEXT NOT NULL,
                    expires_at TEXT NOT NULL,
                    account_id TEXT NOT NULL,
                    email TEXT NOT NULL,
                    session_key TEXT UNIQUE,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def save(self, record: TokenRecord) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tokens (
                    user_id, access_token, refresh_token, expires_at,
                    account_id, email, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    access_token = excluded.access_token,
                    refresh_token = excluded.refresh_token,
                    expires_at = excluded.expires_at,
                    account_id = excluded.account_id,
                    email = excluded.email,
                    updated_at = excluded.updated_at
                """,
                (
                    record.user_id,
                    self._cipher.encrypt(record.access_token),
                    self._cipher.encrypt(record.refresh_token),
                    record.expires_at.isoformat(),
                    record.account_id,
                    record.email,
                    datetime.now(timezone.utc).isoformat(),
                ),
            )

    def get(self, user_id: int) -> Optional[TokenRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tokens WHERE user_id = ?", (user_id,)
            ).fetchone()
        if not row:
            return None
        return self._row_to_record(row)

    def revoke(self, user_id: int) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM tokens WHERE user_id = ?", (user_id,))

    def save_session_key(self, user_id: int, key: str) -> None:
        """Attach the opaque key agent sessions use to find this user."""
        with self._connect() as conn:
            conn.execute(
                "UPDATE tokens SET session_key = ? WHERE user_id = ?",
                (key, user_id),
            )

    def resolve_by_key(self, key: str) -> Optional[TokenRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tokens WHERE session_key = ?", (key,)
            ).fetchone()
        if not row:
            return None
        return self._row_to_record(row)

    def rekey(self) -> int:
        """Re-encrypt every stored token under the primary secret."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT user_id, access_token, refresh_token FROM tokens"
            ).fetchall()
            for row in rows:
                conn.execute(
                    "UPDATE tokens SET access_token = ?, refresh_token = ? WHERE user_id = ?",
                    (
                        self._cipher.rotate(row["access_token"]),
                        self._cipher.rotate(row["refresh_token"]),
                        row["user_id"],
                    ),
                )
        return len(rows)

    def _row_to_record(self, row: sqlite3.Row) -> TokenRecord:
        return TokenRecord(
            user_id=row["user_id"],
            access_token=self._cipher.decrypt(row["access_token"]),
            refresh_token=self._cipher.decrypt(row["refresh_token"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
            account_id=row["account_id"],
            email=row["email"],
        )


__all__ = ["SQLiteTokenStore"]
