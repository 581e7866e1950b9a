"""Database operations for authentication.

Tables: users, activation_tokens (see sql/auth_schema.sql).
Uniqueness and single-use token consumption are enforced by PostgreSQL,
so several service instances can share one database safely.
"""

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Dict
from uuid import UUID

from psycopg2 import errors as pg_errors

from clients.postgres_client import PostgresClient
from auth.exceptions import (
    DuplicateUserError,
    TokenAlreadyConsumedError,
    TokenExpiredError,
    TokenNotFoundError,
)
from auth.types import ActivationToken, User, UserStatus
from utils.timezone import now_utc

_USER_COLUMNS = """id, email, username, password_hash, status,
                   created_at, activated_at, last_login_at"""


def _as_uuid(value: Any) -> UUID:
    return UUID(value) if isinstance(value, str) else value


def _row_to_user(row: Dict[str, Any]) -> User:
    return User(
        id=_as_uuid(row["id"]),
        email=row["email"],
        username=row["username"],
        password_hash=row["password_hash"],
        status=UserStatus(row["status"]),
        created_at=row["created_at"],
        activated_at=row["activated_at"],
        last_login_at=row["last_login_at"],
    )


class AuthDatabase:
    """PostgreSQL-backed UserDirectory and ActivationTokenStore."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def transaction(self) -> AbstractContextManager[None]:
        return self._db.transaction()

    # Users

    def get_user_by_email(self, email: str) -> User | None:
        """Find user by email (case-insensitive)."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = lower(%s)",
            (email.strip(),),
        )
        return _row_to_user(row) if row else None

    def get_user_by_username(self, username: str) -> User | None:
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE username = %s",
            (username,),
        )
        return _row_to_user(row) if row else None

    def get_user_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (str(user_id),),
        )
        return _row_to_user(row) if row else None

    def insert_user(self, email: str, username: str, password_hash: str) -> User:
        """Create new PENDING user with email (lowercased).

        Raises:
            DuplicateUserError: If email or username violates a unique constraint.
        """
        try:
            rows = self._db.execute_returning(
                f"""INSERT INTO users (email, username, password_hash, status)
                    VALUES (lower(%s), %s, %s, %s)
                    RETURNING {_USER_COLUMNS}""",
                (email.strip(), username, password_hash, UserStatus.PENDING.value),
            )
        except pg_errors.UniqueViolation as e:
            raise DuplicateUserError("User already exists") from e
        return _row_to_user(rows[0])

    def set_active(self, user_id: UUID, activated_at: datetime) -> bool:
        """Set user ACTIVE.

        Returns:
            True if user was found and activated, False if not found.
        """
        rows = self._db.execute_returning(
            """UPDATE users
               SET status = %s, activated_at = COALESCE(activated_at, %s)
               WHERE id = %s
               RETURNING id""",
            (UserStatus.ACTIVE.value, activated_at, str(user_id)),
        )
        return len(rows) > 0

    def update_last_login(self, user_id: UUID) -> None:
        """Update last_login_at to current time."""
        self._db.execute_returning(
            "UPDATE users SET last_login_at = %s WHERE id = %s RETURNING id",
            (now_utc(), str(user_id)),
        )

    def update_password_hash(self, user_id: UUID, password_hash: str) -> None:
        """Replace the stored hash, e.g. after raising the bcrypt work factor."""
        self._db.execute_returning(
            "UPDATE users SET password_hash = %s WHERE id = %s RETURNING id",
            (password_hash, str(user_id)),
        )

    # Activation tokens

    def store_activation_token(self, token: ActivationToken) -> None:
        """Store activation token for later consumption."""
        self._db.execute_returning(
            """INSERT INTO activation_tokens (token, user_id, created_at, expires_at, consumed)
               VALUES (%s, %s, %s, %s, %s)
               RETURNING token""",
            (
                token.token,
                str(token.user_id),
                token.created_at,
                token.expires_at,
                token.consumed,
            ),
        )

    def get_activation_token(self, token: str) -> ActivationToken | None:
        """Retrieve activation token by token string."""
        row = self._db.execute_single(
            """SELECT token, user_id, created_at, expires_at, consumed
               FROM activation_tokens
               WHERE token = %s""",
            (token,),
        )
        if row is None:
            return None
        return ActivationToken(
            token=row["token"],
            user_id=_as_uuid(row["user_id"]),
            created_at=row["created_at"],
            expires_at=row["expires_at"],
            consumed=row["consumed"],
        )

    def consume_activation_token(self, token: str, now: datetime) -> UUID:
        """Atomically mark token consumed and return its user id.

        The conditional UPDATE takes the row lock, so concurrent callers
        queue behind the winner and then match zero rows.
        """
        rows = self._db.execute_returning(
            """UPDATE activation_tokens
               SET consumed = true, consumed_at = %s
               WHERE token = %s AND consumed = false AND expires_at > %s
               RETURNING user_id""",
            (now, token, now),
        )
        if rows:
            return _as_uuid(rows[0]["user_id"])

        # Nothing updated: classify why
        existing = self.get_activation_token(token)
        if existing is None:
            raise TokenNotFoundError("Activation token not found")
        if existing.consumed:
            raise TokenAlreadyConsumedError("Activation token already used")
        raise TokenExpiredError("Activation token has expired")

    def has_live_activation_token(self, user_id: UUID, now: datetime) -> bool:
        row = self._db.execute_single(
            """SELECT 1 AS live FROM activation_tokens
               WHERE user_id = %s AND consumed = false AND expires_at > %s
               LIMIT 1""",
            (str(user_id), now),
        )
        return row is not None

    def revoke_activation_tokens(self, user_id: UUID) -> int:
        """Delete unconsumed tokens for user. Returns count deleted."""
        rows = self._db.execute_returning(
            """DELETE FROM activation_tokens
               WHERE user_id = %s AND consumed = false
               RETURNING token""",
            (str(user_id),),
        )
        return len(rows)

    def cleanup_expired_tokens(self, now: datetime) -> int:
        """Delete expired tokens. Returns count deleted."""
        rows = self._db.execute_returning(
            """DELETE FROM activation_tokens
               WHERE expires_at < %s
               RETURNING token""",
            (now,),
        )
        return len(rows)
