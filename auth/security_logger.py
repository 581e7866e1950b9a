"""Security event logging for auth audit trail.

Append-only log to the security_events table.
"""

from enum import Enum
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc


class SecurityEvent(Enum):
    """Auth security event types."""

    REGISTRATION_SUCCEEDED = "registration_succeeded"
    REGISTRATION_REISSUED = "registration_reissued"
    REGISTRATION_REJECTED = "registration_rejected"
    REGISTRATION_FAILED = "registration_failed"
    ACTIVATION_EMAIL_SENT = "activation_email_sent"
    USER_ACTIVATED = "user_activated"
    ACTIVATION_FAILED = "activation_failed"
    ACTIVATION_ORPHANED_TOKEN = "activation_orphaned_token"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGIN_NOT_ACTIVATED = "login_not_activated"


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log security event to database."""
        self._db.execute_returning(
            """INSERT INTO security_events
               (event_type, email, user_id, ip_address, user_agent, details, created_at)
               VALUES (%s, %s, %s, %s, %s, %s, %s)
               RETURNING id""",
            (
                event.value,
                email,
                str(user_id) if user_id else None,
                ip_address,
                user_agent,
                Json(details) if details else None,
                now_utc(),
            ),
        )
