"""Capabilities the auth core needs from its collaborators.

The orchestrators depend only on these protocols. `AuthDatabase` is the
PostgreSQL implementation, `InMemoryAuthStore` the in-process one, and
`EmailGatewayClient` the production notification sender.
"""

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol
from uuid import UUID

from auth.types import ActivationToken, User


class UserDirectory(Protocol):
    """Durable user records with email/username uniqueness."""

    def transaction(self) -> AbstractContextManager[None]:
        """Group the calls made inside the block into one atomic unit."""
        ...

    def insert_user(self, email: str, username: str, password_hash: str) -> User:
        """Create a PENDING user.

        Raises:
            DuplicateUserError: If email or username is taken.
        """
        ...

    def get_user_by_email(self, email: str) -> User | None: ...

    def get_user_by_username(self, username: str) -> User | None: ...

    def get_user_by_id(self, user_id: UUID) -> User | None: ...

    def set_active(self, user_id: UUID, activated_at: datetime) -> bool:
        """Flip status to ACTIVE. Returns False if the user doesn't exist."""
        ...

    def update_last_login(self, user_id: UUID) -> None: ...

    def update_password_hash(self, user_id: UUID, password_hash: str) -> None: ...


class ActivationTokenStore(Protocol):
    """Activation token persistence with atomic single-use consumption."""

    def store_activation_token(self, token: ActivationToken) -> None: ...

    def consume_activation_token(self, token: str, now: datetime) -> UUID:
        """Mark token consumed and return its user id, as one atomic step.

        Raises:
            TokenNotFoundError: No such token.
            TokenAlreadyConsumedError: Token was consumed before (checked first).
            TokenExpiredError: Token expired; it stays unconsumed.
        """
        ...

    def has_live_activation_token(self, user_id: UUID, now: datetime) -> bool: ...

    def revoke_activation_tokens(self, user_id: UUID) -> int:
        """Delete the user's unconsumed tokens. Returns count deleted."""
        ...

    def cleanup_expired_tokens(self, now: datetime) -> int: ...


class NotificationSender(Protocol):
    """Delivers the activation link to the registered address."""

    def send_activation_link(self, email: str, activation_link: str) -> None: ...
